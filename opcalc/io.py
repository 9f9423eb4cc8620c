"""Line-oriented readers and writers for graphs and demands.

Both formats use one record per line::

    src dst w1 w2 ... wD

Tokens are separated by spaces or tabs. For a graph the record is an edge and
the weights are its weight vector; for a demand the weights are the
constraint vector. Blank lines and lines starting with ``#`` are ignored.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, List, Optional, Tuple, Union

from opcalc.demand import Demand
from opcalc.errors import MalformedInput
from opcalc.graph import StrictWeightedDiGraph
from opcalc.logging import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


def _records(lines: Iterable[str]) -> Iterator[Tuple[int, str, List[str]]]:
    """Yield ``(line_no, line, tokens)`` for every non-blank, non-comment line."""
    for line_no, raw in enumerate(lines, start=1):
        line = raw.rstrip("\r\n")
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        yield line_no, line, stripped.split()


def _parse_record(
    line_no: int, line: str, tokens: List[str], expected_dim: Optional[int]
) -> Tuple[str, str, Tuple[float, ...]]:
    if len(tokens) < 3:
        raise MalformedInput(f"No weight elements in line '{line}'", line_no)
    dim = len(tokens) - 2
    if expected_dim is not None and dim != expected_dim:
        raise MalformedInput(
            f"Weight dimension changed in line '{line}' (is {dim}, should be {expected_dim})",
            line_no,
        )
    values = []
    for token in tokens[2:]:
        try:
            values.append(float(token))
        except ValueError:
            raise MalformedInput(
                f"Illegal value '{token}' (not a number) in line '{line}'", line_no
            ) from None
    return tokens[0], tokens[1], tuple(values)


def edgelist_to_graph(
    lines: Iterable[str],
    graph: Optional[StrictWeightedDiGraph] = None,
) -> StrictWeightedDiGraph:
    """Build or extend a graph from ``src dst w1 ... wD`` edge records.

    Vertices are created on first mention, in order of appearance, which
    fixes their matrix index.

    Args:
        lines: Iterable of edge records.
        graph: Existing graph to extend; a new one is created if None.

    Returns:
        The updated (or newly created) graph.

    Raises:
        MalformedInput: On a record with fewer than three tokens, a
            non-numeric or negative weight, a weight dimension differing from
            the graph's, a redefined edge or a self-loop.
    """
    if graph is None:
        graph = StrictWeightedDiGraph()

    expected_dim = graph.weight_dimension() or None
    for line_no, line, tokens in _records(lines):
        src, dst, weight = _parse_record(line_no, line, tokens, expected_dim)
        expected_dim = len(weight)
        if graph.has_edge(src, dst):
            raise MalformedInput(f"Existing edge redefined in line '{line}'", line_no)
        try:
            graph.check_edge(src, dst, weight)
        except ValueError as exc:
            raise MalformedInput(f"{exc} (line '{line}')", line_no) from exc
        if src not in graph:
            graph.add_node(src)
        if dst not in graph:
            graph.add_node(dst)
        graph.add_edge(src, dst, weight)

    logger.debug(
        "Loaded graph: %d vertices, %d edges, weight dimension %d",
        graph.vertex_count(),
        graph.number_of_edges(),
        graph.weight_dimension(),
    )
    return graph


def lines_to_demands(
    lines: Iterable[str], graph: StrictWeightedDiGraph
) -> List[Demand]:
    """Parse ``src dst c1 ... cD`` demand records against ``graph``.

    Raises:
        MalformedInput: On a malformed record, a vertex unknown to ``graph``,
            or a constraint dimension differing from the graph's weight
            dimension.
    """
    graph_dim = graph.weight_dimension() or None
    demands: List[Demand] = []
    for line_no, line, tokens in _records(lines):
        src, dst, constraints = _parse_record(line_no, line, tokens, graph_dim)
        for vertex in (src, dst):
            if vertex not in graph:
                raise MalformedInput(
                    f"Unknown vertex '{vertex}' in demand line '{line}'", line_no
                )
        try:
            demands.append(Demand(src, dst, constraints))
        except ValueError as exc:
            raise MalformedInput(f"{exc} (line '{line}')", line_no) from exc
    return demands


def _decoded_lines(fh: BinaryIO, path: PathLike) -> Iterator[str]:
    """Decode a binary file line by line as UTF-8.

    Raises:
        MalformedInput: On the first line that is not valid UTF-8.
    """
    for line_no, raw in enumerate(fh, start=1):
        try:
            yield raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedInput(
                f"'{path}' is not valid UTF-8 text ({exc.reason})", line_no
            ) from exc


def load_graph(path: PathLike) -> StrictWeightedDiGraph:
    """Read an edge-list file into a new graph.

    Raises:
        MalformedInput: If the file is not UTF-8 text or a record is invalid.
    """
    with open(path, "rb") as fh:
        return edgelist_to_graph(_decoded_lines(fh, path))


def load_demands(path: PathLike, graph: StrictWeightedDiGraph) -> List[Demand]:
    """Read a demand file; vertices must exist in ``graph``."""
    with open(path, "rb") as fh:
        return lines_to_demands(_decoded_lines(fh, path), graph)


def _format_weight(value: float) -> str:
    return str(int(value)) if value.is_integer() else repr(value)


def graph_to_edgelist(graph: StrictWeightedDiGraph, separator: str = " ") -> List[str]:
    """Render ``graph`` as edge records readable by :func:`edgelist_to_graph`.

    Isolated vertices have no record and are therefore not preserved.
    """
    return [
        separator.join([str(src), str(dst), *(_format_weight(w) for w in weight)])
        for src, dst, weight in graph.edges_with_weights()
    ]
