"""Command-line interface for opcalc."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, List, Optional

from opcalc.algorithms.offline import PathSearchResult
from opcalc.config import EngineConfig
from opcalc.errors import OpCalcError
from opcalc.io import load_demands, load_graph
from opcalc.logging import get_logger, set_global_log_level
from opcalc.psi.matrix import PathMatrix
from opcalc.solver import build_pool, solve_demands

logger = get_logger(__name__)


def _format_table(
    headers: List[str],
    rows: List[List[str]],
    min_width: int = 8,
    max_col_width: Optional[int] = None,
) -> str:
    """Format data as a simple ASCII table.

    Args:
        headers: Column headers
        rows: Data rows
        min_width: Minimum column width
        max_col_width: Cells longer than this are clipped with "..."

    Returns:
        Formatted table string
    """
    if not rows:
        return ""

    def clip(val: Any) -> str:
        s = str(val)
        if max_col_width is not None and len(s) > max_col_width:
            return s[: max_col_width - 3] + "..."
        return s

    clipped_headers = [clip(h) for h in headers]
    clipped_rows = [[clip(item) for item in row] for row in rows]

    all_data = [clipped_headers] + clipped_rows
    col_widths = []
    for col_idx in range(len(clipped_headers)):
        max_width = max(len(row[col_idx]) for row in all_data)
        col_widths.append(max(max_width, min_width))

    def format_row(row_data: List[str]) -> str:
        return "   " + " | ".join(
            f"{item:<{col_widths[i]}}" for i, item in enumerate(row_data)
        )

    lines = [format_row(clipped_headers)]
    lines.append("   " + "-+-".join("-" * width for width in col_widths))
    lines.extend(format_row(row) for row in clipped_rows)
    return "\n".join(lines)


def _format_weight(weight: Any) -> str:
    """Return a weight vector as ``[w1, w2, ...]`` with trimmed decimals."""
    parts = []
    for value in weight:
        s = f"{float(value):,.3f}".rstrip("0").rstrip(".")
        parts.append(s)
    return "[" + ", ".join(parts) + "]"


def _format_duration(seconds: float) -> str:
    """Return a concise human-readable duration string.

    Examples:
        0.123 -> "123.0 ms"; 1.234 -> "1.23 s"; 75.2 -> "1m 15.2s".
    """
    if seconds < 1.0:
        return f"{seconds * 1000.0:.1f} ms"
    if seconds < 60.0:
        return f"{seconds:.2f} s"
    minutes = int(seconds // 60)
    rem = seconds - minutes * 60
    return f"{minutes}m {rem:.1f}s"


def _plural(n: int, singular: str, plural: Optional[str] = None) -> str:
    if n == 1:
        return singular
    return plural or (singular + "s")


def _print_result(result: PathSearchResult) -> None:
    n = len(result.paths)
    status = "saturated" if result.saturated else "hop bound reached"
    print(
        f"{result.demand}: {n} {_plural(n, 'path')}, "
        f"{result.iterations} {_plural(result.iterations, 'iteration')} ({status}), "
        f"{_format_duration(result.elapsed)}"
    )
    rows = [
        [str(i), str(p.hops), "->".join(str(v) for v in p.nodes), _format_weight(p.weight)]
        for i, p in enumerate(result.paths, start=1)
    ]
    table = _format_table(["#", "Hops", "Path", "Weight"], rows, min_width=4)
    if table:
        print(table)
    print()


def _run(
    graph_path: Path,
    demands_path: Path,
    capacity: Optional[int],
    config: EngineConfig,
    as_json: bool,
    output: Optional[Path],
) -> None:
    """Load a graph and its demands, enumerate paths and report them."""
    logger.info(f"Loading graph from: {graph_path}")
    start = perf_counter()
    try:
        graph = load_graph(graph_path)
        demands = load_demands(demands_path, graph)
        results = solve_demands(graph, demands, capacity=capacity, config=config)
    except FileNotFoundError as e:
        logger.error(f"Input file not found: {e.filename}")
        print(f"❌ ERROR: Input file not found: {e.filename}")
        sys.exit(1)
    except (OpCalcError, ValueError) as e:
        logger.error(f"Failed to enumerate paths: {type(e).__name__}: {e}")
        print(f"❌ ERROR: Failed to enumerate paths: {type(e).__name__}: {e}")
        sys.exit(1)

    payload: Dict[str, Any] = {
        "graph": {
            "vertices": graph.vertex_count(),
            "edges": graph.number_of_edges(),
            "weight_dim": graph.weight_dimension(),
        },
        "results": [r.to_dict() for r in results],
    }
    json_str = json.dumps(payload, indent=2, default=str)

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json_str)
        logger.info(f"Results written to: {output}")

    if as_json:
        print(json_str)
    else:
        for result in results:
            _print_result(result)

    logger.info(f"Run completed in {_format_duration(perf_counter() - start)}")


def _inspect(graph_path: Path, show_matrix: bool) -> None:
    """Print a summary of a graph and, optionally, its base path matrix."""
    try:
        graph = load_graph(graph_path)
    except FileNotFoundError:
        logger.error(f"Graph file not found: {graph_path}")
        print(f"❌ ERROR: Graph file not found: {graph_path}")
        sys.exit(1)
    except OpCalcError as e:
        logger.error(f"Failed to load graph: {e}")
        print(f"❌ ERROR: Failed to load graph: {e}")
        sys.exit(1)

    n_vertices = graph.vertex_count()
    n_edges = graph.number_of_edges()
    print(
        f"Graph {graph_path.name}: {n_vertices} {_plural(n_vertices, 'vertex', 'vertices')}, "
        f"{n_edges} {_plural(n_edges, 'edge')}, weight dimension {graph.weight_dimension()}"
    )
    rows = [
        [str(src), str(dst), _format_weight(weight)]
        for src, dst, weight in graph.edges_with_weights()
    ]
    table = _format_table(["Source", "Target", "Weight"], rows, min_width=6)
    if table:
        print(table)

    if show_matrix and n_edges:
        pool = build_pool(graph)
        base = PathMatrix.from_graph(graph, pool)
        try:
            print()
            print(base)
        finally:
            base.clear()


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the ``opcalc`` command.

    Args:
        argv: Optional list of command-line arguments. If ``None``, ``sys.argv``
            is used.
    """
    parser = argparse.ArgumentParser(
        prog="opcalc",
        description="Enumerate multi-constrained simple paths by operator calculus.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--quiet", "-q", action="store_true", help="Only log warnings and errors"
    )

    subparsers = parser.add_subparsers(
        dest="command",
        required=True,
        title="Available commands",
        metavar="{run,inspect}",
        help="Available commands",
    )

    run_parser = subparsers.add_parser(
        "run", help="Enumerate feasible paths for every demand"
    )
    run_parser.add_argument("graph", type=Path, help="Edge list: 'src dst w1 ... wD'")
    run_parser.add_argument(
        "demands", type=Path, help="Demand list: 'src dst c1 ... cD'"
    )
    run_parser.add_argument(
        "--capacity",
        type=int,
        default=None,
        help="Record pool capacity (default: vertex count cubed, at least 100)",
    )
    run_parser.add_argument(
        "--workers",
        "-w",
        type=int,
        default=1,
        help="Threads computing the cells of an iteration",
    )
    run_parser.add_argument(
        "--deadline",
        type=float,
        default=None,
        help="Abort a demand's run after this many seconds",
    )
    run_parser.add_argument(
        "--hop-limit",
        type=int,
        default=None,
        help="Longest path to report, in hops",
    )
    run_parser.add_argument(
        "--include-direct",
        action="store_true",
        help="Also report a direct source-to-destination edge",
    )
    run_parser.add_argument(
        "--json", action="store_true", help="Print results as JSON to stdout"
    )
    run_parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Also write JSON results to this file",
    )

    inspect_parser = subparsers.add_parser("inspect", help="Summarize a graph file")
    inspect_parser.add_argument("graph", type=Path, help="Edge list: 'src dst w1 ... wD'")
    inspect_parser.add_argument(
        "--matrix", "-m", action="store_true", help="Also print the base path matrix"
    )

    effective_args = sys.argv[1:] if argv is None else argv
    if not effective_args:
        parser.print_help()
        raise SystemExit(0)

    args = parser.parse_args(effective_args)

    if args.verbose:
        set_global_log_level(logging.DEBUG)
        logger.debug("Debug logging enabled")
    elif args.quiet:
        set_global_log_level(logging.WARNING)
    else:
        set_global_log_level(logging.INFO)

    if args.command == "run":
        try:
            config = EngineConfig(
                workers=args.workers,
                deadline=args.deadline,
                hop_limit=args.hop_limit,
                include_direct=args.include_direct,
            )
        except ValueError as e:
            parser.error(str(e))
        _run(
            graph_path=args.graph,
            demands_path=args.demands,
            capacity=args.capacity,
            config=config,
            as_json=args.json,
            output=args.output,
        )
    elif args.command == "inspect":
        _inspect(args.graph, args.matrix)


if __name__ == "__main__":
    main()
