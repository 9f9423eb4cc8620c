import numpy as np
import pytest

from opcalc.algorithms.offline import (
    FoundPath,
    PathGrowthEngine,
    PathSearchResult,
    concatenate,
)
from opcalc.config import EngineConfig
from opcalc.demand import Demand
from opcalc.errors import InvalidDimension, ResourceExhausted
from opcalc.psi.matrix import PathMatrix
from opcalc.psi.pool import PathRecordPool
from opcalc.psi.record import PathRecord


def _base(graph, capacity=1000):
    pool = PathRecordPool(graph.vertex_count(), graph.weight_dimension(), capacity)
    return PathMatrix.from_graph(graph, pool)


def _record(nodes, weight, max_hops=5):
    rec = PathRecord(max_hops, len(weight))
    rec.set_path(nodes, weight)
    return rec


#
# concatenate
#
class TestConcatenate:
    @pytest.fixture
    def pool(self):
        return PathRecordPool(max_hops=5, weight_dim=1, capacity=10)

    def test_accepts_feasible_candidate(self, pool):
        out = concatenate(
            _record(["A", "B"], [1]), _record(["B", "C"], [1]), np.array([5.0]), "A", pool
        )
        assert out is not None
        assert out.nodes == ("A", "B", "C")
        assert out.weight == (2.0,)
        assert pool.owns(out)

    def test_constraint_is_inclusive(self, pool):
        out = concatenate(
            _record(["A", "B"], [1]), _record(["B", "C"], [1]), np.array([2.0]), "A", pool
        )
        assert out is not None
        assert out.weight == (2.0,)

    def test_constraint_violated(self, pool):
        out = concatenate(
            _record(["A", "B"], [1]), _record(["B", "C"], [1]), np.array([1.0]), "A", pool
        )
        assert out is None
        assert pool.in_use == 0

    def test_every_dimension_is_checked(self):
        pool = PathRecordPool(max_hops=5, weight_dim=2, capacity=2)
        left = _record(["A", "B"], [1, 4])
        right = _record(["B", "D"], [1, 4])
        assert concatenate(left, right, np.array([10.0, 7.0]), "A", pool) is None
        assert concatenate(left, right, np.array([10.0, 8.0]), "A", pool) is not None

    def test_zero_operand(self, pool):
        zero = PathRecord(5, 1)
        edge = _record(["A", "B"], [1])
        assert concatenate(zero, edge, np.array([9.0]), "A", pool) is None
        assert concatenate(edge, zero, np.array([9.0]), "A", pool) is None

    def test_left_must_start_at_source(self, pool):
        out = concatenate(
            _record(["B", "C"], [1]), _record(["C", "D"], [1]), np.array([9.0]), "A", pool
        )
        assert out is None

    def test_junction_continuity(self, pool):
        out = concatenate(
            _record(["A", "B"], [1]), _record(["C", "D"], [1]), np.array([9.0]), "A", pool
        )
        assert out is None

    def test_cycle_through_left_vertex_rejected(self, pool):
        # Junction B matches, but the result would revisit A.
        out = concatenate(
            _record(["A", "B"], [1]), _record(["B", "A"], [1]), np.array([9.0]), "A", pool
        )
        assert out is None

    def test_cycle_inside_longer_path_rejected(self, pool):
        out = concatenate(
            _record(["A", "B", "C"], [2]),
            _record(["C", "B"], [1]),
            np.array([9.0]),
            "A",
            pool,
        )
        assert out is None

    def test_scratch_buffer_reused(self, pool):
        scratch = np.empty(1)
        out = concatenate(
            _record(["A", "B"], [1]),
            _record(["B", "C"], [2]),
            np.array([9.0]),
            "A",
            pool,
            scratch,
        )
        assert out.weight == (3.0,)
        assert scratch[0] == 3.0

    def test_two_live_candidates_exceed_capacity_one(self):
        pool = PathRecordPool(max_hops=5, weight_dim=1, capacity=1)
        bound = np.array([9.0])
        first = concatenate(_record(["A", "B"], [1]), _record(["B", "C"], [1]), bound, "A", pool)
        assert first is not None
        with pytest.raises(ResourceExhausted):
            concatenate(_record(["A", "B"], [1]), _record(["B", "D"], [1]), bound, "A", pool)


#
# Engine
#
def test_chain_emits_single_path(chain_abc):
    base = _base(chain_abc)
    result = PathGrowthEngine(base, Demand("A", "C", (5,))).run()

    assert isinstance(result, PathSearchResult)
    assert result.paths == [FoundPath(("A", "B", "C"), (2.0,), 1)]
    assert result.paths[0].hops == 2
    assert result.saturated
    assert result.iterations == 2
    assert result.records_per_iteration == [1, 0]


def test_chain_constraint_too_tight(chain_abc):
    base = _base(chain_abc)
    result = PathGrowthEngine(base, Demand("A", "C", (1,))).run()

    assert result.paths == []
    assert result.saturated
    assert result.iterations == 1
    assert result.records_per_iteration == [0]


def test_back_and_forth_cycle_is_not_grown(back_and_forth):
    base = _base(back_and_forth)
    result = PathGrowthEngine(base, Demand("A", "C", (10,))).run()

    assert result.paths == []
    assert result.saturated
    assert result.iterations == 1


def test_only_paths_reaching_destination_are_reported(back_and_forth):
    base = _base(back_and_forth)
    result = PathGrowthEngine(base, Demand("B", "C", (10,))).run()
    assert [p.nodes for p in result.paths] == [("B", "A", "C")]
    assert result.paths[0].weight == (2.0,)


def test_complete_graph_enumeration(complete4):
    base = _base(complete4)
    result = PathGrowthEngine(base, Demand("A", "D", (3,))).run()

    assert [(p.nodes, p.iteration) for p in result.paths] == [
        (("A", "B", "D"), 1),
        (("A", "C", "D"), 1),
        (("A", "C", "B", "D"), 2),
        (("A", "B", "C", "D"), 2),
    ]
    assert all(p.weight == (float(p.hops),) for p in result.paths)
    assert result.records_per_iteration == [6, 6, 0]
    assert result.iterations == 3
    assert result.saturated


def test_iterations_never_exceed_size_minus_one(complete4):
    base = _base(complete4)
    result = PathGrowthEngine(base, Demand("A", "D", (100,))).run()
    assert result.iterations <= base.size - 1
    assert max(p.hops for p in result.paths) == base.size - 1


def test_paths_are_simple_and_within_constraints(diamond):
    base = _base(diamond)
    result = PathGrowthEngine(base, Demand("A", "D", (10, 10))).run()

    assert sorted(p.nodes for p in result.paths) == [("A", "B", "D"), ("A", "C", "D")]
    for p in result.paths:
        assert len(set(p.nodes)) == len(p.nodes)
        assert all(w <= c for w, c in zip(p.weight, (10, 10)))

    tight = PathGrowthEngine(base, Demand("A", "D", (10, 5))).run()
    assert [p.nodes for p in tight.paths] == [("A", "C", "D")]
    assert tight.paths[0].weight == (4.0, 2.0)


def test_unbounded_dimension(diamond):
    base = _base(diamond)
    result = PathGrowthEngine(base, Demand("A", "D", (float("inf"), 2))).run()
    assert [p.nodes for p in result.paths] == [("A", "C", "D")]


def test_hop_limit_stops_early(complete4):
    base = _base(complete4)
    engine = PathGrowthEngine(base, Demand("A", "D", (10,)), config=EngineConfig(hop_limit=2))
    result = engine.run()

    assert {p.hops for p in result.paths} == {2}
    assert result.iterations == 1
    assert not result.saturated


def test_include_direct(complete4):
    base = _base(complete4)
    config = EngineConfig(include_direct=True)
    result = PathGrowthEngine(base, Demand("A", "D", (2,)), config=config).run()

    assert result.paths[0] == FoundPath(("A", "D"), (1.0,), 0)
    assert [p.hops for p in result.paths] == [1, 2, 2]


def test_include_direct_respects_constraints(make_graph):
    g = make_graph([("A", "B", (5,)), ("B", "C", (1,)), ("A", "C", (9,))])
    base = _base(g)
    config = EngineConfig(include_direct=True)
    result = PathGrowthEngine(base, Demand("A", "C", (6,)), config=config).run()
    assert [p.nodes for p in result.paths] == [("A", "B", "C")]


def test_base_matrix_is_untouched(diamond):
    base = _base(diamond)
    before = base.to_values()
    PathGrowthEngine(base, Demand("A", "D", (10, 10))).run()
    assert base.to_values() == before


def test_run_releases_every_work_record(complete4):
    base = _base(complete4)
    pool = base.pool
    PathGrowthEngine(base, Demand("A", "D", (10,))).run()
    assert pool.in_use == base.record_count()
    assert pool.high_water > base.record_count()


def test_separate_work_pool(diamond):
    base = _base(diamond)
    work_pool = PathRecordPool(4, 2, 100)
    result = PathGrowthEngine(base, Demand("A", "D", (10, 10)), pool=work_pool).run()

    assert len(result.paths) == 2
    assert work_pool.in_use == 0
    assert base.pool.in_use == 4


def test_pool_exhaustion_during_growth(diamond):
    base = _base(diamond)
    # Room for the work copy of the 4 base edges plus one grown path; the
    # first iteration needs two (A->B->D and A->C->D).
    work_pool = PathRecordPool(4, 2, 5)
    engine = PathGrowthEngine(base, Demand("A", "D", (10, 10)), pool=work_pool)

    with pytest.raises(ResourceExhausted):
        engine.run()
    assert work_pool.in_use == 0
    assert base.pool.in_use == 4


def test_closing_iterator_early_releases_records(complete4):
    base = _base(complete4)
    paths = PathGrowthEngine(base, Demand("A", "D", (10,))).iter_paths()

    first = next(paths)
    assert first.nodes == ("A", "B", "D")
    assert base.pool.in_use > base.record_count()

    paths.close()
    assert base.pool.in_use == base.record_count()


def test_engine_cannot_restart(chain_abc):
    engine = PathGrowthEngine(_base(chain_abc), Demand("A", "C", (5,)))
    engine.run()
    with pytest.raises(RuntimeError):
        engine.iter_paths()


def test_stats_follow_run(complete4):
    engine = PathGrowthEngine(_base(complete4), Demand("A", "D", (10,)))
    engine.run()
    assert engine.stats.found == 4
    assert engine.stats.iterations == 3
    assert engine.stats.elapsed >= 0.0


def test_demand_dimension_mismatch(diamond):
    with pytest.raises(InvalidDimension):
        PathGrowthEngine(_base(diamond), Demand("A", "D", (10,)))


def test_pool_dimension_mismatch(diamond):
    with pytest.raises(InvalidDimension):
        PathGrowthEngine(
            _base(diamond), Demand("A", "D", (10, 10)), pool=PathRecordPool(4, 1, 10)
        )


def test_pool_records_too_short(complete4):
    with pytest.raises(InvalidDimension):
        PathGrowthEngine(
            _base(complete4), Demand("A", "D", (10,)), pool=PathRecordPool(3, 1, 100)
        )
    # A hop limit shortens the longest path the pool has to hold.
    PathGrowthEngine(
        _base(complete4),
        Demand("A", "D", (10,)),
        pool=PathRecordPool(3, 1, 100),
        config=EngineConfig(hop_limit=2),
    )


def test_result_to_dict(chain_abc):
    result = PathGrowthEngine(_base(chain_abc), Demand("A", "C", (5,))).run()
    data = result.to_dict()
    assert data["demand"] == {"source": "A", "destination": "C", "constraints": [5.0]}
    assert data["paths"] == [
        {"nodes": ["A", "B", "C"], "weight": [2.0], "hops": 2, "iteration": 1}
    ]
    assert data["saturated"] is True
    assert str(result.paths[0]) == "(2)[A->B->C]"
