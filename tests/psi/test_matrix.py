import pytest

from opcalc.errors import InvalidDimension, ResourceExhausted, UnknownHandle
from opcalc.psi.matrix import ZERO_CELL, MatrixCell, PathMatrix
from opcalc.psi.pool import PathRecordPool
from opcalc.psi.record import PathRecord, PathValue


def _pool(dim=1, capacity=100, max_hops=4):
    return PathRecordPool(max_hops=max_hops, weight_dim=dim, capacity=capacity)


class TestMatrixCell:
    def test_add_and_clear_releases(self):
        pool = _pool()
        cell = MatrixCell(pool)
        assert cell.is_zero()
        assert str(cell) == ZERO_CELL

        for nodes in (["A", "B"], ["A", "C", "B"]):
            rec = pool.acquire()
            rec.set_path(nodes, [1])
            cell.add(rec)

        assert len(cell) == 2
        assert [v.nodes for v in cell.values()] == [("A", "B"), ("A", "C", "B")]
        assert str(cell) == "(1.000000)[A->B] + (1.000000)[A->C->B]"

        cell.clear()
        assert cell.is_zero()
        assert pool.in_use == 0

    def test_rejects_zero_and_foreign_records(self):
        pool = _pool()
        cell = MatrixCell(pool)
        with pytest.raises(ValueError):
            cell.add(pool.acquire())

        standalone = PathRecord(4, 1)
        standalone.set_path(["A", "B"], [1])
        with pytest.raises(UnknownHandle):
            cell.add(standalone)


class TestPathMatrix:
    def test_invalid_geometry(self):
        pool = _pool(dim=2)
        with pytest.raises(InvalidDimension):
            PathMatrix(0, 2, pool)
        with pytest.raises(InvalidDimension):
            PathMatrix(3, 0, pool)
        with pytest.raises(InvalidDimension):
            PathMatrix(3, 1, pool)

    def test_new_matrix_is_zero(self):
        m = PathMatrix(3, 1, _pool())
        assert m.is_zero()
        assert m.record_count() == 0
        assert m.label(2) == 2

    def test_build_from_chain(self, chain_abc):
        pool = _pool()
        m = PathMatrix.from_graph(chain_abc, pool)

        assert m.vertices == ("A", "B", "C")
        assert m.record_count() == 2
        assert pool.in_use == 2
        assert m[0, 1].values() == [PathValue(("A", "B"), (1.0,))]
        assert m.cell(1, 2).values() == [PathValue(("B", "C"), (1.0,))]
        for row in range(3):
            assert m[row, row].is_zero()
        assert m[0, 2].is_zero()
        assert m.label(1) == "B"

    def test_build_checks_dimensions(self, chain_abc, diamond):
        m = PathMatrix(3, 1, _pool())
        with pytest.raises(InvalidDimension):
            m.build_from_graph(diamond)

        m2 = PathMatrix(3, 2, _pool(dim=2))
        with pytest.raises(InvalidDimension):
            m2.build_from_graph(chain_abc)

    def test_rebuild_releases_previous_records(self, chain_abc):
        pool = _pool()
        m = PathMatrix.from_graph(chain_abc, pool)
        m.build_from_graph(chain_abc)
        assert pool.in_use == 2

    def test_build_exhaustion_leaves_matrix_empty(self, complete4):
        pool = _pool(capacity=5)
        m = PathMatrix(4, 1, pool)
        with pytest.raises(ResourceExhausted):
            m.build_from_graph(complete4)
        assert m.is_zero()
        assert pool.in_use == 0

    def test_deep_clone_is_independent(self, diamond):
        pool = _pool(dim=2)
        base = PathMatrix.from_graph(diamond, pool)
        clone = base.deep_clone()

        assert clone.to_values() == base.to_values()
        assert clone.vertices == base.vertices
        assert pool.in_use == 8
        assert {id(r) for _, _, r in clone.iter_records()}.isdisjoint(
            id(r) for _, _, r in base.iter_records()
        )

        clone.clear()
        assert pool.in_use == 4
        assert base.record_count() == 4
        assert base[0, 1].values() == [PathValue(("A", "B"), (1.0, 4.0))]

    def test_deep_clone_into_target(self, chain_abc):
        pool = _pool()
        base = PathMatrix.from_graph(chain_abc, pool)
        target = PathMatrix(3, 1, pool)
        stale = pool.acquire()
        stale.set_path(["C", "A"], [9])
        target[2, 0].add(stale)

        base.deep_clone(target)
        assert target[2, 0].is_zero()
        assert target.to_values() == base.to_values()
        assert pool.in_use == 4

    def test_deep_clone_into_other_pool(self, chain_abc):
        base = PathMatrix.from_graph(chain_abc, _pool())
        other = _pool()
        clone = base.deep_clone(PathMatrix(3, 1, other))
        assert other.in_use == 2
        assert clone.to_values() == base.to_values()

    def test_deep_clone_dimension_mismatch(self, chain_abc):
        base = PathMatrix.from_graph(chain_abc, _pool())
        with pytest.raises(InvalidDimension):
            base.deep_clone(PathMatrix(4, 1, _pool()))
        with pytest.raises(InvalidDimension):
            base.deep_clone(PathMatrix(3, 2, _pool(dim=2)))

    def test_deep_clone_exhaustion_clears_target(self, chain_abc):
        pool = _pool(capacity=3)
        base = PathMatrix.from_graph(chain_abc, pool)
        target = PathMatrix(3, 1, pool)
        with pytest.raises(ResourceExhausted):
            base.deep_clone(target)
        assert target.is_zero()
        assert pool.in_use == 2

    def test_iter_records_row_major(self, back_and_forth):
        m = PathMatrix.from_graph(back_and_forth, _pool())
        assert [(r, c) for r, c, _ in m.iter_records()] == [(0, 1), (0, 2), (1, 0)]

    def test_str(self, chain_abc):
        m = PathMatrix.from_graph(chain_abc, _pool())
        text = str(m)
        assert text.startswith("Path matrix 3x3 (weight dimension = 1):")
        assert "(1.000000)[A->B]" in text
        assert ZERO_CELL in text
        assert repr(m) == "PathMatrix(size=3, weight_dim=1, records=2)"
