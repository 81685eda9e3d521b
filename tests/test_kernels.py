"""Tests for the SpGEMM kernel layer: primitives, layout, expansion."""
import numpy as np
import pytest

from spgemm import SparseMatrixCOO
from spgemm.kernels import (
    NumpyBackend, NumbaBackend, ThreadedBackend, get_backend,
    ProductLayout, offsets_from_sorted_indices, plan_layout, plan_product,
    expand, expand_nested, expand_scan, sort_reduce,
)
from spgemm.kernels.expand import owner_segments, gather_locations


@pytest.fixture(params=["numpy", "numba", "threads"])
def backend(request):
    if request.param == "threads":
        # tiny chunks so every primitive crosses chunk boundaries
        return ThreadedBackend(max_workers=3, min_chunk=2)
    return get_backend(request.param)


def int_array(values):
    return np.array(values, dtype=np.int64)


# ============================================================
# Backend registry
# ============================================================

class TestRegistry:

    def test_names(self):
        assert isinstance(get_backend("numpy"), NumpyBackend)
        assert isinstance(get_backend("numba"), NumbaBackend)
        threads = get_backend("threads", max_workers=2)
        assert isinstance(threads, ThreadedBackend)
        assert threads.max_workers == 2

    def test_object_passthrough(self):
        b = ThreadedBackend(max_workers=1)
        assert get_backend(b) is b

    def test_unknown(self):
        with pytest.raises(ValueError):
            get_backend("cuda")

    def test_bad_worker_count(self):
        with pytest.raises(ValueError):
            ThreadedBackend(max_workers=0)


# ============================================================
# Primitives (every backend)
# ============================================================

class TestPrimitives:

    def test_gather(self, backend):
        source = np.array([10.0, 20.0, 30.0, 40.0])
        index = int_array([3, 0, 0, 2, 1])
        assert np.array_equal(backend.gather(index, source), [40, 10, 10, 30, 20])

    def test_transform(self, backend):
        a = int_array([5, 1, 7, 3, 2])
        b = int_array([2, 4, 7, 1, 9])
        assert np.array_equal(backend.transform(a, b, "add"), a + b)
        assert np.array_equal(backend.transform(a, b, "sub"), a - b)
        assert np.array_equal(backend.transform(a, b, "mul"), a * b)
        assert np.array_equal(backend.transform(a, b, "max"), np.maximum(a, b))

    def test_transform_unknown_op(self, backend):
        a = int_array([1, 2])
        with pytest.raises(ValueError):
            backend.transform(a, a, "pow")

    def test_scatter_if(self, backend):
        target = np.zeros(6, dtype=np.int64)
        values = int_array([7, 8, 9, 10])
        positions = int_array([4, 1, 6, 0])
        stencil = int_array([1, 2, 0, 3])  # masked position 6 is out of range
        backend.scatter_if(values, positions, stencil, target)
        assert np.array_equal(target, [10, 8, 0, 0, 7, 0])

    def test_inclusive_scan_add(self, backend):
        x = np.ones(8, dtype=np.int64)
        assert np.array_equal(backend.inclusive_scan(x, "add"), np.arange(1, 9))

    def test_inclusive_scan_max(self, backend):
        x = int_array([0, 3, 0, 0, 5, 0, 2])
        assert np.array_equal(backend.inclusive_scan(x, "max"), [0, 3, 3, 3, 5, 5, 5])

    def test_inclusive_scan_empty(self, backend):
        out = backend.inclusive_scan(np.empty(0, dtype=np.int64), "add")
        assert len(out) == 0

    def test_exclusive_scan_trailing_total(self, backend):
        out = backend.exclusive_scan(int_array([2, 0, 3, 1]))
        assert np.array_equal(out, [0, 2, 2, 5, 6])

    def test_exclusive_scan_empty(self, backend):
        out = backend.exclusive_scan(np.empty(0, dtype=np.int64))
        assert np.array_equal(out, [0])

    def test_segmented_scan(self, backend):
        x = int_array([5, 1, 1, 7, 1, 9, 1, 1])
        keys = int_array([0, 0, 0, 1, 1, 2, 2, 2])
        out = backend.inclusive_segmented_scan(x, keys)
        assert np.array_equal(out, [5, 6, 7, 7, 8, 9, 10, 11])

    def test_segmented_scan_one_long_segment(self, backend):
        x = np.ones(8, dtype=np.int64)
        keys = np.zeros(8, dtype=np.int64)
        out = backend.inclusive_segmented_scan(x, keys)
        assert np.array_equal(out, np.arange(1, 9))

    def test_sort_by_key(self, backend):
        rng = np.random.default_rng(0)
        rows = rng.integers(0, 6, 50)
        cols = rng.integers(0, 6, 50)
        vals = rng.integers(0, 100, 50)
        r, c, v = backend.sort_by_key(rows, cols, vals)

        order = np.lexsort((cols, rows))
        assert np.array_equal(r, rows[order])
        assert np.array_equal(c, cols[order])
        # ties may come in any order, but every triplet must survive intact
        assert sorted(zip(r.tolist(), c.tolist(), v.tolist())) == \
            sorted(zip(rows.tolist(), cols.tolist(), vals.tolist()))

    def test_reduce_by_key(self, backend):
        rows = int_array([0, 0, 0, 0, 1, 1, 2, 2])
        cols = int_array([1, 1, 1, 1, 0, 0, 3, 4])
        vals = np.ones(8)
        r, c, v = backend.reduce_by_key(rows, cols, vals)
        assert np.array_equal(r, [0, 1, 2, 2])
        assert np.array_equal(c, [1, 0, 3, 4])
        assert np.array_equal(v, [4.0, 2.0, 1.0, 1.0])

    def test_reduce_by_key_empty(self, backend):
        empty = np.empty(0, dtype=np.int64)
        r, c, v = backend.reduce_by_key(empty, empty, np.empty(0))
        assert len(r) == len(c) == len(v) == 0

    def test_sort_reduce(self, backend):
        rows = int_array([2, 0, 2, 0, 1])
        cols = int_array([1, 3, 1, 0, 2])
        vals = int_array([1, 2, 3, 4, 5])
        r, c, v = sort_reduce(rows, cols, vals, backend)
        assert list(zip(r.tolist(), c.tolist(), v.tolist())) == \
            [(0, 0, 4), (0, 3, 2), (1, 2, 5), (2, 1, 4)]


# ============================================================
# Layout
# ============================================================

class TestLayout:

    def test_offsets_from_sorted_indices(self):
        offsets = offsets_from_sorted_indices([0, 0, 2], 4)
        assert np.array_equal(offsets, [0, 2, 2, 3, 3])

    def test_offsets_bounds(self):
        rows = np.sort(np.random.default_rng(1).integers(0, 10, 40))
        offsets = offsets_from_sorted_indices(rows, 10)
        assert len(offsets) == 11
        assert offsets[0] == 0
        assert offsets[-1] == 40
        assert np.all(np.diff(offsets) >= 0)
        assert np.array_equal(np.diff(offsets), np.bincount(rows, minlength=10))

    def test_offsets_no_entries(self):
        offsets = offsets_from_sorted_indices(np.empty(0, dtype=np.int32), 3)
        assert np.array_equal(offsets, [0, 0, 0, 0])

    def test_plan_layout(self, backend):
        output_ptr, total = plan_layout(int_array([2, 0, 3]), backend)
        assert np.array_equal(output_ptr, [0, 2, 2, 5])
        assert total == 5

    def test_plan_product(self, backend):
        # B rows: 0 -> 2 entries, 1 -> none, 2 -> 3 entries
        b_rows = np.array([0, 0, 2, 2, 2], dtype=np.int32)
        a_cols = np.array([2, 1, 0], dtype=np.int32)
        layout = plan_product(a_cols, b_rows, 3, backend)
        assert np.array_equal(layout.b_offsets, [0, 2, 2, 5])
        assert np.array_equal(layout.segment_lengths, [3, 0, 2])
        assert np.array_equal(layout.output_ptr, [0, 3, 3, 5])
        assert layout.total == 5


# ============================================================
# Expansion
# ============================================================

class TestExpansion:

    def test_owner_segments_skip_empty(self, backend):
        layout = ProductLayout(
            b_offsets=int_array([0]),
            segment_lengths=int_array([0, 2, 0, 3, 0]),
            output_ptr=int_array([0, 0, 2, 2, 5, 5]),
            total=5,
        )
        segments = owner_segments(layout, backend)
        assert np.array_equal(segments, [1, 1, 3, 3, 3])

    def test_gather_locations(self, backend):
        b_rows = np.array([0, 0, 2, 2, 2], dtype=np.int32)
        a_cols = np.array([2, 1, 0], dtype=np.int32)
        layout = plan_product(a_cols, b_rows, 3, backend)
        segments = owner_segments(layout, backend)
        assert np.array_equal(segments, [0, 0, 0, 2, 2])
        locations = gather_locations(a_cols, segments, layout, backend)
        assert np.array_equal(locations, [2, 3, 4, 0, 1])

    def test_strategies_same_multiset(self, backend):
        rng = np.random.default_rng(2)
        A = SparseMatrixCOO.from_triplets(
            rng.integers(0, 9, 40), rng.integers(0, 7, 40),
            rng.integers(1, 5, 40), (9, 7))
        B = SparseMatrixCOO.from_triplets(
            rng.integers(0, 7, 30), rng.integers(0, 8, 30),
            rng.integers(1, 5, 30), (7, 8)).sort_by_row()
        layout = plan_product(A.column_indices, B.row_indices, B.num_rows, backend)
        args = (A.row_indices, A.column_indices, A.values,
                B.column_indices, B.values, layout)

        nested = expand_nested(*args, np.int64, np.int64)
        scanned = expand_scan(*args, backend, np.int64, np.int64)
        assert len(nested[0]) == len(scanned[0]) == layout.total
        assert sorted(zip(*(a.tolist() for a in nested))) == \
            sorted(zip(*(a.tolist() for a in scanned)))

        # brute force: every (A entry, B entry) pair with matching inner index
        expected = sorted(
            (int(i), int(bc), int(av * bv))
            for i, j, av in zip(A.row_indices, A.column_indices, A.values)
            for bj, bc, bv in zip(B.row_indices, B.column_indices, B.values)
            if bj == j
        )
        assert sorted(zip(*(a.tolist() for a in scanned))) == expected

    def test_expand_unknown_strategy(self, backend):
        layout = plan_product(int_array([0]), int_array([0]), 1, backend)
        with pytest.raises(ValueError):
            expand("tiled", int_array([0]), int_array([0]), np.ones(1),
                   int_array([0]), np.ones(1), layout, backend,
                   np.int64, np.float64)
