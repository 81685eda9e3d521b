"""
SpGEMM Kernels: Expand-sort-contract building blocks.

The product C = A @ B of two coordinate-format matrices is computed in
stages that never revisit earlier data:
  1. Row offsets of B (B must be grouped by row)
  2. Segment lengths: how many B entries each A entry meets
  3. Layout: exclusive scan of the lengths -> write offsets and total T
  4. Expansion: one (row, col, value) triplet per partial product
  5. Sort by (row, col) and merge equal coordinates by summation

Every stage is written against a small primitive interface (gather,
scatter, scans, sort, run-length reduce) with numpy, thread-pool and
Numba implementations.

Example:
    from spgemm.kernels import get_backend, plan_product, expand, sort_reduce

    backend = get_backend("numba")
    layout = plan_product(A.column_indices, B.row_indices, B.num_rows, backend)
    I, J, V = expand("scan", A.row_indices, A.column_indices, A.values,
                     B.column_indices, B.values, layout, backend,
                     np.int32, np.float64)
    I, J, V = sort_reduce(I, J, V, backend)

Author: Carmen Esteban
"""

from spgemm.kernels import fast
from spgemm.kernels.backends import (
    BACKENDS, NumpyBackend, ThreadedBackend, get_backend,
)
from spgemm.kernels.fast import NumbaBackend
from spgemm.kernels.offsets import (
    ProductLayout, offsets_from_sorted_indices, plan_layout, plan_product,
    row_lengths, segment_lengths,
)
from spgemm.kernels.expand import STRATEGIES, expand, expand_nested, expand_scan
from spgemm.kernels.reduce import sort_reduce

__all__ = [
    "BACKENDS", "NumpyBackend", "ThreadedBackend", "NumbaBackend", "get_backend",
    "ProductLayout", "offsets_from_sorted_indices", "plan_layout", "plan_product",
    "row_lengths", "segment_lengths",
    "STRATEGIES", "expand", "expand_nested", "expand_scan",
    "sort_reduce", "fast",
]
