"""
SpGEMM Detector: Analysis of a sparse product before it is computed.

Reports the exact number of partial products T, memory estimates for the
intermediate stream, and the recommended expansion strategy and backend.

Usage:
    import spgemm
    report = spgemm.detect_product(A, B)
    print(report["intermediate"], report["strategy"], report["backend"])
"""

import numpy as np

from spgemm.matrix import result_index_dtype


# Below this many partial products, vectorized numpy beats JIT dispatch
NUMBA_MIN_INTERMEDIATE = 100_000
# Up to this many, the compiled nested loop is the fastest expansion
NESTED_MAX_INTERMEDIATE = 5_000_000
# From this many on, split the work across worker threads
THREADS_MIN_INTERMEDIATE = 50_000_000


def _density(m):
    total = m.num_rows * m.num_cols
    return m.num_entries / total if total > 0 else 0


def count_intermediate(A, B):
    """
    Exact number of partial products of A @ B.

    Works for any entry order of B; indices must be within bounds.
    """
    if A.num_entries == 0 or B.num_entries == 0:
        return 0, 0
    # bincount refuses uint64 input
    b_rows = B.row_indices.astype(np.int64, copy=False)
    lengths = np.bincount(b_rows, minlength=B.num_rows)[A.column_indices]
    return int(lengths.sum(dtype=np.int64)), int(lengths.max())


def detect_product(A, B):
    """
    Analyze the product A @ B and recommend how to compute it.

    Parameters
    ----------
    A, B : SparseMatrixCOO
        Operands with validated indices.

    Returns
    -------
    dict
        Output shape, operand nnz and density, intermediate count,
        memory estimate, recommended strategy and backend.
    """
    total, max_row_work = count_intermediate(A, B)

    index_bytes = result_index_dtype(A.index_dtype, B.index_dtype).itemsize
    value_bytes = np.result_type(A.dtype, B.dtype).itemsize
    # I, J, V plus the int64 segments and gather locations of the scan strategy
    ram_intermediate = total * (2 * index_bytes + value_bytes + 16)

    if total == 0:
        strategy, backend = "empty", "numpy"
        reason = "No partial products, result is empty"
    elif total < NUMBA_MIN_INTERMEDIATE:
        strategy, backend = "scan", "numpy"
        reason = f"Small product (T={total:,}), vectorized numpy"
    elif total <= NESTED_MAX_INTERMEDIATE:
        strategy, backend = "nested", "numba"
        reason = f"Medium product (T={total:,}), compiled nested loop"
    elif total < THREADS_MIN_INTERMEDIATE:
        strategy, backend = "scan", "numba"
        reason = f"Large product (T={total:,}), parallel JIT kernels"
    else:
        strategy, backend = "scan", "threads"
        reason = f"Very large product (T={total:,}), thread-parallel sort"

    return {
        "shape": (A.num_rows, B.num_cols),
        "nnz_a": A.num_entries,
        "nnz_b": B.num_entries,
        "density_a": round(_density(A), 6),
        "density_b": round(_density(B), 6),
        "intermediate": total,
        "max_row_work": max_row_work,
        "ram_intermediate_mb": round(ram_intermediate / 1e6, 1),
        "strategy": strategy,
        "backend": backend,
        "reason": reason,
    }
