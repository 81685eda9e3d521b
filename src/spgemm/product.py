"""
SpGEMM Product: Sparse x sparse multiplication in coordinate form.

Expand-sort-contract pipeline with automatic strategy selection:
  - operand checks (shape, index bounds, row grouping of B)
  - layout: row offsets of B, segment lengths, write offsets, total T
  - expansion of every partial product ("nested" or "scan")
  - sort by (row, col) and merge duplicates by summation
  - assembly into the destination matrix (only mutation, only on success)

Usage:
    import spgemm
    C = spgemm.multiply(A, B)
    spgemm.multiply(A, B, out=C, backend="threads", verbose=True)
"""

import sys
import time

import numpy as np

from spgemm.detector import detect_product
from spgemm.exceptions import CapacityExceeded, DimensionMismatch, OperandNotSorted
from spgemm.kernels.backends import BACKENDS, get_backend
from spgemm.kernels.expand import STRATEGIES, expand
from spgemm.kernels.offsets import plan_product
from spgemm.kernels.reduce import sort_reduce
from spgemm.matrix import SparseMatrixCOO, result_index_dtype


def check_operands(A, B, check=True):
    """
    Validate operands of A @ B.

    The shape check always runs. With check=True, index bounds of both
    operands and the row grouping of B are verified as well.

    Raises
    ------
    DimensionMismatch, IndexOutOfRange, OperandNotSorted
    """
    if A.num_cols != B.num_rows:
        raise DimensionMismatch(A.shape, B.shape)
    if not check:
        return
    A.validate()
    B.validate()
    if not B.is_row_sorted():
        raise OperandNotSorted(
            "Right operand must be grouped by ascending row index "
            "(use B.sort_by_row())")


def check_capacity(total, index_dtype, max_intermediate=None):
    """Raise CapacityExceeded if T does not fit the index type or the caller's cap."""
    limit = int(np.iinfo(index_dtype).max)
    if total > limit:
        raise CapacityExceeded(
            f"{total:,} partial products exceed the {np.dtype(index_dtype).name} "
            f"index range ({limit:,})", total, limit)
    if max_intermediate is not None and total > max_intermediate:
        raise CapacityExceeded(
            f"{total:,} partial products exceed max_intermediate={max_intermediate:,}",
            total, max_intermediate)


def assemble(num_rows, num_cols, rows, cols, vals, out=None):
    """
    Package compacted triplets as a matrix.

    If out is given, its previous contents are replaced in one swap and
    out is returned; otherwise the new matrix is returned.
    """
    result = SparseMatrixCOO(num_rows, num_cols, 0,
                             dtype=vals.dtype, index_dtype=rows.dtype)
    result.num_entries = len(vals)
    result.row_indices = rows
    result.column_indices = cols
    result.values = vals
    if out is None:
        return result
    out.swap(result)
    return out


def multiply(A, B, out=None, strategy="auto", backend="auto", check=True,
             max_intermediate=None, max_workers=None, verbose=False):
    """
    Compute C = A @ B for coordinate-format sparse matrices.

    Parameters
    ----------
    A : SparseMatrixCOO
        Left operand, entries in any order.
    B : SparseMatrixCOO
        Right operand, entries grouped by ascending row.
    out : SparseMatrixCOO, optional
        Destination. Its contents are replaced only if the product succeeds.
    strategy : str
        "nested", "scan" or "auto" (chosen by detect_product).
    backend : str or backend object
        "numpy", "numba", "threads" or "auto".
    check : bool
        Validate index bounds and B's row grouping before computing.
    max_intermediate : int, optional
        Refuse products with more partial products than this.
    max_workers : int, optional
        Worker threads for the "threads" backend.
    verbose : bool
        Print strategy and per-stage timing.

    Returns
    -------
    SparseMatrixCOO
        Shape (A.num_rows, B.num_cols), entries strictly ascending by
        (row, col) with no duplicates.

    Raises
    ------
    DimensionMismatch
        A.num_cols != B.num_rows.
    IndexOutOfRange
        An operand index lies outside its shape (check=True).
    OperandNotSorted
        B is not grouped by row (check=True).
    CapacityExceeded
        T overflows the output index type or exceeds max_intermediate.
    """
    if strategy != "auto" and strategy not in STRATEGIES:
        raise ValueError(f"Unknown strategy {strategy!r}, expected 'auto' or one of {STRATEGIES}")
    if isinstance(backend, str) and backend != "auto" and backend not in BACKENDS:
        raise ValueError(f"Unknown backend {backend!r}, expected 'auto' or one of {BACKENDS}")

    check_operands(A, B, check)

    dtype = np.result_type(A.dtype, B.dtype)
    index_dtype = result_index_dtype(A.index_dtype, B.index_dtype)
    num_rows, num_cols = A.num_rows, B.num_cols

    if A.num_entries == 0 or B.num_entries == 0:
        if verbose:
            print(f"  [SpGEMM] {num_rows:,} x {A.num_cols:,} @ {B.num_rows:,} x {num_cols:,}: "
                  f"empty operand, result has no entries")
            sys.stdout.flush()
        empty_idx = np.empty(0, dtype=index_dtype)
        return assemble(num_rows, num_cols, empty_idx, empty_idx.copy(),
                        np.empty(0, dtype=dtype), out)

    if strategy == "auto" or backend == "auto":
        report = detect_product(A, B)
        if strategy == "auto":
            strategy = report["strategy"] if report["strategy"] in STRATEGIES else "scan"
        if backend == "auto":
            backend = report["backend"]
    prims = get_backend(backend, max_workers=max_workers)

    t0 = time.time()
    layout = plan_product(A.column_indices, B.row_indices, B.num_rows, prims)
    check_capacity(layout.total, index_dtype, max_intermediate)
    t_layout = time.time() - t0

    if verbose:
        print(f"  [SpGEMM] {num_rows:,} x {A.num_cols:,} @ {B.num_rows:,} x {num_cols:,}, "
              f"nnz(A)={A.num_entries:,}, nnz(B)={B.num_entries:,}, T={layout.total:,}, "
              f"strategy={strategy}, backend={getattr(prims, 'name', prims)}")
        sys.stdout.flush()

    if layout.total == 0:
        empty_idx = np.empty(0, dtype=index_dtype)
        return assemble(num_rows, num_cols, empty_idx, empty_idx.copy(),
                        np.empty(0, dtype=dtype), out)

    t1 = time.time()
    I, J, V = expand(strategy, A.row_indices, A.column_indices, A.values,
                     B.column_indices, B.values, layout, prims, index_dtype, dtype)
    del layout
    t_expand = time.time() - t1

    t2 = time.time()
    I, J, V = sort_reduce(I, J, V, prims)
    t_reduce = time.time() - t2

    if verbose:
        total = len(V)
        print(f"  [SpGEMM] layout [{t_layout:.3f}s], expand [{t_expand:.3f}s], "
              f"sort-reduce [{t_reduce:.3f}s] -> NNZ={total:,} "
              f"[{time.time() - t0:.3f}s]")
        sys.stdout.flush()

    return assemble(num_rows, num_cols, I, J, V, out)
