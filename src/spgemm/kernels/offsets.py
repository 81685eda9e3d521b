"""
Kernels Offsets: Row offsets of B and the write layout of the expansion.

For A (m x k) times B (k x n) in coordinate form:
  1. B_offsets[r]      start of row r in B's row-grouped triplets
  2. B_row_lengths[r]  B_offsets[r + 1] - B_offsets[r]
  3. segment_lengths[e] = B_row_lengths[A.column_indices[e]]
  4. output_ptr = exclusive scan of segment_lengths, length nnz(A) + 1,
     whose last element is the intermediate count T

Counts and offsets are always int64 so T is exact before the output index
type is chosen.

Author: Carmen Esteban
"""

from dataclasses import dataclass

import numpy as np


def offsets_from_sorted_indices(sorted_indices, num_rows):
    """
    Row start offsets for row indices sorted in ascending order.

    Parameters
    ----------
    sorted_indices : array-like of int
        Row index of every entry, non-decreasing, values in [0, num_rows).
    num_rows : int
        Number of rows.

    Returns
    -------
    numpy.ndarray of int64, length num_rows + 1
        offsets[0] == 0, offsets[num_rows] == len(sorted_indices),
        non-decreasing.

    Examples
    --------
    >>> offsets_from_sorted_indices([0, 0, 2], 4)
    array([0, 2, 2, 3, 3])
    """
    sorted_indices = np.asarray(sorted_indices)
    rows = np.arange(num_rows + 1, dtype=np.int64)
    return np.searchsorted(sorted_indices, rows, side="left").astype(np.int64)


def row_lengths(offsets, backend):
    """Entries per row: offsets[r + 1] - offsets[r]."""
    return backend.transform(offsets[1:], offsets[:-1], "sub")


def segment_lengths(a_cols, b_row_lengths, backend):
    """Partial products contributed by each entry of A."""
    return backend.gather(a_cols, b_row_lengths)


def plan_layout(lengths, backend):
    """
    Exclusive scan of segment lengths with the trailing total.

    Returns
    -------
    output_ptr : numpy.ndarray of int64, length len(lengths) + 1
        output_ptr[e] is where entry e starts writing; output_ptr[-1] is T.
    total : int
        Intermediate triplet count T.
    """
    output_ptr = backend.exclusive_scan(np.asarray(lengths, dtype=np.int64))
    return output_ptr, int(output_ptr[-1])


@dataclass
class ProductLayout:
    """Transient per-call layout of an expand-sort-contract product."""
    b_offsets: np.ndarray
    segment_lengths: np.ndarray
    output_ptr: np.ndarray
    total: int


def plan_product(a_cols, b_rows, b_num_rows, backend):
    """
    Run the Row Index Summary, segment length and layout stages.

    Parameters
    ----------
    a_cols : numpy.ndarray
        Column indices of A.
    b_rows : numpy.ndarray
        Row indices of B, grouped in ascending row order.
    b_num_rows : int
        Number of rows of B.
    backend : backend object
        Primitive set from spgemm.kernels.backends.

    Returns
    -------
    ProductLayout
    """
    b_offsets = offsets_from_sorted_indices(b_rows, b_num_rows)
    lengths = segment_lengths(a_cols, row_lengths(b_offsets, backend), backend)
    output_ptr, total = plan_layout(lengths, backend)
    return ProductLayout(b_offsets, lengths, output_ptr, total)
