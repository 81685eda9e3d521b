"""
SparseMatrixCOO: Coordinate-format sparse matrix container.

Stores a matrix as three parallel arrays (row_indices, column_indices,
values). The value type and the index type are independent numpy dtypes,
so the same container serves int32/int64 indices and any numeric value.

Author: Carmen Esteban
"""

import numpy as np
from scipy import sparse

from spgemm.exceptions import IndexOutOfRange
from spgemm.kernels.backends import get_backend
from spgemm.kernels.reduce import sort_reduce


def result_index_dtype(*dtypes):
    """
    Common index type of several integer dtypes.

    numpy promotes mixed signed/unsigned 64-bit integers to float64; such
    pairs, and any non-integer result, fall back to int64.
    """
    dtype = np.result_type(*dtypes)
    if dtype.kind not in "iu":
        return np.dtype(np.int64)
    return dtype


class SparseMatrixCOO:
    """
    Sparse matrix in coordinate (triplet) form.

    Parameters
    ----------
    num_rows, num_cols : int
        Matrix shape.
    num_entries : int
        Number of stored triplets (arrays are zero-initialized).
    dtype : numpy dtype
        Value type (default float64).
    index_dtype : numpy dtype
        Index type for row and column arrays (default int32).

    Examples
    --------
    >>> A = SparseMatrixCOO.from_triplets([0, 1], [0, 1], [1.0, 2.0], (2, 2))
    >>> A.nnz
    2
    >>> A.to_dense()
    array([[1., 0.],
           [0., 2.]])
    """

    def __init__(self, num_rows, num_cols, num_entries=0,
                 dtype=np.float64, index_dtype=np.int32):
        if num_rows < 0 or num_cols < 0 or num_entries < 0:
            raise ValueError("Matrix dimensions must be non-negative")
        self.num_rows = int(num_rows)
        self.num_cols = int(num_cols)
        self.num_entries = int(num_entries)
        self.row_indices = np.zeros(num_entries, dtype=index_dtype)
        self.column_indices = np.zeros(num_entries, dtype=index_dtype)
        self.values = np.zeros(num_entries, dtype=dtype)

    # ------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------

    @classmethod
    def from_triplets(cls, rows, cols, vals, shape, dtype=None, index_dtype=None):
        """
        Build a matrix from row, column and value sequences (copied).

        Parameters
        ----------
        rows, cols : array-like of int
            Row and column indices.
        vals : array-like
            Values.
        shape : tuple of int
            (num_rows, num_cols).
        dtype, index_dtype : numpy dtype, optional
            Forced value / index types. Inferred from the inputs if None
            (indices default to int32 when the inputs carry no integer type).
        """
        rows = np.asarray(rows)
        cols = np.asarray(cols)
        vals = np.asarray(vals)
        if not (rows.ndim == cols.ndim == vals.ndim == 1):
            raise ValueError("Triplet sequences must be one-dimensional")
        if not (len(rows) == len(cols) == len(vals)):
            raise ValueError(
                f"Triplet lengths differ: rows={len(rows)}, "
                f"cols={len(cols)}, vals={len(vals)}")

        if index_dtype is None:
            if rows.dtype.kind in "iu" and cols.dtype.kind in "iu":
                index_dtype = result_index_dtype(rows.dtype, cols.dtype)
            else:
                index_dtype = np.int32
        if dtype is None:
            dtype = vals.dtype if len(vals) > 0 else np.float64

        m = cls(shape[0], shape[1], 0, dtype=dtype, index_dtype=index_dtype)
        m.num_entries = len(vals)
        m.row_indices = rows.astype(index_dtype, copy=True)
        m.column_indices = cols.astype(index_dtype, copy=True)
        m.values = vals.astype(dtype, copy=True)
        return m

    @classmethod
    def from_dense(cls, array, index_dtype=np.int32):
        """Create from a 2-D array, keeping its nonzero entries in row-major order."""
        array = np.asarray(array)
        if array.ndim != 2:
            raise ValueError("Input must be 2D")
        rows, cols = np.nonzero(array)
        return cls.from_triplets(rows, cols, array[rows, cols], array.shape,
                                 dtype=array.dtype, index_dtype=index_dtype)

    @classmethod
    def from_scipy(cls, m, index_dtype=None):
        """Create from any scipy.sparse matrix (duplicates are preserved for COO input)."""
        coo = sparse.coo_matrix(m)
        return cls.from_triplets(coo.row, coo.col, coo.data, coo.shape,
                                 dtype=coo.dtype, index_dtype=index_dtype)

    def to_scipy(self):
        """Return a scipy.sparse.coo_matrix view of the same triplets."""
        return sparse.coo_matrix(
            (self.values, (self.row_indices, self.column_indices)),
            shape=self.shape,
        )

    def to_dense(self):
        """Dense 2-D array; duplicate coordinates are summed."""
        out = np.zeros(self.shape, dtype=self.values.dtype)
        np.add.at(out, (self.row_indices, self.column_indices), self.values)
        return out

    # ------------------------------------------------------------
    # Container operations
    # ------------------------------------------------------------

    def resize(self, num_rows, num_cols, num_entries):
        """Change shape and storage size. The existing entry prefix is kept."""
        keep = min(self.num_entries, num_entries)
        rows = np.zeros(num_entries, dtype=self.index_dtype)
        cols = np.zeros(num_entries, dtype=self.index_dtype)
        vals = np.zeros(num_entries, dtype=self.dtype)
        rows[:keep] = self.row_indices[:keep]
        cols[:keep] = self.column_indices[:keep]
        vals[:keep] = self.values[:keep]
        self.num_rows = int(num_rows)
        self.num_cols = int(num_cols)
        self.num_entries = int(num_entries)
        self.row_indices = rows
        self.column_indices = cols
        self.values = vals

    def swap(self, other):
        """Exchange the complete contents of two matrices."""
        self.__dict__, other.__dict__ = other.__dict__, self.__dict__

    def copy(self):
        return SparseMatrixCOO.from_triplets(
            self.row_indices, self.column_indices, self.values, self.shape,
            dtype=self.dtype, index_dtype=self.index_dtype)

    # ------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------

    def is_row_sorted(self):
        """True if entries are grouped by row in ascending order."""
        if self.num_entries < 2:
            return True
        return bool(np.all(self.row_indices[1:] >= self.row_indices[:-1]))

    def is_canonical(self):
        """True if entries are strictly ascending by (row, column)."""
        if self.num_entries < 2:
            return True
        r = self.row_indices.astype(np.int64)
        c = self.column_indices.astype(np.int64)
        dr = r[1:] - r[:-1]
        dc = c[1:] - c[:-1]
        return bool(np.all((dr > 0) | ((dr == 0) & (dc > 0))))

    def sort_by_row(self):
        """Return a copy with entries grouped by row (stable within a row)."""
        order = np.argsort(self.row_indices, kind="stable")
        return SparseMatrixCOO.from_triplets(
            self.row_indices[order], self.column_indices[order],
            self.values[order], self.shape,
            dtype=self.dtype, index_dtype=self.index_dtype)

    def canonicalize(self, backend="numpy"):
        """Return a copy sorted by (row, column) with duplicates summed."""
        rows, cols, vals = sort_reduce(
            self.row_indices, self.column_indices, self.values,
            get_backend(backend))
        return SparseMatrixCOO.from_triplets(
            rows, cols, vals, self.shape,
            dtype=self.dtype, index_dtype=self.index_dtype)

    # ------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------

    def validate(self):
        """
        Check array lengths and index bounds.

        Raises
        ------
        ValueError
            If the triplet arrays disagree with num_entries.
        IndexOutOfRange
            For the first row or column index outside the declared shape.
        """
        n = self.num_entries
        if not (len(self.row_indices) == len(self.column_indices)
                == len(self.values) == n):
            raise ValueError(
                f"Triplet lengths differ from num_entries={n}: "
                f"rows={len(self.row_indices)}, "
                f"cols={len(self.column_indices)}, vals={len(self.values)}")

        for axis, indices, bound in (("row", self.row_indices, self.num_rows),
                                     ("column", self.column_indices, self.num_cols)):
            bad = np.flatnonzero((indices < 0) | (indices >= bound))
            if len(bad) > 0:
                pos = int(bad[0])
                raise IndexOutOfRange(axis, pos, int(indices[pos]), bound)

    # ------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------

    @property
    def shape(self):
        return (self.num_rows, self.num_cols)

    @property
    def nnz(self):
        return self.num_entries

    @property
    def dtype(self):
        return self.values.dtype

    @property
    def index_dtype(self):
        return self.row_indices.dtype

    def memory_bytes(self):
        """Bytes held by the three triplet arrays."""
        return (self.row_indices.nbytes + self.column_indices.nbytes
                + self.values.nbytes)

    def __repr__(self):
        return (f"SparseMatrixCOO({self.num_rows:,} x {self.num_cols:,}, "
                f"nnz={self.num_entries:,}, dtype={self.dtype.name}, "
                f"index={self.index_dtype.name})")
