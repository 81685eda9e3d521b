"""
SpGEMM Engine - Sparse x Sparse Matrix Multiplication
======================================================

Expand-sort-contract product of coordinate-format sparse matrices with
interchangeable execution backends (numpy, worker threads, Numba).

Quick start:
    import spgemm

    A = spgemm.SparseMatrixCOO.from_triplets([0, 1], [0, 1], [1.0, 2.0], (2, 2))
    B = spgemm.SparseMatrixCOO.from_triplets([0, 1], [1, 0], [3.0, 4.0], (2, 2))

    # Inspect the product before computing it
    report = spgemm.detect_product(A, B)

    # Multiply (auto-routes strategy and backend)
    C = spgemm.multiply(A, B)

    # Pick the execution explicitly, writing into an existing matrix
    spgemm.multiply(A, B, out=C, strategy="scan", backend="threads")

Author: Carmen Esteban
License: MIT
"""

__version__ = "0.1.0"
__author__ = "Carmen Esteban"

from spgemm.exceptions import (
    SpGEMMError, DimensionMismatch, IndexOutOfRange, CapacityExceeded,
    OperandNotSorted,
)
from spgemm.matrix import SparseMatrixCOO
from spgemm.detector import detect_product
from spgemm.product import multiply
from spgemm.dense import multiply_dense
from spgemm.kernels import offsets_from_sorted_indices
from spgemm import kernels

__all__ = [
    "SparseMatrixCOO", "multiply", "multiply_dense", "detect_product",
    "offsets_from_sorted_indices", "kernels",
    "SpGEMMError", "DimensionMismatch", "IndexOutOfRange", "CapacityExceeded",
    "OperandNotSorted",
]
