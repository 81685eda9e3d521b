"""
SpGEMM Dense: Reference product of two dense 2-D arrays.

A plain triple loop, compiled with Numba. It shares nothing with the
sparse pipeline, which makes it a useful independent check.
"""

import numpy as np
from numba import njit

from spgemm.exceptions import DimensionMismatch


@njit(cache=True)
def _dense_multiply_jit(A, B, C):
    for i in range(C.shape[0]):
        for j in range(C.shape[1]):
            v = C[i, j]
            for k in range(A.shape[1]):
                v += A[i, k] * B[k, j]
            C[i, j] = v


def multiply_dense(A, B):
    """
    Compute C = A @ B for dense arrays with an explicit accumulation loop.

    Parameters
    ----------
    A : array-like, shape (m, k)
    B : array-like, shape (k, n)

    Returns
    -------
    numpy.ndarray, shape (m, n)
        dtype is numpy.result_type(A, B).
    """
    A = np.asarray(A)
    B = np.asarray(B)
    if A.ndim != 2 or B.ndim != 2:
        raise ValueError("Inputs must be 2D")
    if A.shape[1] != B.shape[0]:
        raise DimensionMismatch(A.shape, B.shape)

    dtype = np.result_type(A, B)
    C = np.zeros((A.shape[0], B.shape[1]), dtype=dtype)
    _dense_multiply_jit(np.ascontiguousarray(A, dtype=dtype),
                        np.ascontiguousarray(B, dtype=dtype), C)
    return C
