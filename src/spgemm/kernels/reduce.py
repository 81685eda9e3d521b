"""
Kernels Reduce: Sort intermediate triplets and merge equal coordinates.

Author: Carmen Esteban
"""


def sort_reduce(rows, cols, vals, backend):
    """
    Sort triplets by (row, col) and sum runs that share a coordinate.

    Parameters
    ----------
    rows, cols : numpy.ndarray of int
        Intermediate coordinates, any order.
    vals : numpy.ndarray
        Intermediate values.
    backend : backend object
        Primitive set from spgemm.kernels.backends.

    Returns
    -------
    rows, cols, vals : numpy.ndarray
        Strictly ascending by (row, col); length NNZ <= len(rows).
        Floating-point sums depend on the order equal keys meet in.
    """
    rows, cols, vals = backend.sort_by_key(rows, cols, vals)
    return backend.reduce_by_key(rows, cols, vals)
