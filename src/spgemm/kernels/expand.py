"""
Kernels Expand: Materialize every partial product A(i,j) * B(j,k).

Two interchangeable strategies produce the same multiset of triplets:

  "nested" : walk A's entries and copy each matching B row slice into its
             precomputed output range (compiled loop, single thread).
  "scan"   : derive, for every output position, the A entry that owns it
             (scatter + running max) and the B entry it reads (scatter +
             segmented running sum), then gather. No per-element loops, so
             it runs on any backend.

Author: Carmen Esteban
"""

import numpy as np

from spgemm.kernels import fast as _fast


STRATEGIES = ("nested", "scan")


def expand_nested(a_rows, a_cols, a_vals, b_cols, b_vals, layout,
                  index_dtype, dtype):
    """
    Nested-loop expansion into preallocated arrays of length layout.total.

    Returns
    -------
    rows, cols : numpy.ndarray of index_dtype
    vals : numpy.ndarray of dtype
    """
    total = layout.total
    rows = np.empty(total, dtype=index_dtype)
    cols = np.empty(total, dtype=index_dtype)
    vals = np.empty(total, dtype=dtype)
    _fast.expand_nested_jit(
        a_rows.astype(index_dtype, copy=False), a_cols.astype(np.int64, copy=False),
        a_vals.astype(dtype, copy=False),
        b_cols.astype(index_dtype, copy=False), b_vals.astype(dtype, copy=False),
        layout.b_offsets, layout.output_ptr,
        rows, cols, vals,
    )
    return rows, cols, vals


def owner_segments(layout, backend):
    """
    Index of the A entry that owns each intermediate position.

    Each entry index is scattered to its first output position, then a
    running maximum fills the rest of its range. Entries contributing no
    products are masked out of the scatter.
    """
    num_entries = len(layout.segment_lengths)
    segments = np.zeros(layout.total, dtype=np.int64)
    backend.scatter_if(np.arange(num_entries, dtype=np.int64),
                       layout.output_ptr[:-1], layout.segment_lengths, segments)
    return backend.inclusive_scan(segments, "max")


def gather_locations(a_cols, segments, layout, backend):
    """
    Position in B's triplet arrays read by each intermediate position.

    The first position of every segment is seeded with B_offsets[j] and the
    others with 1; a segmented running sum turns that into consecutive
    indices through row j of B.
    """
    locations = np.ones(layout.total, dtype=np.int64)
    row_starts = backend.gather(a_cols, layout.b_offsets)
    backend.scatter_if(row_starts, layout.output_ptr[:-1],
                       layout.segment_lengths, locations)
    return backend.inclusive_segmented_scan(locations, segments)


def expand_scan(a_rows, a_cols, a_vals, b_cols, b_vals, layout, backend,
                index_dtype, dtype):
    """
    Scan-based expansion written purely in backend primitives.

    Returns
    -------
    rows, cols : numpy.ndarray of index_dtype
    vals : numpy.ndarray of dtype
    """
    segments = owner_segments(layout, backend)
    locations = gather_locations(a_cols, segments, layout, backend)

    rows = backend.gather(segments, a_rows).astype(index_dtype, copy=False)
    cols = backend.gather(locations, b_cols).astype(index_dtype, copy=False)
    left = backend.gather(segments, a_vals).astype(dtype, copy=False)
    right = backend.gather(locations, b_vals).astype(dtype, copy=False)
    vals = backend.transform(left, right, "mul")
    return rows, cols, vals


def expand(strategy, a_rows, a_cols, a_vals, b_cols, b_vals, layout, backend,
           index_dtype, dtype):
    """Dispatch to the named expansion strategy."""
    if strategy == "nested":
        return expand_nested(a_rows, a_cols, a_vals, b_cols, b_vals, layout,
                             index_dtype, dtype)
    if strategy == "scan":
        return expand_scan(a_rows, a_cols, a_vals, b_cols, b_vals, layout,
                           backend, index_dtype, dtype)
    raise ValueError(f"Unknown strategy {strategy!r}, expected one of {STRATEGIES}")
