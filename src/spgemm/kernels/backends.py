"""
Kernel Backends: Data-parallel primitive sets behind one interface.

Every backend exposes the same methods, so the SpGEMM pipeline is written
once and executed sequentially, over worker threads, or through Numba:

    gather(index, source)                      source[index]
    transform(a, b, op)                        elementwise a <op> b
    scatter_if(values, positions, stencil, target)
    inclusive_scan(x, op)                      running "add" or "max"
    exclusive_scan(x)                          length n+1, trailing total
    inclusive_segmented_scan(x, keys)          running sum, restarts on key change
    sort_by_key(rows, cols, vals)              lexicographic (row, col)
    reduce_by_key(rows, cols, vals)            merge equal (row, col) runs by sum

Backends:
  - "numpy"   : vectorized numpy, single thread
  - "threads" : chunked work over a ThreadPoolExecutor (numpy releases the GIL)
  - "numba"   : JIT kernels with prange (see fast.py)

Author: Carmen Esteban
"""

import os
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from spgemm.kernels import fast as _fast


BACKENDS = ("numpy", "threads", "numba")

_BINARY_OPS = {
    "add": np.add,
    "sub": np.subtract,
    "mul": np.multiply,
    "max": np.maximum,
}

_SCAN_OPS = {
    "add": np.add,
    "max": np.maximum,
}


def _binary_op(op):
    try:
        return _BINARY_OPS[op]
    except KeyError:
        raise ValueError(f"Unknown transform op {op!r}, expected one of "
                         f"{sorted(_BINARY_OPS)}") from None


def _scan_op(op):
    try:
        return _SCAN_OPS[op]
    except KeyError:
        raise ValueError(f"Unknown scan op {op!r}, expected one of "
                         f"{sorted(_SCAN_OPS)}") from None


def _run_heads(rows, cols):
    """Boolean mask marking the first element of each equal-(row, col) run."""
    head = np.empty(len(rows), dtype=bool)
    head[0] = True
    head[1:] = (rows[1:] != rows[:-1]) | (cols[1:] != cols[:-1])
    return head


class NumpyBackend:
    """Sequential primitives built on vectorized numpy calls."""

    name = "numpy"

    def gather(self, index, source):
        return source[index]

    def transform(self, a, b, op):
        return _binary_op(op)(a, b)

    def scatter_if(self, values, positions, stencil, target):
        mask = stencil != 0
        target[positions[mask]] = values[mask]
        return target

    def inclusive_scan(self, x, op="add"):
        return _scan_op(op).accumulate(x)

    def exclusive_scan(self, x):
        out = np.zeros(len(x) + 1, dtype=x.dtype)
        out[1:] = np.cumsum(x)
        return out

    def inclusive_segmented_scan(self, x, keys):
        n = len(x)
        if n == 0:
            return x.copy()
        total = np.cumsum(x)
        head = np.empty(n, dtype=bool)
        head[0] = True
        head[1:] = keys[1:] != keys[:-1]
        starts = np.flatnonzero(head)
        base = total[starts] - x[starts]
        lengths = np.diff(np.append(starts, n))
        return total - np.repeat(base, lengths)

    def sort_by_key(self, rows, cols, vals):
        # lexsort sorts by the last key first
        order = np.lexsort((cols, rows))
        return rows[order], cols[order], vals[order]

    def reduce_by_key(self, rows, cols, vals):
        if len(rows) == 0:
            return rows.copy(), cols.copy(), vals.copy()
        starts = np.flatnonzero(_run_heads(rows, cols))
        return rows[starts], cols[starts], np.add.reduceat(vals, starts)

    def __repr__(self):
        return "NumpyBackend()"


class ThreadedBackend:
    """
    Multi-worker primitives: each call splits its input into contiguous
    chunks and runs numpy on them in a ThreadPoolExecutor.

    Scans run in two phases (chunk-local scan, then a carry per chunk).
    Sorting buckets entries into row ranges and sorts each bucket
    independently. Run-length reduction merges runs that straddle chunk
    boundaries after the per-chunk pass.

    Parameters
    ----------
    max_workers : int, optional
        Worker threads. Defaults to os.cpu_count().
    min_chunk : int
        Smallest chunk handed to a worker; small inputs run on one chunk.
    """

    name = "threads"

    def __init__(self, max_workers=None, min_chunk=65_536):
        if max_workers is None:
            max_workers = os.cpu_count() or 1
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.max_workers = max_workers
        self.min_chunk = max(1, int(min_chunk))
        self._serial = NumpyBackend()

    def _bounds(self, n):
        """Split [0, n) into at most max_workers contiguous non-empty chunks."""
        if n == 0:
            return []
        k = max(1, min(self.max_workers, -(-n // self.min_chunk)))
        edges = np.linspace(0, n, k + 1).astype(np.int64)
        return [(int(lo), int(hi)) for lo, hi in zip(edges[:-1], edges[1:])]

    def _map(self, fn, items):
        if len(items) <= 1:
            return [fn(*args) for args in items]
        with ThreadPoolExecutor(max_workers=len(items)) as executor:
            return list(executor.map(lambda args: fn(*args), items))

    # ------------------------------------------------------------
    # Elementwise
    # ------------------------------------------------------------

    def gather(self, index, source):
        out = np.empty(len(index), dtype=source.dtype)

        def work(lo, hi):
            out[lo:hi] = source[index[lo:hi]]

        self._map(work, self._bounds(len(index)))
        return out

    def transform(self, a, b, op):
        ufunc = _binary_op(op)
        out = np.empty(len(a), dtype=np.result_type(a, b))

        def work(lo, hi):
            ufunc(a[lo:hi], b[lo:hi], out=out[lo:hi])

        self._map(work, self._bounds(len(a)))
        return out

    def scatter_if(self, values, positions, stencil, target):
        def work(lo, hi):
            mask = stencil[lo:hi] != 0
            target[positions[lo:hi][mask]] = values[lo:hi][mask]

        self._map(work, self._bounds(len(values)))
        return target

    # ------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------

    def inclusive_scan(self, x, op="add"):
        ufunc = _scan_op(op)
        out = np.empty(len(x), dtype=x.dtype)
        bounds = self._bounds(len(x))

        def local(lo, hi):
            ufunc.accumulate(x[lo:hi], out=out[lo:hi])

        self._map(local, bounds)

        carries = [None]
        for i in range(1, len(bounds)):
            last = out[bounds[i - 1][1] - 1]
            prev = carries[i - 1]
            carries.append(last if prev is None else ufunc(prev, last))

        def fix(i, lo, hi):
            if carries[i] is not None:
                ufunc(out[lo:hi], carries[i], out=out[lo:hi])

        self._map(fix, [(i, lo, hi) for i, (lo, hi) in enumerate(bounds)])
        return out

    def exclusive_scan(self, x):
        out = np.zeros(len(x) + 1, dtype=x.dtype)
        out[1:] = self.inclusive_scan(x, "add")
        return out

    def inclusive_segmented_scan(self, x, keys):
        out = np.empty(len(x), dtype=x.dtype)
        bounds = self._bounds(len(x))

        def local(lo, hi):
            out[lo:hi] = self._serial.inclusive_segmented_scan(x[lo:hi], keys[lo:hi])
            change = np.flatnonzero(keys[lo + 1:hi] != keys[lo])
            return int(change[0]) + 1 if len(change) else hi - lo

        leading = self._map(local, bounds)

        # A segment crossing a chunk boundary carries the running sum of
        # every earlier chunk it covers.
        carries = [0] * len(bounds)
        for i in range(1, len(bounds)):
            lo = bounds[i][0]
            if keys[lo] != keys[lo - 1]:
                continue
            prev_lo, prev_hi = bounds[i - 1]
            carry = out[prev_hi - 1]
            if leading[i - 1] == prev_hi - prev_lo:
                carry = carry + carries[i - 1]
            carries[i] = carry

        def fix(i, lo):
            if carries[i]:
                out[lo:lo + leading[i]] += carries[i]

        self._map(fix, [(i, lo) for i, (lo, _) in enumerate(bounds)])
        return out

    # ------------------------------------------------------------
    # Sort / reduce
    # ------------------------------------------------------------

    def sort_by_key(self, rows, cols, vals):
        n = len(rows)
        k = len(self._bounds(n))
        if k <= 1:
            return self._serial.sort_by_key(rows, cols, vals)

        # Row-range buckets from a regular sample; buckets never share a row
        step = max(1, n // (k * 64))
        sample = np.sort(rows[::step])
        picks = np.linspace(0, len(sample) - 1, k + 1).astype(np.int64)[1:-1]
        splitters = np.unique(sample[picks])
        bucket = np.searchsorted(splitters, rows, side="right")
        order = np.argsort(bucket, kind="stable")
        edges = np.concatenate(([0], np.cumsum(
            np.bincount(bucket, minlength=len(splitters) + 1))))

        r, c, v = rows[order], cols[order], vals[order]

        def work(lo, hi):
            r[lo:hi], c[lo:hi], v[lo:hi] = self._serial.sort_by_key(
                r[lo:hi], c[lo:hi], v[lo:hi])

        self._map(work, [(int(lo), int(hi)) for lo, hi in zip(edges[:-1], edges[1:])
                         if hi > lo])
        return r, c, v

    def reduce_by_key(self, rows, cols, vals):
        bounds = self._bounds(len(rows))
        if len(bounds) <= 1:
            return self._serial.reduce_by_key(rows, cols, vals)

        parts = self._map(
            lambda lo, hi: self._serial.reduce_by_key(
                rows[lo:hi], cols[lo:hi], vals[lo:hi]),
            bounds)

        out_r, out_c, out_v = [], [], []
        for r, c, v in parts:
            if out_r and out_r[-1][-1] == r[0] and out_c[-1][-1] == c[0]:
                out_v[-1][-1] += v[0]
                r, c, v = r[1:], c[1:], v[1:]
                if len(r) == 0:
                    continue
            out_r.append(r)
            out_c.append(c)
            out_v.append(v)
        return np.concatenate(out_r), np.concatenate(out_c), np.concatenate(out_v)

    def __repr__(self):
        return f"ThreadedBackend(max_workers={self.max_workers}, min_chunk={self.min_chunk:,})"


def get_backend(name="numpy", max_workers=None):
    """
    Resolve a backend by name.

    Parameters
    ----------
    name : str or backend object
        One of BACKENDS. An object that already implements the primitive
        methods is returned unchanged.
    max_workers : int, optional
        Worker count for the "threads" backend.

    Returns
    -------
    backend object
    """
    if not isinstance(name, str):
        return name
    if name == "numpy":
        return NumpyBackend()
    if name == "threads":
        return ThreadedBackend(max_workers=max_workers)
    if name == "numba":
        return _fast.NumbaBackend()
    raise ValueError(f"Unknown backend {name!r}, expected one of {BACKENDS}")
