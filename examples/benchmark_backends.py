"""
SpGEMM backend benchmark
========================

Times every strategy/backend combination of spgemm.multiply on a random
sparse product and checks each result against scipy.sparse.

Usage:
  pip install -e .
  python examples/benchmark_backends.py [size] [density]

Author: Carmen Esteban
"""

import sys
import time

import numpy as np
from scipy import sparse

import spgemm
from spgemm.kernels import fast

# ── Config ──
SIZE = int(sys.argv[1]) if len(sys.argv) > 1 else 20_000
DENSITY = float(sys.argv[2]) if len(sys.argv) > 2 else 5e-4
REPEATS = 3

# ── Problem ──
print(f"Building {SIZE:,} x {SIZE:,} operands, density={DENSITY:.2e}...")
A_sp = sparse.random(SIZE, SIZE, density=DENSITY, format="coo", random_state=1)
B_sp = sparse.random(SIZE, SIZE, density=DENSITY, format="coo", random_state=2)
A = spgemm.SparseMatrixCOO.from_scipy(A_sp)
B = spgemm.SparseMatrixCOO.from_scipy(B_sp).sort_by_row()

report = spgemm.detect_product(A, B)
print(f"  nnz(A)={report['nnz_a']:,}, nnz(B)={report['nnz_b']:,}")
print(f"  Partial products: {report['intermediate']:,} "
      f"(~{report['ram_intermediate_mb']} MB transient)")
print(f"  Auto route: strategy={report['strategy']}, backend={report['backend']}")

# ── Reference ──
t0 = time.time()
ref = (A_sp.tocsr() @ B_sp.tocsr()).tocsr()
ref.sort_indices()
ref = ref.tocoo()
t_ref = time.time() - t0
print(f"  scipy.sparse: nnz={ref.nnz:,} [{t_ref:.3f}s]")

print("\nCompiling Numba kernels...")
fast.warmup()
spgemm.multiply(A, B, strategy="nested", backend="numba")
sys.stdout.flush()

# ── Benchmark ──
print(f"\n{'='*70}")
print(f"  {'strategy':<10}{'backend':<10}{'best time':>12}{'nnz':>14}{'ok':>8}")
print(f"{'='*70}")

for strategy in spgemm.kernels.STRATEGIES:
    for backend in spgemm.kernels.BACKENDS:
        best = float("inf")
        C = None
        for _ in range(REPEATS):
            t0 = time.time()
            C = spgemm.multiply(A, B, strategy=strategy, backend=backend)
            best = min(best, time.time() - t0)
        ok = (C.nnz == ref.nnz
              and np.array_equal(C.row_indices, ref.row)
              and np.array_equal(C.column_indices, ref.col)
              and np.allclose(C.values, ref.data))
        print(f"  {strategy:<10}{backend:<10}{best:>11.3f}s{C.nnz:>14,}{'yes' if ok else 'NO':>8}")
        sys.stdout.flush()

print(f"{'='*70}")
