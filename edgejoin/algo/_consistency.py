"""Tuple validation shared by the CPU and CUDA join kernels.

Kept as plain Python so each kernel module can compile it with its own
target (``numba.njit`` or ``cuda.jit(device=True)``). It must not call any
other Python-level helper.
"""

from __future__ import annotations


def edge_consistent(j, chosen, froms, tos, rules):
    """Check the data edge placed for query edge ``j`` against edges ``0..j-1``."""

    ej = chosen[j]
    src = froms[ej]
    dst = tos[ej]
    base = (j * (j - 1)) // 2
    for i in range(j):
        ei = chosen[i]
        if ei == ej:
            return False
        other_src = froms[ei]
        other_dst = tos[ei]
        offset = 2 * (base + i)

        rule = rules[offset]
        if rule == 0:
            if src != other_src:
                return False
        elif rule == 1:
            if src != other_dst:
                return False
        elif src == other_src or src == other_dst:
            return False

        rule = rules[offset + 1]
        if rule == 0:
            if dst != other_src:
                return False
        elif rule == 1:
            if dst != other_dst:
                return False
        elif dst == other_src or dst == other_dst:
            return False
    return True
