"""
Hilbert curve index mapping.

A curve of order n visits every cell of a 2^n x 2^n grid exactly once. The
rank of a cell is its position along that walk, so ranks of order n are
exactly 0 .. 4^n - 1.
"""

import numpy as np

# -----------------------------
# Scalar mapping
# -----------------------------

def _check_order(order):
    if order < 0:
        raise ValueError(f"order has to be >= 0, got {order}")


def _rotate(side, x, y, rx, ry):
    # Flip and transpose the quadrant so the sub-curve starts where the parent expects.
    if ry == 0:
        if rx == 1:
            x = side - 1 - x
            y = side - 1 - y
        x, y = y, x
    return x, y


def xy_to_rank(x: int, y: int, order: int) -> int:
    _check_order(order)
    side = 1 << order
    if not (0 <= x < side and 0 <= y < side):
        raise ValueError(f"({x}, {y}) is outside the {side}x{side} grid")

    rank = 0
    s = side >> 1
    while s > 0:
        rx = 1 if x & s else 0
        ry = 1 if y & s else 0
        rank += s * s * ((3 * rx) ^ ry)
        x, y = _rotate(side, x, y, rx, ry)
        s >>= 1
    return rank


def rank_to_xy(rank: int, order: int):
    _check_order(order)
    side = 1 << order
    if not 0 <= rank < side * side:
        raise ValueError(f"rank {rank} is outside 0..{side * side - 1}")

    x = y = 0
    t = rank
    s = 1
    while s < side:
        rx = 1 & (t // 2)
        ry = 1 & (t ^ rx)
        x, y = _rotate(s, x, y, rx, ry)
        x += s * rx
        y += s * ry
        t //= 4
        s <<= 1
    return x, y

# -----------------------------
# Whole grid (vectorized)
# -----------------------------

def rank_grid(order: int) -> np.ndarray:
    """
    Ranks of every cell at once, as an int64 array indexed [y, x].
    Same walk as xy_to_rank, one numpy pass per curve level.
    """
    _check_order(order)
    side = 1 << order
    y, x = np.mgrid[0:side, 0:side].astype(np.int64)
    ranks = np.zeros((side, side), dtype=np.int64)

    s = side >> 1
    while s > 0:
        rx = (x & s) > 0
        ry = (y & s) > 0
        ranks += s * s * ((3 * rx.astype(np.int64)) ^ ry.astype(np.int64))

        flip = rx & ~ry
        x = np.where(flip, side - 1 - x, x)
        y = np.where(flip, side - 1 - y, y)
        swap = ~ry
        x, y = np.where(swap, y, x), np.where(swap, x, y)
        s >>= 1
    return ranks
