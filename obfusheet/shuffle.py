from __future__ import annotations

import random

from obfusheet.cells import Grid


def permute_rows(row_count: int, preserve_headers: bool, rng: random.Random) -> list[int]:
    """
    Index map for a row shuffle: position i receives original row perm[i].

    Row 0 stays a fixed point when preserve_headers is set.
    """
    start = 1 if preserve_headers and row_count > 0 else 0
    tail = list(range(start, row_count))
    rng.shuffle(tail)
    return list(range(start)) + tail


def permute_columns(column_count: int, rng: random.Random) -> list[int]:
    perm = list(range(column_count))
    rng.shuffle(perm)
    return perm


def is_permutation(perm: list[int], size: int) -> bool:
    return len(perm) == size and sorted(perm) == list(range(size))


def apply_row_permutation(grid: Grid, perm: list[int]) -> Grid:
    if not is_permutation(perm, len(grid)):
        raise ValueError(f"Row map is not a permutation of {len(grid)} rows")
    return [list(grid[source]) for source in perm]


def apply_column_permutation(grid: Grid, perm: list[int]) -> Grid:
    width = len(grid[0]) if grid else 0
    if not is_permutation(perm, width):
        raise ValueError(f"Column map is not a permutation of {width} columns")
    return [[row[source] for source in perm] for row in grid]
