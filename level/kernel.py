# level/kernel.py
"""Radial boolean stencils used to carve the level around the walker."""

from functools import lru_cache
from typing import Tuple

import numpy as np


def _check_size(size: int) -> None:
    if size < 1 or size % 2 == 0:
        raise ValueError(f"Kernel size must be a positive odd integer, got {size}")


def kernel_center(size: int) -> int:
    return (size - 1) // 2


def valid_radius_bounds(size: int) -> Tuple[int, int]:
    """
    Squared radii that produce a non-trivial mask for ``size``.

    The minimum reaches from the center to the middle of an edge, the maximum
    reaches a corner. Radii beyond the maximum yield the full square.
    """
    _check_size(size)
    center = kernel_center(size)
    return center * center, 2 * center * center


def is_valid_radius(size: int, radius_sqr: int) -> bool:
    min_radius, max_radius = valid_radius_bounds(size)
    return min_radius <= radius_sqr <= max_radius


@lru_cache(maxsize=None)
def _unique_radii_sqr(size: int) -> Tuple[int, ...]:
    center = kernel_center(size)
    min_radius_sqr, _ = valid_radius_bounds(size)
    radii = set()
    # one octant is enough, the mask is symmetric
    for x in range(center + 1):
        for y in range(x, center + 1):
            distance_sqr = x * x + y * y
            if distance_sqr >= min_radius_sqr:
                radii.add(distance_sqr)
    return tuple(sorted(radii))


def unique_radii_sqr(size: int) -> list[int]:
    """
    Every squared radius >= the minimum that changes the mask shape.

    Each returned radius activates at least one cell that smaller radii do not,
    so the list enumerates all visually distinct kernels of ``size``.
    """
    _check_size(size)
    return list(_unique_radii_sqr(size))


def build_mask(size: int, radius_sqr: int) -> np.ndarray:
    center = kernel_center(size)
    offsets = np.arange(size) - center
    distance_sqr = np.add.outer(offsets * offsets, offsets * offsets)
    return distance_sqr <= radius_sqr


class Kernel:
    """Immutable ``size x size`` stencil, active where dist² <= radius_sqr."""

    __slots__ = ("_size", "_radius_sqr", "_vector")

    def __init__(self, size: int, radius_sqr: int):
        _check_size(size)
        if radius_sqr < 0:
            raise ValueError(f"Kernel radius must be non-negative, got {radius_sqr}")
        self._size = int(size)
        self._radius_sqr = int(radius_sqr)
        vector = build_mask(self._size, self._radius_sqr)
        vector.setflags(write=False)
        self._vector = vector

    @classmethod
    def from_circularity(cls, size: int, circularity: float) -> "Kernel":
        """
        Derive the radius from a circularity in ``[0, 1]``.

        ``0`` gives the full square (corner radius), ``1`` the disc that just
        touches the edges.
        """
        if not 0.0 <= circularity <= 1.0:
            raise ValueError(f"circularity out of range: {circularity}")
        min_radius, max_radius = valid_radius_bounds(size)
        radius_sqr = max_radius - circularity * (max_radius - min_radius)
        return cls(size, int(round(radius_sqr)))

    @classmethod
    def full(cls, size: int) -> "Kernel":
        return cls(size, valid_radius_bounds(size)[1])

    @property
    def size(self) -> int:
        return self._size

    @property
    def radius_sqr(self) -> int:
        return self._radius_sqr

    @property
    def vector(self) -> np.ndarray:
        """Read-only boolean mask indexed ``[dy, dx]``."""
        return self._vector

    @property
    def offset(self) -> int:
        """Cells the kernel extends left of/above its center."""
        return self._size // 2

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Kernel):
            return NotImplemented
        return self._size == other._size and np.array_equal(self._vector, other._vector)

    def __hash__(self) -> int:
        return hash((self._size, self._vector.tobytes()))

    def __repr__(self) -> str:
        return f"Kernel(size={self._size}, radius_sqr={self._radius_sqr})"
