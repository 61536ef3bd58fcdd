# ABOUTME: Bounds calculation and Morton (Z-order) spatial reordering of splats
# ABOUTME: Also provides the 16x16 Morton tile mapping used for the color texture

import logging
import numpy as np
from typing import Tuple

from .errors import InputDataError
from .formats import TEXTURE_WIDTH, TEXTURE_TILE
from .gaussian_splat import GaussianSplat

MORTON_BITS = 21
MORTON_SCALER = float((1 << MORTON_BITS) - 1)

logger = logging.getLogger('splatpack')


def calc_bounds(positions: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Axis-aligned bounding box of all positions.

    Args:
        positions: (N, 3) positions

    Returns:
        (bounds_min, bounds_max) float32 arrays of shape (3,)
    """
    positions = np.asarray(positions, dtype=np.float32)
    if positions.ndim != 2 or positions.shape[1] != 3 or len(positions) == 0:
        raise InputDataError(f"Bounds need a non-empty (N, 3) position array, got {positions.shape}")
    return positions.min(axis=0), positions.max(axis=0)


def morton_part1by2(x: np.ndarray) -> np.ndarray:
    """Insert two 0 bits after each of the 21 low bits of x."""
    # https://fgiesen.wordpress.com/2009/12/13/decoding-morton-codes/
    x = np.asarray(x, dtype=np.uint64) & np.uint64(0x1fffff)
    x = (x ^ (x << np.uint64(32))) & np.uint64(0x1f00000000ffff)
    x = (x ^ (x << np.uint64(16))) & np.uint64(0x1f0000ff0000ff)
    x = (x ^ (x << np.uint64(8))) & np.uint64(0x100f00f00f00f00f)
    x = (x ^ (x << np.uint64(4))) & np.uint64(0x10c30c30c30c30c3)
    x = (x ^ (x << np.uint64(2))) & np.uint64(0x1249249249249249)
    return x


def morton_encode3(ix, iy, iz) -> np.ndarray:
    """Encode three 21-bit integer coordinates into a 63-bit Morton code."""
    return ((morton_part1by2(iz) << np.uint64(2)) |
            (morton_part1by2(iy) << np.uint64(1)) |
            morton_part1by2(ix))


def calc_morton_codes(positions: np.ndarray, bounds_min: np.ndarray, bounds_max: np.ndarray) -> np.ndarray:
    """
    Morton code of every position inside the given bounds.

    Args:
        positions: (N, 3) positions
        bounds_min: (3,) box minimum
        bounds_max: (3,) box maximum

    Returns:
        (N,) uint64 codes
    """
    bounds_min = np.asarray(bounds_min, dtype=np.float64)
    extent = np.asarray(bounds_max, dtype=np.float64) - bounds_min
    # flat axes collapse to coordinate 0
    inv_extent = np.divide(1.0, extent, out=np.zeros_like(extent), where=extent > 0)

    rel = (np.asarray(positions, dtype=np.float64) - bounds_min) * inv_extent
    ipos = np.clip(rel * MORTON_SCALER, 0.0, MORTON_SCALER).astype(np.uint64)
    return morton_encode3(ipos[:, 0], ipos[:, 1], ipos[:, 2])


def morton_order(codes: np.ndarray) -> np.ndarray:
    """
    Indices sorting splats by (code, original index).

    A stable sort on the code alone gives exactly that total order.
    """
    return np.argsort(codes, kind='stable')


def reorder_morton(splats: GaussianSplat, bounds_min: np.ndarray, bounds_max: np.ndarray) -> Tuple[GaussianSplat, np.ndarray]:
    """
    Permute every splat attribute into Morton order.

    Args:
        splats: Input splats (not modified)
        bounds_min: Global bounds minimum
        bounds_max: Global bounds maximum

    Returns:
        (reordered splats, order) where reordered[i] == splats[order[i]]
    """
    codes = calc_morton_codes(splats.positions, bounds_min, bounds_max)
    order = morton_order(codes)
    logger.debug("Morton reordered %d splats", len(order))
    return splats.subset(order), order


def decode_morton_2d_16x16(t) -> Tuple[np.ndarray, np.ndarray]:
    """Decode the low 8 bits of t into (x, y) inside a 16x16 tile."""
    t = np.asarray(t, dtype=np.uint32)
    t = (t & np.uint32(0xFF)) | ((t & np.uint32(0xFE)) << np.uint32(7))
    t &= np.uint32(0x5555)
    t = (t ^ (t >> np.uint32(1))) & np.uint32(0x3333)
    t = (t ^ (t >> np.uint32(2))) & np.uint32(0x0f0f)
    return t & np.uint32(0xF), t >> np.uint32(8)


def splat_index_to_texture_index(idx) -> np.ndarray:
    """
    Texel index (row-major in a TEXTURE_WIDTH wide texture) for splat indices.

    Consecutive runs of 256 splats fill one 16x16 tile in Morton order;
    tiles fill the texture left to right, top to bottom.
    """
    idx = np.asarray(idx, dtype=np.uint32)
    x_in_tile, y_in_tile = decode_morton_2d_16x16(idx)
    tiles_per_row = TEXTURE_WIDTH // TEXTURE_TILE
    tile = idx >> np.uint32(8)
    x = (tile % tiles_per_row) * TEXTURE_TILE + x_in_tile
    y = (tile // tiles_per_row) * TEXTURE_TILE + y_in_tile
    return (y.astype(np.int64) * TEXTURE_WIDTH + x.astype(np.int64))
