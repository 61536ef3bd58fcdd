# ABOUTME: Per-chunk bounds quantization of Morton-ordered splats
# ABOUTME: Computes chunk headers and rewrites attributes into [0, 1] within each chunk

import logging
import numpy as np
from typing import Optional, Tuple

from .formats import CHUNK_SIZE, CHUNK_INFO_SIZE
from .gaussian_splat import GaussianSplat
from .utils.parallel import parallel_for
from .vector_encoding import pack_half_pair

# Smallest allowed chunk extent; zero-width bounds would divide by zero
BOUNDS_EPSILON = 1.0e-5

logger = logging.getLogger('splatpack')

# Chunk header layout as read by the renderer: (field, offset, type)
CHUNK_INFO_FIELDS = (
    ('colR', 0, '<u4'),
    ('colG', 4, '<u4'),
    ('colB', 8, '<u4'),
    ('colA', 12, '<u4'),
    ('posX', 16, ('<f4', (2,))),
    ('posY', 24, ('<f4', (2,))),
    ('posZ', 32, ('<f4', (2,))),
    ('sclX', 40, '<u4'),
    ('sclY', 44, '<u4'),
    ('sclZ', 48, '<u4'),
    ('shR', 52, '<u4'),
    ('shG', 56, '<u4'),
    ('shB', 60, '<u4'),
)

CHUNK_INFO_DTYPE = np.dtype({
    'names': [f[0] for f in CHUNK_INFO_FIELDS],
    'offsets': [f[1] for f in CHUNK_INFO_FIELDS],
    'formats': [f[2] for f in CHUNK_INFO_FIELDS],
    'itemsize': CHUNK_INFO_SIZE,
})


def chunk_count(splat_count: int) -> int:
    return (splat_count + CHUNK_SIZE - 1) // CHUNK_SIZE


def widen_bounds(bmin: np.ndarray, bmax: np.ndarray) -> np.ndarray:
    """
    Return max widened so that max > min in every component.

    Adds BOUNDS_EPSILON, and where that is absorbed by float32 rounding of a
    large min, steps to the next representable float instead.
    """
    bmin = np.asarray(bmin, dtype=np.float32)
    bmax = np.maximum(np.asarray(bmax, dtype=np.float32), bmin + np.float32(BOUNDS_EPSILON))
    return np.where(bmax > bmin, bmax, np.nextafter(bmin, np.float32(np.inf)))


def _chunk_min_max(values: np.ndarray, starts: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    bmin = np.minimum.reduceat(values, starts, axis=0)
    bmax = np.maximum.reduceat(values, starts, axis=0)
    return bmin, widen_bounds(bmin, bmax)


def _normalize(values: np.ndarray, bmin: np.ndarray, bmax: np.ndarray, chunk_ids: np.ndarray) -> np.ndarray:
    lo = bmin[chunk_ids]
    hi = bmax[chunk_ids]
    return np.clip((values - lo) / (hi - lo), 0.0, 1.0)


def quantize_chunks(splats: GaussianSplat,
                    grain_size: int = 8,
                    max_workers: Optional[int] = None) -> Tuple[np.ndarray, GaussianSplat]:
    """
    Compute chunk headers and normalize splat attributes within each chunk.

    Must run on Morton-ordered, linearized splats. Rotations are already in
    [0, 1] and are left unchanged.

    Args:
        splats: Linearized splats (not modified)
        grain_size: Chunks per parallel work item
        max_workers: Thread count for the parallel-for

    Returns:
        (chunk table as CHUNK_INFO_DTYPE array, normalized splats)
    """
    n = splats.count
    count = chunk_count(n)
    chunks = np.zeros(count, dtype=CHUNK_INFO_DTYPE)
    out = splats.copy()

    def run(chunk_begin: int, chunk_end: int):
        s0 = chunk_begin * CHUNK_SIZE
        s1 = min(chunk_end * CHUNK_SIZE, n)
        starts = np.arange(0, s1 - s0, CHUNK_SIZE)
        chunk_ids = np.arange(s1 - s0) // CHUNK_SIZE

        pos = splats.positions[s0:s1]
        scl = splats.scales[s0:s1]
        col = np.concatenate([splats.colors[s0:s1], splats.opacity[s0:s1, None]], axis=1)
        shs = splats.sh_coefficients[s0:s1]

        pos_min, pos_max = _chunk_min_max(pos, starts)
        scl_min, scl_max = _chunk_min_max(scl, starts)
        col_min, col_max = _chunk_min_max(col, starts)
        # one extent per color channel shared by all SH bands
        sh_min = np.minimum.reduceat(shs.min(axis=1), starts, axis=0)
        sh_max = widen_bounds(sh_min, np.maximum.reduceat(shs.max(axis=1), starts, axis=0))

        info = chunks[chunk_begin:chunk_end]
        for axis, name in enumerate(('X', 'Y', 'Z')):
            info['pos' + name] = np.stack([pos_min[:, axis], pos_max[:, axis]], axis=1)
            info['scl' + name] = pack_half_pair(scl_min[:, axis], scl_max[:, axis])
        for channel, name in enumerate(('R', 'G', 'B', 'A')):
            info['col' + name] = pack_half_pair(col_min[:, channel], col_max[:, channel])
        for channel, name in enumerate(('R', 'G', 'B')):
            info['sh' + name] = pack_half_pair(sh_min[:, channel], sh_max[:, channel])

        out.positions[s0:s1] = _normalize(pos, pos_min, pos_max, chunk_ids)
        out.scales[s0:s1] = _normalize(scl, scl_min, scl_max, chunk_ids)
        col_n = _normalize(col, col_min, col_max, chunk_ids)
        out.colors[s0:s1] = col_n[:, :3]
        out.opacity[s0:s1] = col_n[:, 3]
        out.sh_coefficients[s0:s1] = _normalize(shs, sh_min[:, None, :], sh_max[:, None, :], chunk_ids)

    parallel_for(count, grain_size, run, max_workers)
    logger.debug("Quantized %d splats into %d chunks", n, count)
    return chunks, out


def chunk_table_bytes(chunks: np.ndarray) -> bytes:
    return np.ascontiguousarray(chunks, dtype=CHUNK_INFO_DTYPE).tobytes()
