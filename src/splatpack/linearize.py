# ABOUTME: Converts stored-domain splat attributes into renderer-ready linear values
# ABOUTME: Log-scale to linear, logit opacity to sigmoid, SH0 to RGB, quaternion packing

import numpy as np
from typing import Optional

from .gaussian_splat import GaussianSplat
from .utils.parallel import parallel_for

SH_C0 = 0.2820948
SCALE_POWER = 1.0 / 8.0


def sigmoid(v: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-v))


def sh0_to_color(dc0: np.ndarray) -> np.ndarray:
    return dc0 * SH_C0 + 0.5


def linear_scale(log_scale: np.ndarray) -> np.ndarray:
    return np.abs(np.exp(log_scale))


def square_centered01(x: np.ndarray) -> np.ndarray:
    """Expand values near 0 and 1, compress values near 0.5."""
    x = x - 0.5
    x = x * x * np.sign(x)
    return x * 2.0 + 0.5


def inv_square_centered01(x: np.ndarray) -> np.ndarray:
    x = (x - 0.5) * 0.5
    x = np.sqrt(np.abs(x)) * np.sign(x)
    return x + 0.5


def normalize_swizzle_rotation(wxyz: np.ndarray) -> np.ndarray:
    """Normalize (w, x, y, z) quaternions and reorder them to (x, y, z, w)."""
    norms = np.linalg.norm(wxyz, axis=-1, keepdims=True)
    q = wxyz / np.where(norms > 0, norms, 1.0)
    return q[..., [1, 2, 3, 0]]


def pack_smallest3_rotation(q: np.ndarray) -> np.ndarray:
    """
    Smallest-three quaternion packing.

    Args:
        q: (N, 4) unit quaternions in (x, y, z, w) order

    Returns:
        (N, 4) array: the three smallest components remapped from
        [-1/sqrt2, 1/sqrt2] to [0, 1], and index/3 of the dropped largest one
    """
    q = np.asarray(q, dtype=np.float32)
    # first index wins ties, like a strict greater-than scan
    index = np.argmax(np.abs(q), axis=-1)

    # remaining components in original order, dropped component last
    orders = np.array([[1, 2, 3, 0], [0, 2, 3, 1], [0, 1, 3, 2], [0, 1, 2, 3]])
    reordered = np.take_along_axis(q, orders[index], axis=-1)

    sign = np.where(reordered[..., 3:4] >= 0, 1.0, -1.0).astype(np.float32)
    three = reordered[..., :3] * sign
    three = (three * np.float32(np.sqrt(2.0))) * 0.5 + 0.5

    out = np.empty(q.shape, dtype=np.float32)
    out[..., :3] = three
    out[..., 3] = index / 3.0
    return out


def unpack_smallest3_rotation(packed: np.ndarray) -> np.ndarray:
    """Inverse of pack_smallest3_rotation; returns (x, y, z, w) quaternions."""
    packed = np.asarray(packed, dtype=np.float32)
    index = np.rint(packed[..., 3] * 3.0).astype(np.int64)
    three = (packed[..., :3] * 2.0 - 1.0) / np.sqrt(2.0)
    dropped = np.sqrt(np.clip(1.0 - np.sum(three * three, axis=-1), 0.0, 1.0))
    full = np.concatenate([three, dropped[..., None]], axis=-1)

    inverse_orders = np.array([[3, 0, 1, 2], [0, 3, 1, 2], [0, 1, 3, 2], [0, 1, 2, 3]])
    return np.take_along_axis(full, inverse_orders[index], axis=-1).astype(np.float32)


def linearize(splats: GaussianSplat,
              prewhiten: bool,
              grain_size: int = 4096,
              max_workers: Optional[int] = None) -> GaussianSplat:
    """
    Convert splats into linear, renderer-ready domains.

    Rotations become smallest-three packed values, scales become linear (and
    x^(1/8) when prewhiten is set), opacity goes through a sigmoid (and the
    square-centered remap when prewhiten is set), SH0 becomes RGB.

    Args:
        splats: Stored-domain splats (not modified)
        prewhiten: Apply the distribution transforms used before chunk quantization
        grain_size: Splats per parallel work item
        max_workers: Thread count for the parallel-for

    Returns:
        New GaussianSplat with linearized attributes
    """
    out = splats.copy()

    def run(start: int, end: int):
        rot = normalize_swizzle_rotation(splats.rotations[start:end])
        out.rotations[start:end] = pack_smallest3_rotation(rot)

        scale = linear_scale(splats.scales[start:end])
        opacity = sigmoid(splats.opacity[start:end])
        if prewhiten:
            scale = np.power(scale, SCALE_POWER)
            opacity = square_centered01(opacity)
        out.scales[start:end] = scale
        out.opacity[start:end] = opacity

        out.colors[start:end] = sh0_to_color(splats.colors[start:end])

    parallel_for(splats.count, grain_size, run, max_workers)
    return out
