# ABOUTME: Deterministic synthetic splat generator for tests and benchmarks
# ABOUTME: Random sphere/box layouts or an ordered grid, in stored (log/logit) domains

import logging
import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from .gaussian_splat import GaussianSplat, SH_BAND_COUNT

logger = logging.getLogger('splatpack')

SYNTHETIC_DC0 = (2.0, 1.0, 0.5)
MAX_OPACITY = 0.9999


class SyntheticKind(Enum):
    RandomInsideSphere = 'sphere'
    RandomInsideBox = 'box'
    OrderedInsideBox = 'grid'


@dataclass
class SyntheticParams:
    """Settings for generate_synthetic."""
    splat_count: int = 10000
    kind: SyntheticKind = SyntheticKind.RandomInsideSphere
    pos_range: Tuple[float, float, float] = (100.0, 50.0, 100.0)
    scale_range: Tuple[float, float] = (0.01, 3.0)
    opacity_range: Tuple[float, float] = (0.1, 1.0)
    scale_uniformness: float = 0.7
    seed: int = 1

    def __post_init__(self):
        if self.splat_count < 1:
            raise ValueError(f"splat_count must be >= 1, got {self.splat_count}")
        if not 0.0 <= self.scale_uniformness <= 1.0:
            raise ValueError(f"scale_uniformness must be in [0, 1], got {self.scale_uniformness}")
        if self.scale_range[0] <= 0:
            raise ValueError("scale_range must be positive")
        self.kind = SyntheticKind(self.kind)


def inv_sigmoid(v: np.ndarray) -> np.ndarray:
    v = np.minimum(v, MAX_OPACITY)
    return np.log(v / (1.0 - v))


def random_unit_quaternions(rng: np.random.Generator, count: int) -> np.ndarray:
    """Uniformly distributed rotations as (x, y, z, w) quaternions."""
    # Shoemake, "Uniform random rotations"
    u1, u2, u3 = rng.random((3, count))
    a = np.sqrt(1.0 - u1)
    b = np.sqrt(u1)
    return np.stack([
        a * np.sin(2 * np.pi * u2),
        a * np.cos(2 * np.pi * u2),
        b * np.sin(2 * np.pi * u3),
        b * np.cos(2 * np.pi * u3),
    ], axis=1)


def _positions(params: SyntheticParams, rng: np.random.Generator) -> np.ndarray:
    n = params.splat_count
    if params.kind == SyntheticKind.RandomInsideSphere:
        directions = rng.normal(size=(n, 3))
        directions /= np.linalg.norm(directions, axis=1, keepdims=True)
        return directions * np.cbrt(rng.random(n))[:, None]
    if params.kind == SyntheticKind.RandomInsideBox:
        return rng.uniform(-1.0, 1.0, size=(n, 3))

    side = max(int(np.ceil(n ** (1.0 / 3.0))), 2)
    i = np.arange(n)
    grid = np.stack([i % side, (i // side) % side, (i // side // side) % side], axis=1)
    return grid * 2.0 / (side - 1) - 1.0


def generate_synthetic(params: SyntheticParams) -> GaussianSplat:
    """
    Generate synthetic splats.

    Positions fill the unit sphere or box (or a regular grid) scaled by
    pos_range and mirrored along z. Scales blend a per-axis random scale with
    a uniform one by scale_uniformness. Color is a constant SH0 value and
    higher SH bands are zero.

    Args:
        params: Generator settings

    Returns:
        GaussianSplat in stored domains (log scale, logit opacity)
    """
    rng = np.random.default_rng(params.seed)
    n = params.splat_count

    positions = _positions(params, rng) * np.asarray(params.pos_range)
    positions[:, 2] *= -1

    q = random_unit_quaternions(rng, n)
    # mirrored around Z axis
    q[:, 0] *= -1
    q[:, 1] *= -1
    rotations = q[:, [3, 0, 1, 2]]

    lo, hi = params.scale_range
    uniform = rng.uniform(lo, hi, size=(n, 1))
    per_axis = rng.uniform(lo, hi, size=(n, 3))
    scales = per_axis + (uniform - per_axis) * params.scale_uniformness

    opacity = inv_sigmoid(rng.uniform(params.opacity_range[0], params.opacity_range[1], size=n))

    logger.debug("Generated %d synthetic splats (%s)", n, params.kind.name)
    return GaussianSplat(
        positions=positions,
        scales=np.log(scales),
        rotations=rotations,
        colors=np.tile(np.asarray(SYNTHETIC_DC0), (n, 1)),
        opacity=opacity,
        sh_coefficients=np.zeros((n, SH_BAND_COUNT, 3)),
    )
