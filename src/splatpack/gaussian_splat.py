# ABOUTME: Data structure for representing gaussian splat point clouds
# ABOUTME: Stores positions, scales, rotations, colors, opacity and SH bands as parallel arrays

import numpy as np
from dataclasses import dataclass, fields
from typing import Optional

from .errors import InputDataError

SH_BAND_COUNT = 15
SH_DIM = SH_BAND_COUNT * 3


@dataclass
class GaussianSplat:
    """
    Represents a collection of 3D gaussian splats.

    Index i refers to the same splat in every array.

    Attributes:
        positions: (N, 3) array of gaussian centers
        scales: (N, 3) array of gaussian scales (log space until linearized)
        rotations: (N, 4) array of quaternions (w, x, y, z)
        colors: (N, 3) array of SH band 0 coefficients
        opacity: (N,) array of opacity values (logit space until linearized)
        sh_coefficients: (N, 15, 3) spherical harmonics bands 1-3; zeros if omitted
    """
    positions: np.ndarray
    scales: np.ndarray
    rotations: np.ndarray
    colors: np.ndarray
    opacity: np.ndarray
    sh_coefficients: Optional[np.ndarray] = None

    def __post_init__(self):
        """Validate gaussian splat data."""
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                if f.name == 'sh_coefficients':
                    continue
                raise InputDataError(f"Missing required attribute: {f.name}")
            setattr(self, f.name, np.ascontiguousarray(value, dtype=np.float32))

        n = len(self.positions)
        if self.sh_coefficients is None:
            self.sh_coefficients = np.zeros((n, SH_BAND_COUNT, 3), dtype=np.float32)
        elif self.sh_coefficients.ndim == 2 and self.sh_coefficients.shape[1] == SH_DIM:
            self.sh_coefficients = self.sh_coefficients.reshape(n, SH_BAND_COUNT, 3)

        expected = {
            'positions': (n, 3),
            'scales': (n, 3),
            'rotations': (n, 4),
            'colors': (n, 3),
            'opacity': (n,),
            'sh_coefficients': (n, SH_BAND_COUNT, 3),
        }
        for name, shape in expected.items():
            actual = getattr(self, name).shape
            if actual != shape:
                raise InputDataError(
                    f"{name} must have shape {shape}, got {actual}"
                )

    @property
    def count(self) -> int:
        """Return number of gaussians."""
        return len(self.positions)

    def subset(self, indices: np.ndarray) -> 'GaussianSplat':
        """Create a subset (or permutation) of gaussians by indices."""
        return GaussianSplat(
            positions=self.positions[indices],
            scales=self.scales[indices],
            rotations=self.rotations[indices],
            colors=self.colors[indices],
            opacity=self.opacity[indices],
            sh_coefficients=self.sh_coefficients[indices],
        )

    def copy(self) -> 'GaussianSplat':
        """Deep copy, so pipeline stages never mutate caller buffers."""
        return GaussianSplat(**{k: v.copy() for k, v in self.to_dict().items()})

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'positions': self.positions,
            'scales': self.scales,
            'rotations': self.rotations,
            'colors': self.colors,
            'opacity': self.opacity,
            'sh_coefficients': self.sh_coefficients,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'GaussianSplat':
        """Create from dictionary."""
        missing = [k for k in ('positions', 'scales', 'rotations', 'colors', 'opacity') if k not in data]
        if missing:
            raise InputDataError(f"Missing required attributes: {', '.join(missing)}")
        return cls(
            positions=data['positions'],
            scales=data['scales'],
            rotations=data['rotations'],
            colors=data['colors'],
            opacity=data['opacity'],
            sh_coefficients=data.get('sh_coefficients'),
        )
