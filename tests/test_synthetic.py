# ABOUTME: Test suite for the synthetic splat generator
# ABOUTME: Checks layouts, stored-domain value ranges and determinism

import pytest
import numpy as np
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from splatpack.linearize import sigmoid
from splatpack.synthetic import (
    SyntheticKind, SyntheticParams, generate_synthetic, random_unit_quaternions,
)


class TestSyntheticParams:
    """Parameter validation."""

    def test_kind_from_string(self):
        assert SyntheticParams(kind='grid').kind == SyntheticKind.OrderedInsideBox

    @pytest.mark.parametrize("kwargs", [
        dict(splat_count=0),
        dict(scale_uniformness=1.5),
        dict(scale_range=(0.0, 1.0)),
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            SyntheticParams(**kwargs)


class TestGenerateSynthetic:
    """Generated splat data."""

    def test_sphere_layout(self):
        splats = generate_synthetic(SyntheticParams(splat_count=2000))
        unit = splats.positions / np.array([100.0, 50.0, 100.0], dtype=np.float32)
        assert np.all(np.linalg.norm(unit, axis=1) <= 1.0 + 1e-5)

    def test_box_layout(self):
        splats = generate_synthetic(SyntheticParams(splat_count=2000, kind='box'))
        assert np.all(np.abs(splats.positions[:, 1]) <= 50.0)

    def test_grid_layout(self):
        """Grid positions are distinct and span the full range."""
        splats = generate_synthetic(SyntheticParams(splat_count=1000, kind='grid'))
        assert len(np.unique(splats.positions, axis=0)) == 1000
        np.testing.assert_allclose(splats.positions.min(axis=0), [-100.0, -50.0, -100.0], atol=1e-4)
        np.testing.assert_allclose(splats.positions.max(axis=0), [100.0, 50.0, 100.0], atol=1e-4)

    def test_stored_domains(self):
        """Scales are logarithmic and opacity is a logit."""
        splats = generate_synthetic(SyntheticParams(splat_count=500))
        scales = np.exp(splats.scales)
        assert scales.min() >= 0.01 - 1e-5
        assert scales.max() <= 3.0 + 1e-4

        opacity = sigmoid(splats.opacity)
        assert opacity.min() >= 0.1 - 1e-4
        assert opacity.max() <= 0.9999 + 1e-5

    def test_unit_rotations(self):
        splats = generate_synthetic(SyntheticParams(splat_count=500))
        np.testing.assert_allclose(np.linalg.norm(splats.rotations, axis=1), 1.0, atol=1e-5)

    def test_constant_color_and_zero_sh(self):
        splats = generate_synthetic(SyntheticParams(splat_count=10))
        np.testing.assert_array_equal(splats.colors, np.tile([2.0, 1.0, 0.5], (10, 1)))
        assert not splats.sh_coefficients.any()

    def test_deterministic(self):
        a = generate_synthetic(SyntheticParams(splat_count=100, seed=7))
        b = generate_synthetic(SyntheticParams(splat_count=100, seed=7))
        c = generate_synthetic(SyntheticParams(splat_count=100, seed=8))
        np.testing.assert_array_equal(a.positions, b.positions)
        assert not np.array_equal(a.positions, c.positions)

    def test_quaternions_are_unit(self):
        q = random_unit_quaternions(np.random.default_rng(0), 1000)
        np.testing.assert_allclose(np.linalg.norm(q, axis=1), 1.0)
