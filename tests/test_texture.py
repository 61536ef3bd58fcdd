# ABOUTME: Test suite for the color texture grid and its encoding
# ABOUTME: Covers texel placement and the BC7 compressor contract

import pytest
import numpy as np
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from splatpack.errors import FormatError
from splatpack.formats import ColorFormat
from splatpack.gaussian_splat import GaussianSplat
from splatpack.texture import build_color_grid, encode_color_texture


def make_splats(n: int) -> GaussianSplat:
    colors = np.zeros((n, 3))
    colors[:, 0] = np.arange(n) / max(n, 1)
    return GaussianSplat(
        positions=np.zeros((n, 3)),
        scales=np.zeros((n, 3)),
        rotations=np.zeros((n, 4)),
        colors=colors,
        opacity=np.full(n, 0.75),
    )


class TestColorGrid:
    """Scattering splats into texels."""

    def test_grid_shape(self):
        grid = build_color_grid(make_splats(300))
        assert grid.shape == (16, 2048, 4)
        assert grid.dtype == np.float32

    def test_texel_placement(self):
        """Splats 0-3 fill a 2x2 block, splat 256 starts the next tile."""
        splats = make_splats(300)
        grid = build_color_grid(splats)

        assert grid[0, 0, 0] == splats.colors[0, 0]
        assert grid[0, 1, 0] == splats.colors[1, 0]
        assert grid[1, 0, 0] == splats.colors[2, 0]
        assert grid[1, 1, 0] == splats.colors[3, 0]
        assert grid[0, 16, 0] == splats.colors[256, 0]
        assert grid[0, 0, 3] == np.float32(0.75)

    def test_unused_texels_are_zero(self):
        grid = build_color_grid(make_splats(10))
        assert np.count_nonzero(grid[..., 3]) == 10


class TestTextureEncoding:
    """Encoding the grid in each color format."""

    def test_norm8_size(self):
        grid = build_color_grid(make_splats(10))
        data = encode_color_texture(grid, ColorFormat.Norm8x4)
        assert len(data) == 2048 * 16 * 4

    def test_float32_is_raw_grid(self):
        grid = build_color_grid(make_splats(10))
        data = encode_color_texture(grid, ColorFormat.Float32x4)
        assert data == grid.astype('<f4').tobytes()

    def test_bc7_without_compressor(self):
        grid = build_color_grid(make_splats(10))
        with pytest.raises(FormatError):
            encode_color_texture(grid, ColorFormat.BC7)

    def test_bc7_wrong_size(self):
        """A compressor breaking the one-byte-per-texel contract is rejected."""
        grid = build_color_grid(make_splats(10))
        with pytest.raises(FormatError):
            encode_color_texture(grid, ColorFormat.BC7, lambda rgba, w, h: b'\x00' * 16)

    def test_bc7_with_compressor(self):
        """The compressor sees the grid and its dimensions."""
        seen = {}

        def fake_bc7(rgba, width, height):
            seen['shape'] = rgba.shape
            seen['size'] = (width, height)
            return bytes(width * height)

        grid = build_color_grid(make_splats(10))
        data = encode_color_texture(grid, ColorFormat.BC7, fake_bc7)

        assert len(data) == 2048 * 16
        assert seen['shape'] == (16, 2048, 4)
        assert seen['size'] == (2048, 16)
