# ABOUTME: Builds the Morton-tiled RGBA color texture and encodes it
# ABOUTME: BC7 output is delegated to an injected texture compressor

import logging
import numpy as np
from typing import Callable, Optional

from .errors import FormatError
from .formats import ColorFormat, calc_texture_size, get_color_size
from .gaussian_splat import GaussianSplat
from .morton import splat_index_to_texture_index
from .vector_encoding import encode_colors

logger = logging.getLogger('splatpack')

# compressor(rgba, width, height) -> bytes, where rgba is a (height, width, 4)
# float32 array; must return exactly width * height bytes for BC7
TextureCompressor = Callable[[np.ndarray, int, int], bytes]


def build_color_grid(splats: GaussianSplat) -> np.ndarray:
    """
    Scatter splat color and opacity into the texture grid.

    Args:
        splats: Linearized (and chunk-normalized, when chunking) splats

    Returns:
        (height, width, 4) float32 RGBA grid; unused texels are zero
    """
    width, height = calc_texture_size(splats.count)
    grid = np.zeros((width * height, 4), dtype=np.float32)
    texel = splat_index_to_texture_index(np.arange(splats.count))
    grid[texel, :3] = splats.colors
    grid[texel, 3] = splats.opacity
    return grid.reshape(height, width, 4)


def encode_color_texture(grid: np.ndarray,
                         color_format: ColorFormat,
                         compressor: Optional[TextureCompressor] = None) -> bytes:
    """
    Encode the color grid in the requested format.

    Args:
        grid: (height, width, 4) RGBA grid from build_color_grid
        color_format: Target color format
        compressor: Required for BC7

    Returns:
        Encoded texture bytes
    """
    height, width = grid.shape[:2]
    if color_format != ColorFormat.BC7:
        return encode_colors(grid.reshape(-1, 4), color_format).tobytes()

    if compressor is None:
        raise FormatError("BC7 color format requires a texture compressor")
    logger.debug("Compressing %dx%d color texture with %s", width, height,
                 getattr(compressor, '__name__', type(compressor).__name__))
    data = bytes(compressor(np.ascontiguousarray(grid, dtype=np.float32), width, height))
    expected = width * height * get_color_size(color_format)
    if len(data) != expected:
        raise FormatError(f"Texture compressor returned {len(data)} bytes, expected {expected}")
    return data
