# ABOUTME: Fixed-width bit packing for normalized vectors, quaternions, colors and SH rows
# ABOUTME: All layouts are little-endian and described by explicit bit-width tables

"""
Vector encoding.

Every packed format is described by a tuple of channel bit widths, lowest bits
first. A channel value v in [0, 1] is stored as floor(v * (2^n - 1) + 0.5) and
decoded as e / (2^n - 1), so the round trip error per channel is at most
1 / (2 * (2^n - 1)).
"""

import numpy as np
from typing import Sequence

from .errors import FormatError
from .formats import VectorFormat, ColorFormat, SHFormat, get_vector_size, get_sh_row_size

# Bit widths per channel, first channel in the lowest bits
VECTOR_LAYOUTS = {
    VectorFormat.Norm16: (16, 16, 16),
    VectorFormat.Norm11: (11, 10, 11),
    VectorFormat.Norm6: (6, 5, 5),
}
QUAT_LAYOUT = (10, 10, 10, 2)
SH_NORM11_LAYOUT = (11, 10, 11)
SH_NORM6_LAYOUT = (5, 6, 5)
COLOR_NORM8_LAYOUT = (8, 8, 8, 8)


def float_to_half_bits(values) -> np.ndarray:
    """IEEE-754 binary16 bit patterns, round-to-nearest-even."""
    return np.asarray(values, dtype=np.float32).astype(np.float16).view(np.uint16)


def half_bits_to_float(bits) -> np.ndarray:
    return np.asarray(bits, dtype=np.uint16).view(np.float16).astype(np.float32)


def pack_half_pair(lo, hi) -> np.ndarray:
    """Pack two floats as halves into one u32: lo in the low 16 bits."""
    lo_bits = float_to_half_bits(lo).astype(np.uint32)
    hi_bits = float_to_half_bits(hi).astype(np.uint32)
    return lo_bits | (hi_bits << np.uint32(16))


def unpack_half_pair(packed):
    packed = np.asarray(packed, dtype=np.uint32)
    lo = half_bits_to_float((packed & np.uint32(0xFFFF)).astype(np.uint16))
    hi = half_bits_to_float((packed >> np.uint32(16)).astype(np.uint16))
    return lo, hi


def quantize(values, bits: int) -> np.ndarray:
    """Map [0, 1] values to n-bit unsigned integers with round-to-nearest."""
    scale = float((1 << bits) - 1)
    v = np.clip(np.asarray(values, dtype=np.float64), 0.0, 1.0)
    return np.floor(v * scale + 0.5).astype(np.uint64)


def dequantize(codes, bits: int) -> np.ndarray:
    return (np.asarray(codes, dtype=np.float64) / float((1 << bits) - 1)).astype(np.float32)


def pack_channels(values: np.ndarray, layout: Sequence[int]) -> np.ndarray:
    """
    Quantize (..., C) values and pack each row into one integer.

    Args:
        values: Array whose last axis has one entry per layout channel
        layout: Channel bit widths, lowest bits first

    Returns:
        uint64 array of shape values.shape[:-1]
    """
    values = np.asarray(values)
    if values.shape[-1] != len(layout):
        raise FormatError(f"Expected {len(layout)} channels, got {values.shape[-1]}")
    packed = np.zeros(values.shape[:-1], dtype=np.uint64)
    shift = 0
    for channel, bits in enumerate(layout):
        packed |= quantize(values[..., channel], bits) << np.uint64(shift)
        shift += bits
    return packed


def unpack_channels(packed: np.ndarray, layout: Sequence[int]) -> np.ndarray:
    packed = np.asarray(packed, dtype=np.uint64)
    out = np.empty(packed.shape + (len(layout),), dtype=np.float32)
    shift = 0
    for channel, bits in enumerate(layout):
        mask = np.uint64((1 << bits) - 1)
        out[..., channel] = dequantize((packed >> np.uint64(shift)) & mask, bits)
        shift += bits
    return out


def _to_bytes(packed: np.ndarray, size: int) -> np.ndarray:
    """Low `size` little-endian bytes of each uint64 (last axis becomes bytes)."""
    raw = packed.astype('<u8').view(np.uint8).reshape(packed.shape + (8,))
    return np.ascontiguousarray(raw[..., :size])


def _from_bytes(data: np.ndarray, size: int) -> np.ndarray:
    data = np.asarray(data, dtype=np.uint8)
    padded = np.zeros(data.shape[:-1] + (8,), dtype=np.uint8)
    padded[..., :size] = data
    return padded.view('<u8')[..., 0]


def encode_vectors(values: np.ndarray, fmt: VectorFormat) -> np.ndarray:
    """
    Encode (N, 3) vectors.

    Args:
        values: Vectors normalized to [0, 1] (any range for Float32)
        fmt: Target vector format

    Returns:
        (N, format size) uint8 array
    """
    values = np.asarray(values, dtype=np.float32).reshape(-1, 3)
    size = get_vector_size(fmt)
    if fmt == VectorFormat.Float32:
        return values.astype('<f4').view(np.uint8).reshape(-1, size)
    return _to_bytes(pack_channels(values, VECTOR_LAYOUTS[fmt]), size)


def decode_vectors(data: np.ndarray, fmt: VectorFormat) -> np.ndarray:
    size = get_vector_size(fmt)
    data = np.asarray(data, dtype=np.uint8).reshape(-1, size)
    if fmt == VectorFormat.Float32:
        return np.ascontiguousarray(data).view('<f4').reshape(-1, 3).astype(np.float32)
    return unpack_channels(_from_bytes(data, size), VECTOR_LAYOUTS[fmt])


def encode_quaternions(packed_rotations: np.ndarray) -> np.ndarray:
    """
    Encode smallest-three packed rotations as 10.10.10.2 bits.

    Args:
        packed_rotations: (N, 4) with the three kept components in [0, 1]
            and the dropped component index / 3 in the last channel

    Returns:
        (N, 4) uint8 array
    """
    return _to_bytes(pack_channels(packed_rotations, QUAT_LAYOUT), 4)


def decode_quaternions(data: np.ndarray) -> np.ndarray:
    return unpack_channels(_from_bytes(np.asarray(data).reshape(-1, 4), 4), QUAT_LAYOUT)


def encode_colors(texels: np.ndarray, fmt: ColorFormat) -> np.ndarray:
    """
    Encode RGBA texels for the uncompressed color formats.

    Args:
        texels: (M, 4) float texels
        fmt: Float32x4, Float16x4 or Norm8x4

    Returns:
        (M, bytes per texel) uint8 array
    """
    texels = np.asarray(texels, dtype=np.float32).reshape(-1, 4)
    if fmt == ColorFormat.Float32x4:
        return texels.astype('<f4').view(np.uint8).reshape(-1, 16)
    if fmt == ColorFormat.Float16x4:
        return texels.astype('<f2').view(np.uint8).reshape(-1, 8)
    if fmt == ColorFormat.Norm8x4:
        return quantize(texels, 8).astype(np.uint8)
    raise FormatError(f"Color format {fmt.name} needs a texture compressor")


def encode_sh_rows(sh: np.ndarray, fmt: SHFormat) -> np.ndarray:
    """
    Encode per-row SH band sets into fixed-stride table rows.

    Args:
        sh: (N, 15, 3) SH bands, normalized to [0, 1] for the Norm formats
        fmt: Float32, Float16, Norm11 or Norm6

    Returns:
        (N, row size) uint8 array
    """
    sh = np.asarray(sh, dtype=np.float32).reshape(-1, 15, 3)
    n = len(sh)
    row_size = get_sh_row_size(fmt)

    if fmt in (SHFormat.Float32, SHFormat.Float16):
        dtype = '<f4' if fmt == SHFormat.Float32 else '<f2'
        padded = np.zeros((n, 16, 3), dtype=dtype)
        padded[:, :15] = sh
        return padded.view(np.uint8).reshape(n, row_size)
    if fmt == SHFormat.Norm11:
        words = pack_channels(sh, SH_NORM11_LAYOUT).astype('<u4')
        return words.view(np.uint8).reshape(n, row_size)
    if fmt == SHFormat.Norm6:
        words = np.zeros((n, 16), dtype='<u2')
        words[:, :15] = pack_channels(sh, SH_NORM6_LAYOUT)
        return words.view(np.uint8).reshape(n, row_size)
    raise FormatError(f"SH format {fmt.name} has no per-splat row encoding")


def decode_sh_rows(data: np.ndarray, fmt: SHFormat) -> np.ndarray:
    row_size = get_sh_row_size(fmt)
    data = np.ascontiguousarray(np.asarray(data, dtype=np.uint8).reshape(-1, row_size))
    n = len(data)
    if fmt.is_clustered or fmt == SHFormat.Float16:
        return data.view('<f2').reshape(n, 16, 3)[:, :15].astype(np.float32)
    if fmt == SHFormat.Float32:
        return data.view('<f4').reshape(n, 16, 3)[:, :15].astype(np.float32)
    if fmt == SHFormat.Norm11:
        return unpack_channels(data.view('<u4').reshape(n, 15), SH_NORM11_LAYOUT)
    if fmt == SHFormat.Norm6:
        return unpack_channels(data.view('<u2').reshape(n, 16)[:, :15], SH_NORM6_LAYOUT)
    raise FormatError(f"Unknown SH format: {fmt}")
