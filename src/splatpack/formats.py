# ABOUTME: Data format enums and size calculations for the splat asset
# ABOUTME: Values match the renderer's format constants and must not be reordered

from enum import Enum
from typing import Tuple

from .errors import FormatError

FORMAT_VERSION = 2023_10_20
CHUNK_SIZE = 256
TEXTURE_WIDTH = 2048
TEXTURE_TILE = 16
CHUNK_INFO_SIZE = 64


class VectorFormat(Enum):
    Float32 = 0  # 12 bytes: 32F.32F.32F
    Norm16 = 1   # 6 bytes: 16.16.16
    Norm11 = 2   # 4 bytes: 11.10.11
    Norm6 = 3    # 2 bytes: 6.5.5


class ColorFormat(Enum):
    Float32x4 = 0
    Float16x4 = 1
    Norm8x4 = 2
    BC7 = 3


class SHFormat(Enum):
    Float32 = 0
    Float16 = 1
    Norm11 = 2
    Norm6 = 3
    Cluster64k = 4
    Cluster32k = 5
    Cluster16k = 6
    Cluster8k = 7
    Cluster4k = 8

    @property
    def is_clustered(self) -> bool:
        return self.value >= SHFormat.Cluster64k.value


_VECTOR_SIZES = {
    VectorFormat.Float32: 12,
    VectorFormat.Norm16: 6,
    VectorFormat.Norm11: 4,
    VectorFormat.Norm6: 2,
}

_COLOR_SIZES = {
    ColorFormat.Float32x4: 16,
    ColorFormat.Float16x4: 8,
    ColorFormat.Norm8x4: 4,
    ColorFormat.BC7: 1,
}

# Per-splat SH table row sizes, padded to what the renderer reads
_SH_ROW_SIZES = {
    SHFormat.Float32: 16 * 3 * 4,
    SHFormat.Float16: 16 * 3 * 2,
    SHFormat.Norm11: 15 * 4,
    SHFormat.Norm6: 16 * 2,
}

_CLUSTER_COUNTS = {
    SHFormat.Cluster64k: 64 * 1024,
    SHFormat.Cluster32k: 32 * 1024,
    SHFormat.Cluster16k: 16 * 1024,
    SHFormat.Cluster8k: 8 * 1024,
    SHFormat.Cluster4k: 4 * 1024,
}

# Passes over the data for mini-batch k-means; smaller codebooks get more passes
CLUSTER_PASSES = {
    SHFormat.Cluster64k: 0.3,
    SHFormat.Cluster32k: 0.4,
    SHFormat.Cluster16k: 0.5,
    SHFormat.Cluster8k: 0.8,
    SHFormat.Cluster4k: 1.2,
}


def get_vector_size(fmt: VectorFormat) -> int:
    try:
        return _VECTOR_SIZES[fmt]
    except KeyError:
        raise FormatError(f"Unknown vector format: {fmt}") from None


def get_color_size(fmt: ColorFormat) -> int:
    try:
        return _COLOR_SIZES[fmt]
    except KeyError:
        raise FormatError(f"Unknown color format: {fmt}") from None


def get_sh_count(fmt: SHFormat, splat_count: int) -> int:
    """Number of SH table rows: one per splat, or the codebook size."""
    if fmt.is_clustered:
        return _CLUSTER_COUNTS[fmt]
    if fmt in _SH_ROW_SIZES:
        return splat_count
    raise FormatError(f"Unknown SH format: {fmt}")


def get_sh_row_size(fmt: SHFormat) -> int:
    """Bytes per SH table row; clustered tables store half precision rows."""
    if fmt.is_clustered:
        return _SH_ROW_SIZES[SHFormat.Float16]
    return _SH_ROW_SIZES[fmt]


def is_sh_clustering_active(fmt: SHFormat, splat_count: int) -> bool:
    """Clustering only pays off when the codebook is smaller than the data."""
    return fmt.is_clustered and get_sh_count(fmt, splat_count) < splat_count


def get_other_size_no_sh_index(scale_format: VectorFormat) -> int:
    return 4 + get_vector_size(scale_format)


def next_multiple_of(size: int, multiple_of: int) -> int:
    return (size + multiple_of - 1) // multiple_of * multiple_of


def calc_texture_size(splat_count: int) -> Tuple[int, int]:
    """
    Color texture dimensions for a splat count.

    Width is fixed; height is rounded up to whole 16x16 swizzle tiles.

    Returns:
        (width, height)
    """
    width = TEXTURE_WIDTH
    height = max(1, (splat_count + width - 1) // width)
    height = next_multiple_of(height, TEXTURE_TILE)
    return width, height


def uses_chunks(pos_format: VectorFormat, scale_format: VectorFormat,
                color_format: ColorFormat, sh_format: SHFormat) -> bool:
    """Chunking is skipped only when every format is fully lossless."""
    return (pos_format != VectorFormat.Float32 or
            scale_format != VectorFormat.Float32 or
            color_format != ColorFormat.Float32x4 or
            sh_format != SHFormat.Float32)


def calc_pos_data_size(splat_count: int, pos_format: VectorFormat) -> int:
    return splat_count * get_vector_size(pos_format)


def calc_other_data_size(splat_count: int, scale_format: VectorFormat) -> int:
    return splat_count * get_other_size_no_sh_index(scale_format)


def calc_color_data_size(splat_count: int, color_format: ColorFormat) -> int:
    width, height = calc_texture_size(splat_count)
    return width * height * get_color_size(color_format)


def calc_sh_data_size(splat_count: int, sh_format: SHFormat) -> int:
    size = get_sh_count(sh_format, splat_count) * get_sh_row_size(sh_format)
    if sh_format.is_clustered:
        size += splat_count * 2
    return size


def calc_chunk_data_size(splat_count: int) -> int:
    chunk_count = (splat_count + CHUNK_SIZE - 1) // CHUNK_SIZE
    return chunk_count * CHUNK_INFO_SIZE
