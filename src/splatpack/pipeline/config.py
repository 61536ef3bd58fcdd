# ABOUTME: Configuration dataclass for compression settings
# ABOUTME: Applies quality presets, validates user inputs and provides defaults

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from ..formats import (
    ColorFormat, SHFormat, VectorFormat,
    calc_chunk_data_size, calc_color_data_size, calc_other_data_size,
    calc_pos_data_size, calc_sh_data_size, is_sh_clustering_active, uses_chunks,
)
from ..sh_clustering import SH_CLUSTER_BATCH_SIZE
from ..texture import TextureCompressor


class DataQuality(Enum):
    VeryHigh = 'very-high'
    High = 'high'
    Medium = 'medium'
    Low = 'low'
    VeryLow = 'very-low'
    Custom = 'custom'


# (position, scale, color, sh) formats per quality preset
QUALITY_PRESETS = {
    DataQuality.VeryHigh: (VectorFormat.Float32, VectorFormat.Float32, ColorFormat.Float32x4, SHFormat.Float32),
    DataQuality.High: (VectorFormat.Norm16, VectorFormat.Norm16, ColorFormat.Float16x4, SHFormat.Norm11),
    DataQuality.Medium: (VectorFormat.Norm11, VectorFormat.Norm11, ColorFormat.Norm8x4, SHFormat.Norm6),
    DataQuality.Low: (VectorFormat.Norm11, VectorFormat.Norm6, ColorFormat.Norm8x4, SHFormat.Cluster16k),
    DataQuality.VeryLow: (VectorFormat.Norm11, VectorFormat.Norm6, ColorFormat.BC7, SHFormat.Cluster4k),
}


def _parse_enum(enum_cls, value):
    """Accept an enum member, its name, or its value."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str) and value in enum_cls.__members__:
        return enum_cls[value]
    try:
        return enum_cls(value)
    except ValueError:
        valid = ', '.join(enum_cls.__members__)
        raise ValueError(f"Invalid {enum_cls.__name__}: {value!r} (valid: {valid})") from None


@dataclass
class CompressionConfig:
    """Configuration for the splat compression pipeline."""

    quality: DataQuality = DataQuality.Medium
    # Explicit formats are only used with DataQuality.Custom; missing ones default to Medium
    pos_format: Optional[VectorFormat] = None
    scale_format: Optional[VectorFormat] = None
    color_format: Optional[ColorFormat] = None
    sh_format: Optional[SHFormat] = None

    seed: int = 1  # k-means RNG seed
    cluster_batch_size: int = SH_CLUSTER_BATCH_SIZE
    passes_over_data: Optional[float] = None  # None: per-format default
    max_workers: Optional[int] = None  # None: CPU count
    grain_size: int = 8192  # splats per parallel work item
    texture_compressor: Optional[TextureCompressor] = None  # required for BC7

    output_dir: Optional[Path] = None  # None: keep the asset in memory only
    asset_name: str = 'splats'

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.quality = _parse_enum(DataQuality, self.quality)

        if self.quality == DataQuality.Custom:
            defaults = QUALITY_PRESETS[DataQuality.Medium]
            self.pos_format = _parse_enum(VectorFormat, defaults[0] if self.pos_format is None else self.pos_format)
            self.scale_format = _parse_enum(VectorFormat, defaults[1] if self.scale_format is None else self.scale_format)
            self.color_format = _parse_enum(ColorFormat, defaults[2] if self.color_format is None else self.color_format)
            self.sh_format = _parse_enum(SHFormat, defaults[3] if self.sh_format is None else self.sh_format)
        else:
            self.pos_format, self.scale_format, self.color_format, self.sh_format = QUALITY_PRESETS[self.quality]

        if self.color_format == ColorFormat.BC7 and self.texture_compressor is None:
            raise ValueError("BC7 color format requires a texture_compressor")

        if self.cluster_batch_size < 1:
            raise ValueError(f"cluster_batch_size must be >= 1, got {self.cluster_batch_size}")

        if self.passes_over_data is not None and self.passes_over_data <= 0:
            raise ValueError(f"passes_over_data must be positive, got {self.passes_over_data}")

        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")

        if self.grain_size < 1:
            raise ValueError(f"grain_size must be >= 1, got {self.grain_size}")

        if not self.asset_name or any(c in self.asset_name for c in '/\\'):
            raise ValueError(f"Invalid asset name: {self.asset_name!r}")

        if self.output_dir is not None:
            self.output_dir = Path(self.output_dir)

    @property
    def uses_chunks(self) -> bool:
        """Chunk quantization runs unless every format is lossless."""
        return uses_chunks(self.pos_format, self.scale_format, self.color_format, self.sh_format)

    def estimate_sizes(self, splat_count: int) -> dict:
        """
        Byte sizes of each asset buffer for a splat count, before padding.

        Args:
            splat_count: Number of splats

        Returns:
            Dict of buffer name to size, plus 'total'
        """
        sh_size = calc_sh_data_size(splat_count, self.sh_format)
        if self.sh_format.is_clustered and not is_sh_clustering_active(self.sh_format, splat_count):
            sh_size = calc_sh_data_size(splat_count, SHFormat.Float16) + splat_count * 2
        sizes = {
            'chunk': calc_chunk_data_size(splat_count) if self.uses_chunks else 0,
            'pos': calc_pos_data_size(splat_count, self.pos_format),
            'other': calc_other_data_size(splat_count, self.scale_format),
            'color': calc_color_data_size(splat_count, self.color_format),
            'sh': sh_size,
        }
        sizes['total'] = sum(sizes.values())
        return sizes
