# ABOUTME: Compressed gaussian splat asset: metadata plus the encoded data buffers
# ABOUTME: Saves and loads the asset as separate .bytes files and a .json descriptor

import json
import logging
import numpy as np
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .chunks import CHUNK_INFO_DTYPE
from .errors import InputDataError
from .formats import (
    CHUNK_INFO_SIZE, FORMAT_VERSION, ColorFormat, SHFormat, VectorFormat,
    calc_texture_size, get_other_size_no_sh_index, get_vector_size,
)

logger = logging.getLogger('splatpack')

# File suffix per data buffer
BUFFER_SUFFIXES = {
    'chunk_data': '_chk.bytes',
    'pos_data': '_pos.bytes',
    'other_data': '_oth.bytes',
    'color_data': '_col.bytes',
    'sh_data': '_shs.bytes',
}


@dataclass
class GaussianSplatAsset:
    """
    Renderer-ready splat data.

    Attributes:
        name: Base name of the asset files
        splat_count: Number of splats
        bounds_min: (3,) minimum of all positions
        bounds_max: (3,) maximum of all positions
        pos_format: Position vector format
        scale_format: Scale vector format
        color_format: Color texture format
        sh_format: SH table format
        chunk_data: Chunk table, None when every format is lossless
        pos_data: Encoded positions
        other_data: Rotation, scale and optional SH index per splat
        color_data: Encoded color texture
        sh_data: SH table
        data_hash: 128-bit content hash as 32 hex digits
        format_version: Asset layout version
    """
    name: str
    splat_count: int
    bounds_min: np.ndarray
    bounds_max: np.ndarray
    pos_format: VectorFormat
    scale_format: VectorFormat
    color_format: ColorFormat
    sh_format: SHFormat
    chunk_data: Optional[bytes]
    pos_data: bytes
    other_data: bytes
    color_data: bytes
    sh_data: bytes
    data_hash: str
    format_version: int = FORMAT_VERSION
    sh_indexed: bool = field(default=False)

    def __post_init__(self):
        self.bounds_min = np.asarray(self.bounds_min, dtype=np.float32).reshape(3)
        self.bounds_max = np.asarray(self.bounds_max, dtype=np.float32).reshape(3)

    @property
    def chunk_count(self) -> int:
        return len(self.chunk_data) // CHUNK_INFO_SIZE if self.chunk_data else 0

    @property
    def texture_size(self) -> Tuple[int, int]:
        return calc_texture_size(self.splat_count)

    @property
    def other_stride(self) -> int:
        """Bytes per splat in the other buffer."""
        return get_other_size_no_sh_index(self.scale_format) + (2 if self.sh_indexed else 0)

    def chunks(self) -> np.ndarray:
        """Chunk table as a structured array (empty when unchunked)."""
        if not self.chunk_data:
            return np.zeros(0, dtype=CHUNK_INFO_DTYPE)
        return np.frombuffer(self.chunk_data, dtype=CHUNK_INFO_DTYPE)

    def positions_bytes(self) -> np.ndarray:
        """(N, vector size) view of the position buffer without padding."""
        size = get_vector_size(self.pos_format)
        data = np.frombuffer(self.pos_data, dtype=np.uint8)
        return data[:self.splat_count * size].reshape(self.splat_count, size)

    def other_bytes(self) -> np.ndarray:
        """(N, other stride) view of the other buffer without padding."""
        stride = self.other_stride
        data = np.frombuffer(self.other_data, dtype=np.uint8)
        return data[:self.splat_count * stride].reshape(self.splat_count, stride)

    def sh_indices(self) -> Optional[np.ndarray]:
        """Per-splat SH codebook indices, or None for per-splat SH tables."""
        if not self.sh_indexed:
            return None
        index_bytes = np.ascontiguousarray(self.other_bytes()[:, -2:])
        return index_bytes.view('<u2').reshape(-1)

    @property
    def total_size(self) -> int:
        return sum(len(getattr(self, attr) or b'') for attr in BUFFER_SUFFIXES)

    def metadata(self) -> dict:
        return {
            'name': self.name,
            'format_version': self.format_version,
            'splat_count': self.splat_count,
            'bounds_min': self.bounds_min.tolist(),
            'bounds_max': self.bounds_max.tolist(),
            'pos_format': self.pos_format.name,
            'scale_format': self.scale_format.name,
            'color_format': self.color_format.name,
            'sh_format': self.sh_format.name,
            'sh_indexed': self.sh_indexed,
            'data_hash': self.data_hash,
        }

    def save(self, output_dir: Union[str, Path]) -> List[Path]:
        """
        Write the asset files.

        Args:
            output_dir: Target directory (created if missing)

        Returns:
            Paths of the written files, descriptor last
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        written = []
        for attr, suffix in BUFFER_SUFFIXES.items():
            data = getattr(self, attr)
            if data is None:
                continue
            path = output_dir / f"{self.name}{suffix}"
            path.write_bytes(data)
            written.append(path)

        meta_path = output_dir / f"{self.name}.json"
        with open(meta_path, 'w') as f:
            json.dump(self.metadata(), f, indent=2)
        written.append(meta_path)

        logger.debug("Saved asset %s (%d files) to %s", self.name, len(written), output_dir)
        return written

    @classmethod
    def load(cls, descriptor: Union[str, Path]) -> 'GaussianSplatAsset':
        """
        Read an asset written by save().

        Args:
            descriptor: Path of the <name>.json file

        Returns:
            GaussianSplatAsset
        """
        descriptor = Path(descriptor)
        with open(descriptor) as f:
            meta = json.load(f)

        try:
            name = meta['name']
            buffers = {}
            for attr, suffix in BUFFER_SUFFIXES.items():
                path = descriptor.parent / f"{name}{suffix}"
                buffers[attr] = path.read_bytes() if path.exists() else None
            for attr in ('pos_data', 'other_data', 'color_data', 'sh_data'):
                if buffers[attr] is None:
                    raise InputDataError(f"Asset {name} is missing its {BUFFER_SUFFIXES[attr]} file")

            return cls(
                name=name,
                splat_count=int(meta['splat_count']),
                bounds_min=meta['bounds_min'],
                bounds_max=meta['bounds_max'],
                pos_format=VectorFormat[meta['pos_format']],
                scale_format=VectorFormat[meta['scale_format']],
                color_format=ColorFormat[meta['color_format']],
                sh_format=SHFormat[meta['sh_format']],
                data_hash=meta['data_hash'],
                format_version=int(meta['format_version']),
                sh_indexed=bool(meta.get('sh_indexed', False)),
                **buffers,
            )
        except KeyError as e:
            raise InputDataError(f"Asset descriptor {descriptor} is missing {e}") from None
