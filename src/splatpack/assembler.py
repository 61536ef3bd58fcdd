# ABOUTME: Encodes prepared splats into the asset data buffers
# ABOUTME: Emits chunk, position, other, color and SH buffers and hashes them in order

import hashlib
import logging
import struct
import numpy as np
from typing import Optional

from .asset import GaussianSplatAsset
from .chunks import chunk_table_bytes
from .errors import InputDataError
from .formats import (
    FORMAT_VERSION, ColorFormat, SHFormat, VectorFormat,
    next_multiple_of, uses_chunks,
)
from .gaussian_splat import GaussianSplat
from .sh_clustering import SHCodebook
from .texture import TextureCompressor, build_color_grid, encode_color_texture
from .vector_encoding import encode_quaternions, encode_sh_rows, encode_vectors

# Position and other buffers are read as 64-bit words
BUFFER_ALIGNMENT = 8

logger = logging.getLogger('splatpack')


def pad_to(data: bytes, multiple_of: int) -> bytes:
    """Zero-pad data to a multiple of multiple_of bytes."""
    return data + bytes(next_multiple_of(len(data), multiple_of) - len(data))


class ContentHash:
    """
    Running 128-bit hash of the emitted asset data.

    MD5 seeded with the splat count and format version; every appended
    buffer is folded in as raw little-endian bytes.
    """

    def __init__(self, splat_count: int, format_version: int = FORMAT_VERSION):
        self._md5 = hashlib.md5()
        self._md5.update(struct.pack('<II', splat_count & 0xFFFFFFFF, format_version & 0xFFFFFFFF))

    def append(self, data) -> None:
        if isinstance(data, np.ndarray):
            data = np.ascontiguousarray(data).tobytes()
        self._md5.update(data)

    def append_int(self, value: int) -> None:
        self._md5.update(struct.pack('<i', value))

    def hexdigest(self) -> str:
        return self._md5.hexdigest()


class AssetAssembler:
    """Build a GaussianSplatAsset from linearized, chunk-normalized splats."""

    def __init__(self,
                 pos_format: VectorFormat,
                 scale_format: VectorFormat,
                 color_format: ColorFormat,
                 sh_format: SHFormat,
                 texture_compressor: Optional[TextureCompressor] = None):
        self.pos_format = pos_format
        self.scale_format = scale_format
        self.color_format = color_format
        self.sh_format = sh_format
        self.texture_compressor = texture_compressor

    @property
    def uses_chunks(self) -> bool:
        return uses_chunks(self.pos_format, self.scale_format, self.color_format, self.sh_format)

    def create_positions_data(self, splats: GaussianSplat) -> bytes:
        return pad_to(encode_vectors(splats.positions, self.pos_format).tobytes(), BUFFER_ALIGNMENT)

    def create_other_data(self, splats: GaussianSplat, sh_indices: Optional[np.ndarray] = None) -> bytes:
        """Per splat: 4 byte rotation, scale vector, optional u16 SH index."""
        parts = [encode_quaternions(splats.rotations), encode_vectors(splats.scales, self.scale_format)]
        if sh_indices is not None:
            indices = np.asarray(sh_indices, dtype='<u2').reshape(-1, 1)
            parts.append(indices.view(np.uint8))
        return pad_to(np.hstack(parts).tobytes(), BUFFER_ALIGNMENT)

    def create_sh_data(self, splats: GaussianSplat, codebook: Optional[SHCodebook] = None) -> bytes:
        if self.sh_format.is_clustered:
            if codebook is None:
                raise InputDataError(f"SH format {self.sh_format.name} needs a codebook")
            return codebook.rows.tobytes()
        return encode_sh_rows(splats.sh_coefficients, self.sh_format).tobytes()

    def assemble(self,
                 splats: GaussianSplat,
                 bounds_min: np.ndarray,
                 bounds_max: np.ndarray,
                 chunks: Optional[np.ndarray] = None,
                 codebook: Optional[SHCodebook] = None,
                 name: str = 'splats') -> GaussianSplatAsset:
        """
        Encode every buffer and compute the content hash.

        Args:
            splats: Linearized splats, chunk-normalized when chunking is used
            bounds_min: Global position bounds minimum
            bounds_max: Global position bounds maximum
            chunks: Chunk table; required when chunking is used
            codebook: SH codebook; required for clustered SH formats
            name: Asset name

        Returns:
            GaussianSplatAsset
        """
        n = splats.count
        data_hash = ContentHash(n)

        chunk_data = None
        if self.uses_chunks:
            if chunks is None:
                raise InputDataError("Chunked formats need a chunk table")
            chunk_data = chunk_table_bytes(chunks)
            data_hash.append(chunk_data)

        pos_data = self.create_positions_data(splats)
        data_hash.append(pos_data)

        sh_indices = codebook.indices if codebook is not None else None
        if sh_indices is not None and len(sh_indices) != n:
            raise InputDataError(f"Codebook has {len(sh_indices)} indices for {n} splats")
        other_data = self.create_other_data(splats, sh_indices)
        data_hash.append(other_data)

        grid = build_color_grid(splats)
        data_hash.append(grid.astype('<f4'))
        data_hash.append_int(self.color_format.value)
        color_data = encode_color_texture(grid, self.color_format, self.texture_compressor)

        sh_data = self.create_sh_data(splats, codebook)
        data_hash.append(sh_data)

        asset = GaussianSplatAsset(
            name=name,
            splat_count=n,
            bounds_min=bounds_min,
            bounds_max=bounds_max,
            pos_format=self.pos_format,
            scale_format=self.scale_format,
            color_format=self.color_format,
            sh_format=self.sh_format,
            chunk_data=chunk_data,
            pos_data=pos_data,
            other_data=other_data,
            color_data=color_data,
            sh_data=sh_data,
            data_hash=data_hash.hexdigest(),
            sh_indexed=sh_indices is not None,
        )
        logger.debug("Assembled %d splats into %d bytes, hash %s", n, asset.total_size, asset.data_hash)
        return asset
