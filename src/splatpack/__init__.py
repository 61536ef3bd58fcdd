# ABOUTME: Package initialization for the gaussian splat compressor
# ABOUTME: Exports main classes for easy importing

from .gaussian_splat import GaussianSplat
from .asset import GaussianSplatAsset
from .errors import SplatPackError, InputDataError, KMeansConfigError, FormatError
from .formats import VectorFormat, ColorFormat, SHFormat
from .pipeline import CompressionConfig, DataQuality, Pipeline
from .splat_io import save_npz, load_npz
from .synthetic import SyntheticKind, SyntheticParams, generate_synthetic

__version__ = "0.1.0"

__all__ = [
    "GaussianSplat",
    "GaussianSplatAsset",
    "SplatPackError",
    "InputDataError",
    "KMeansConfigError",
    "FormatError",
    "VectorFormat",
    "ColorFormat",
    "SHFormat",
    "CompressionConfig",
    "DataQuality",
    "Pipeline",
    "save_npz",
    "load_npz",
    "SyntheticKind",
    "SyntheticParams",
    "generate_synthetic",
]
