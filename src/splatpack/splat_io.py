# ABOUTME: File I/O for canonical gaussian splat arrays
# ABOUTME: Reads and writes .npz archives holding the stored-domain attribute arrays

import logging
import numpy as np
from pathlib import Path
from typing import Union

from .errors import InputDataError
from .gaussian_splat import GaussianSplat

logger = logging.getLogger('splatpack')


def save_npz(gaussians: GaussianSplat, filepath: Union[str, Path], compress: bool = False) -> Path:
    """
    Save gaussian splats to an .npz archive.

    Args:
        gaussians: GaussianSplat object to save
        filepath: Output file path
        compress: Use zip compression

    Returns:
        Path of the written file
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    writer = np.savez_compressed if compress else np.savez
    with open(filepath, 'wb') as f:
        writer(f, **gaussians.to_dict())
    logger.debug("Saved %d splats to %s", gaussians.count, filepath)
    return filepath


def load_npz(filepath: Union[str, Path]) -> GaussianSplat:
    """
    Load gaussian splats from an .npz archive.

    Args:
        filepath: Input file path

    Returns:
        GaussianSplat object
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Input not found: {filepath}")

    try:
        with np.load(filepath, allow_pickle=False) as data:
            arrays = {name: data[name] for name in data.files}
    except (OSError, ValueError) as e:
        raise InputDataError(f"Could not read splat archive {filepath}: {e}") from e

    gaussians = GaussianSplat.from_dict(arrays)
    logger.debug("Loaded %d splats from %s", gaussians.count, filepath)
    return gaussians
