# ABOUTME: Clusters per-splat SH coefficients into a half precision codebook
# ABOUTME: Produces codebook table rows plus a u16 codebook index per splat

import logging
import time
import numpy as np
from dataclasses import dataclass
from typing import Optional

from . import kmeans
from .formats import CLUSTER_PASSES, SHFormat, get_sh_count, is_sh_clustering_active
from .gaussian_splat import SH_BAND_COUNT, SH_DIM
from .vector_encoding import encode_sh_rows

SH_CLUSTER_BATCH_SIZE = 2048

logger = logging.getLogger('splatpack')


@dataclass
class SHCodebook:
    """Clustered SH table: k half precision rows and one row index per splat."""
    rows: np.ndarray     # (k, 96) uint8
    indices: np.ndarray  # (N,) uint16

    @property
    def size(self) -> int:
        return len(self.rows)


def identity_codebook(sh: np.ndarray) -> SHCodebook:
    """Codebook holding every splat's own SH, used when clustering would not shrink the data."""
    sh = np.asarray(sh, dtype=np.float32).reshape(-1, SH_BAND_COUNT, 3)
    return SHCodebook(rows=encode_sh_rows(sh, SHFormat.Float16),
                      indices=np.arange(len(sh), dtype=np.uint16))


def cluster_sh(sh: np.ndarray,
               sh_format: SHFormat,
               batch_size: int = SH_CLUSTER_BATCH_SIZE,
               passes_over_data: Optional[float] = None,
               progress: Optional[kmeans.ProgressCallback] = None,
               seed: int = 1,
               max_workers: Optional[int] = None) -> Optional[SHCodebook]:
    """
    Build the SH codebook for a clustered SH format.

    When the codebook would hold at least as many entries as there are
    splats, every splat keeps its own row instead.

    Args:
        sh: (N, 15, 3) SH bands in stored (not chunk-normalized) domain
        sh_format: One of the Cluster formats
        batch_size: Mini-batch size
        passes_over_data: Override of the per-format refinement passes
        progress: Cancellation/progress callback
        seed: k-means RNG seed
        max_workers: Thread count for assignment

    Returns:
        SHCodebook, or None when cancelled
    """
    if not sh_format.is_clustered:
        raise ValueError(f"{sh_format.name} is not a clustered SH format")
    sh = np.asarray(sh, dtype=np.float32).reshape(-1, SH_BAND_COUNT, 3)
    n = len(sh)
    if not is_sh_clustering_active(sh_format, n):
        logger.info("%d splats fit in a %s codebook, storing SH per splat", n, sh_format.name)
        return identity_codebook(sh)

    k = get_sh_count(sh_format, n)
    passes = passes_over_data if passes_over_data is not None else CLUSTER_PASSES[sh_format]

    t0 = time.time()
    result = kmeans.calculate(SH_DIM, sh.reshape(n, SH_DIM), batch_size, passes, progress, k,
                              seed=seed, max_workers=max_workers)
    if result is None:
        logger.warning("SH clustering cancelled")
        return None
    means, labels = result

    rows = encode_sh_rows(means.reshape(k, SH_BAND_COUNT, 3), SHFormat.Float16)
    logger.info("Clustered %.2fM SHs into %dK (%.1f pass/%d batch) in %.0fs",
                n / 1000000.0, k // 1024, passes, batch_size, time.time() - t0)
    return SHCodebook(rows=rows, indices=labels.astype(np.uint16))
