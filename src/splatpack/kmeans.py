# ABOUTME: Mini-batch k-means clustering with k-means++ initialization
# ABOUTME: Deterministic PCG hash random numbers; used to build the SH codebook

"""
Mini-batch k-means ("Web-Scale K-Means Clustering", Sculley 2010).

Initial centroids come from several k-means++ runs over a random candidate
pool; the run with the lowest summed distance over a validation batch wins.
Centroids are then refined on random mini-batches with per-cluster running
means, and finally every input point is labeled with its closest centroid.
"""

import logging
import numpy as np
from scipy.spatial.distance import cdist
from typing import Callable, Optional, Tuple

from .errors import KMeansConfigError
from .utils.parallel import parallel_for

logger = logging.getLogger('splatpack')

INIT_ATTEMPTS = 3
INIT_POOL_FACTOR = 10
DIST_SUM_BATCH = 1024
ASSIGN_BATCH = 256 * 1024
DISTANCE_LANES = 8
# Upper bound of points x centroids distance entries computed per work item
ASSIGN_BLOCK_ENTRIES = 4 * 1024 * 1024

_MASK32 = 0xFFFFFFFF
_PCG_MUL = 747796405
_PCG_INC = 2891336453
_PCG_WORD_MUL = 277803737

ProgressCallback = Callable[[float], bool]


# https://www.reedbeta.com/blog/hash-functions-for-gpu-rendering/
def _pcg_word(state: int) -> int:
    word = (((state >> ((state >> 28) + 4)) ^ state) * _PCG_WORD_MUL) & _MASK32
    return (word >> 22) ^ word


def pcg_hash_scalar(value: int) -> int:
    return _pcg_word((value * _PCG_MUL + _PCG_INC) & _MASK32)


def pcg_hash(values) -> np.ndarray:
    """Vectorized PCG hash of 32-bit unsigned inputs; matches pcg_hash_scalar."""
    mask = np.uint64(_MASK32)
    state = (np.asarray(values, dtype=np.uint64) & mask) * np.uint64(_PCG_MUL) + np.uint64(_PCG_INC)
    state &= mask
    word = ((state >> ((state >> np.uint64(28)) + np.uint64(4))) ^ state) * np.uint64(_PCG_WORD_MUL)
    word &= mask
    return ((word >> np.uint64(22)) ^ word).astype(np.uint32)


def pcg_hash_float(value: int, up_to: float) -> float:
    """Hash to a float in [0, up_to) using the top 23 bits of the hash."""
    return (pcg_hash_scalar(value & _MASK32) >> 9) / float(1 << 23) * up_to


class PcgRandom:
    """Sequential PCG generator; the state advances by one LCG step per draw."""

    def __init__(self, seed: int = 1):
        self.state = seed & _MASK32

    def next_uint(self) -> int:
        state = self.state
        self.state = (state * _PCG_MUL + _PCG_INC) & _MASK32
        return _pcg_word(state)


def distance_squared(points: np.ndarray, center: np.ndarray) -> np.ndarray:
    """
    Squared Euclidean distance of each row of points to center.

    Accumulates DISTANCE_LANES components at a time, then the remainder.

    Args:
        points: (M, dim) or (dim,) array
        center: (dim,) array

    Returns:
        (M,) distances (or a scalar for a single point)
    """
    delta = np.asarray(points, dtype=np.float32) - np.asarray(center, dtype=np.float32)
    sq = delta * delta
    dim = sq.shape[-1]
    wide = dim - dim % DISTANCE_LANES
    lanes = sq[..., :wide].reshape(sq.shape[:-1] + (-1, DISTANCE_LANES)).sum(axis=-1).sum(axis=-1)
    return lanes + sq[..., wide:].sum(axis=-1)


def distance_squared_scalar(a, b) -> float:
    """
    One component at a time.

    Reference implementation for checking distance_squared; no clustering
    path calls it.
    """
    d = 0.0
    for x, y in zip(a, b):
        delta = float(x) - float(y)
        d += delta * delta
    return d


def make_random_batch(data_size: int, batch_size: int, seed: int) -> np.ndarray:
    """
    Pick batch_size distinct indices from [0, data_size).

    Candidates are pcg_hash(seed), pcg_hash(seed + 1), ... modulo data_size;
    repeats are rejected, so the result is the first batch_size distinct
    candidates in draw order.
    """
    batch_size = min(batch_size, data_size)
    picked = np.empty(0, dtype=np.int64)
    counter = seed & _MASK32
    while len(picked) < batch_size:
        block = max(2 * (batch_size - len(picked)), 1024)
        draws = pcg_hash((counter + np.arange(block, dtype=np.uint64)) & np.uint64(_MASK32))
        counter = (counter + block) & _MASK32
        combined = np.concatenate([picked, (draws % np.uint32(data_size)).astype(np.int64)])
        _, first = np.unique(combined, return_index=True)
        picked = combined[np.sort(first)][:batch_size]
    return picked


def _assign(points: np.ndarray, means: np.ndarray, labels: np.ndarray,
            distances: Optional[np.ndarray] = None,
            max_workers: Optional[int] = None) -> None:
    """Write the index of the closest mean for every point (first wins ties)."""
    grain = max(1, ASSIGN_BLOCK_ENTRIES // max(1, len(means)))

    def run(start: int, end: int):
        d = cdist(points[start:end], means, 'sqeuclidean')
        closest = np.argmin(d, axis=1)
        labels[start:end] = closest
        if distances is not None:
            distances[start:end] = d[np.arange(end - start), closest]

    parallel_for(len(points), grain, run, max_workers)


def pick_point_index(prefix_sums: np.ndarray, taken: np.ndarray,
                     min_dist_sq: np.ndarray, rval: float) -> int:
    """
    Pick the first untaken point whose running distance sum reaches rval.

    prefix_sums are cumulative untaken distance sums per DIST_SUM_BATCH block;
    a binary search finds the block, a scan of that block finds the point.
    When rounding makes the block miss, falls back to the last untaken
    point, then to 0.
    """
    block = int(np.searchsorted(prefix_sums, rval, side='left'))
    acc = float(prefix_sums[block - 1]) if block > 0 else 0.0

    start = block * DIST_SUM_BATCH
    end = start + DIST_SUM_BATCH
    free = ~taken[start:end]
    running = acc + np.cumsum(np.where(free, min_dist_sq[start:end], 0.0))
    hits = np.flatnonzero(free & (running >= rval))
    if len(hits):
        return start + int(hits[0])

    untaken = np.flatnonzero(~taken)
    if len(untaken):
        return int(untaken[-1])
    return 0


def kmeans_plus_plus(points: np.ndarray, k: int, rng: PcgRandom) -> np.ndarray:
    """
    k-means++ seeding over a candidate pool.

    Args:
        points: (P, dim) candidate pool, P >= k
        k: Number of centroids
        rng: Random state; advanced once for the first pick

    Returns:
        (k, dim) float32 centroids, each a distinct pool point
    """
    size = len(points)
    taken = np.zeros(size, dtype=bool)
    means = np.empty((k, points.shape[1]), dtype=np.float32)

    index = rng.next_uint() % size
    taken[index] = True
    means[0] = points[index]
    min_dist_sq = distance_squared(points, means[0]).astype(np.float64)

    starts = np.arange(0, size, DIST_SUM_BATCH)
    for count in range(1, k):
        partial = np.add.reduceat(np.where(taken, 0.0, min_dist_sq), starts)
        prefix = np.cumsum(partial)

        rval = pcg_hash_float(rng.state + count, float(prefix[-1]))
        index = pick_point_index(prefix, taken, min_dist_sq, rval)

        taken[index] = True
        means[count] = points[index]
        if count + 1 < k:
            np.minimum(min_dist_sq, distance_squared(points, means[count]), out=min_dist_sq)
    return means


def draw_init_batches(data: np.ndarray, pool_size: int, rng: PcgRandom) -> Tuple[np.ndarray, np.ndarray]:
    """
    Candidate pool and validation batch of pool_size points each.

    The two are disjoint when the data holds at least 2 * pool_size points,
    otherwise they are drawn independently.
    """
    size = len(data)
    if size >= 2 * pool_size:
        indices = make_random_batch(size, 2 * pool_size, rng.next_uint())
        return data[indices[:pool_size]], data[indices[pool_size:]]
    candidates = data[make_random_batch(size, pool_size, rng.next_uint())]
    validation = data[make_random_batch(size, pool_size, rng.next_uint())]
    return candidates, validation


def initialize_centroids(data: np.ndarray, k: int, rng: PcgRandom,
                         progress: Optional[ProgressCallback] = None,
                         attempts: int = INIT_ATTEMPTS,
                         max_workers: Optional[int] = None) -> Optional[np.ndarray]:
    """
    Best of several k-means++ seedings, scored on a validation batch.

    Every attempt draws a fresh candidate pool and validation batch of
    min(10 * k, N) points.

    Returns:
        (k, dim) centroids, or None if progress asked to cancel
    """
    pool_size = min(INIT_POOL_FACTOR * k, len(data))
    labels = np.empty(pool_size, dtype=np.int64)
    distances = np.empty(pool_size, dtype=np.float64)
    best = None
    best_sum = np.inf
    for attempt in range(attempts):
        if progress is not None and not progress(attempt / attempts * 0.3):
            return None
        candidates, validation = draw_init_batches(data, pool_size, rng)
        centroids = kmeans_plus_plus(candidates, k, rng)
        _assign(validation, centroids, labels, distances, max_workers)
        dist_sum = float(distances.sum())
        logger.debug("k-means++ attempt %d: validation distance %.4f", attempt + 1, dist_sum)
        if dist_sum < best_sum:
            best_sum = dist_sum
            best = centroids
    return best


def update_centroids(means: np.ndarray, counts: np.ndarray,
                     points: np.ndarray, labels: np.ndarray) -> None:
    """
    Running-mean update of the centroids with one batch, in place.

    Equal to lerping each centroid toward each of its points in turn with
    alpha = 1 / count: every centroid becomes the mean of all points it has
    been assigned so far (its seed position is dropped at the first point).
    """
    k, dim = means.shape
    added = np.bincount(labels, minlength=k).astype(np.float64)
    sums = np.zeros((k, dim), dtype=np.float64)
    np.add.at(sums, labels, points)

    hit = added > 0
    new_counts = counts[hit] + added[hit]
    means[hit] = ((means[hit] * counts[hit][:, None] + sums[hit]) / new_counts[:, None]).astype(np.float32)
    counts[hit] = new_counts


def calculate(dim: int,
              data: np.ndarray,
              batch_size: int,
              passes_over_data: float,
              progress: Optional[ProgressCallback],
              k: int,
              seed: int = 1,
              max_workers: Optional[int] = None) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """
    Cluster data into k centroids.

    Args:
        dim: Dimensionality of each point
        data: Flat array of N * dim floats, or an (N, dim) array
        batch_size: Points per mini-batch (clamped to N)
        passes_over_data: Points consumed by refinement, as a multiple of N
        progress: Called with a completion fraction; returning False cancels
        k: Number of clusters
        seed: RNG seed
        max_workers: Thread count for assignment

    Returns:
        (means (k, dim) float32, labels (N,) int32), or None when cancelled
    """
    if dim < 1:
        raise KMeansConfigError(f"KMeans: dimensionality has to be >= 1, was {dim}")
    if batch_size < 1:
        raise KMeansConfigError(f"KMeans: batch size has to be >= 1, was {batch_size}")
    if not passes_over_data > 0.0001:
        raise KMeansConfigError(f"KMeans: passes over data must be positive, was {passes_over_data}")
    flat = np.asarray(data, dtype=np.float32).reshape(-1)
    if len(flat) % dim != 0:
        raise KMeansConfigError(f"KMeans: input length must be multiple of dim={dim}, was {len(flat)}")
    if k < 1:
        raise KMeansConfigError(f"KMeans: cluster count must be at least 1, was {k}")
    points = flat.reshape(-1, dim)
    size = len(points)
    if size < k:
        raise KMeansConfigError(f"KMeans: input size ({size}) must be at least the cluster count ({k})")

    batch_size = min(size, batch_size)
    rng = PcgRandom(seed)
    logger.debug("KMeans: %d points, dim %d, k %d, batch %d, passes %.2f",
                 size, dim, k, batch_size, passes_over_data)

    means = initialize_centroids(points, k, rng, progress, max_workers=max_workers)
    if means is None:
        return None

    counts = np.zeros(k, dtype=np.float64)
    batch_labels = np.empty(batch_size, dtype=np.int64)
    calc_done = 0.0
    calc_limit = size * passes_over_data
    while calc_done < calc_limit:
        if progress is not None and not progress(0.3 + calc_done / calc_limit * 0.4):
            return None
        batch = points[make_random_batch(size, batch_size, rng.next_uint())]
        _assign(batch, means, batch_labels, max_workers=max_workers)
        update_centroids(means, counts, batch, batch_labels)
        calc_done += batch_size

    labels = np.empty(size, dtype=np.int32)
    for start in range(0, size, ASSIGN_BATCH):
        if progress is not None and not progress(0.7 + start / size * 0.3):
            return None
        end = min(start + ASSIGN_BATCH, size)
        _assign(points[start:end], means, labels[start:end], max_workers=max_workers)
    return means, labels
