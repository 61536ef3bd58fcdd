# ABOUTME: Test suite for mini-batch k-means clustering
# ABOUTME: Covers PCG random numbers, batch sampling, seeding, centroid updates and cancellation

import pytest
import numpy as np
import sys
from pathlib import Path
from scipy.spatial.distance import cdist

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from splatpack import kmeans
from splatpack.errors import KMeansConfigError
from splatpack.kmeans import (
    PcgRandom, calculate, distance_squared, distance_squared_scalar,
    make_random_batch, pcg_hash, pcg_hash_scalar, pick_point_index, update_centroids,
)


def make_blobs(n_per_blob: int = 1250, dim: int = 45, seed: int = 0):
    """Four tight, well separated gaussian blobs."""
    rng = np.random.default_rng(seed)
    centers = np.zeros((4, dim), dtype=np.float32)
    for i in range(4):
        centers[i, i] = 100.0
    points = np.concatenate([c + rng.normal(scale=0.5, size=(n_per_blob, dim)) for c in centers])
    blob = np.repeat(np.arange(4), n_per_blob)
    return points.astype(np.float32), blob, centers


class TestPcgHash:
    """Deterministic hash based random numbers."""

    def test_vectorized_matches_scalar(self):
        values = [0, 1, 2, 12345, 0x7FFFFFFF, 0xFFFFFFFF]
        expected = [pcg_hash_scalar(v) for v in values]
        np.testing.assert_array_equal(pcg_hash(values), expected)

    def test_output_is_32_bit(self):
        hashes = pcg_hash(np.arange(10000))
        assert hashes.dtype == np.uint32
        assert len(np.unique(hashes)) > 9990

    def test_generator_sequence(self):
        """Each draw hashes the state before the LCG step."""
        rng = PcgRandom(7)
        rng.next_uint()
        assert rng.next_uint() == pcg_hash_scalar(7)

    def test_same_seed_same_sequence(self):
        a = PcgRandom(3)
        b = PcgRandom(3)
        assert [a.next_uint() for _ in range(5)] == [b.next_uint() for _ in range(5)]


class TestRandomBatch:
    """Rejection sampled index batches."""

    def sequential_batch(self, data_size, batch_size, seed):
        out = []
        counter = seed
        while len(out) < batch_size:
            value = pcg_hash_scalar(counter) % data_size
            counter += 1
            if value not in out:
                out.append(value)
        return out

    @pytest.mark.parametrize("data_size,batch_size,seed", [(100, 10, 1), (50, 50, 9), (100000, 3000, 42)])
    def test_matches_sequential_draws(self, data_size, batch_size, seed):
        """The batch is the first distinct candidates in draw order."""
        batch = make_random_batch(data_size, batch_size, seed)
        assert batch.tolist() == self.sequential_batch(data_size, batch_size, seed)

    def test_distinct_and_in_range(self):
        batch = make_random_batch(1000, 900, 5)
        assert len(batch) == 900
        assert len(np.unique(batch)) == 900
        assert batch.min() >= 0 and batch.max() < 1000

    def test_clamped_to_data_size(self):
        """Asking for more than the data holds gives a permutation."""
        batch = make_random_batch(64, 1000, 2)
        np.testing.assert_array_equal(np.sort(batch), np.arange(64))


class TestDistance:
    """Lane-wise squared distance."""

    @pytest.mark.parametrize("dim", [7, 16, 45])
    def test_matches_scalar(self, dim):
        """Reassociated sums agree with the one-at-a-time reference."""
        rng = np.random.default_rng(dim)
        points = rng.normal(size=(20, dim)).astype(np.float32)
        center = rng.normal(size=dim).astype(np.float32)

        result = distance_squared(points, center)
        expected = [distance_squared_scalar(p, center) for p in points]
        np.testing.assert_allclose(result, expected, rtol=1e-5)

    def test_single_point(self):
        assert float(distance_squared(np.array([3.0, 4.0]), np.zeros(2))) == 25.0


class TestPickPointIndex:
    """Weighted k-means++ pick."""

    def setup_method(self):
        self.dist = np.array([1.0, 2.0, 3.0, 4.0])
        self.taken = np.zeros(4, dtype=bool)

    def test_first_point(self):
        prefix = np.array([10.0])
        assert pick_point_index(prefix, self.taken, self.dist, 0.5) == 0
        assert pick_point_index(prefix, self.taken, self.dist, 1.0) == 0

    def test_running_sum(self):
        prefix = np.array([10.0])
        assert pick_point_index(prefix, self.taken, self.dist, 1.5) == 1
        assert pick_point_index(prefix, self.taken, self.dist, 9.5) == 3

    def test_skips_taken(self):
        self.taken[1] = True
        prefix = np.array([8.0])
        assert pick_point_index(prefix, self.taken, self.dist, 1.5) == 2

    def test_fallbacks(self):
        """Past the end: last untaken point, then 0."""
        self.taken[3] = True
        assert pick_point_index(np.array([6.0]), self.taken, self.dist, 100.0) == 2
        assert pick_point_index(np.array([0.0]), np.ones(4, dtype=bool), self.dist, 1.0) == 0

    def test_second_block(self, monkeypatch):
        """The binary search skips whole blocks."""
        monkeypatch.setattr(kmeans, 'DIST_SUM_BATCH', 2)
        prefix = np.array([3.0, 10.0])
        assert pick_point_index(prefix, self.taken, self.dist, 3.5) == 2

    def test_scan_stays_in_block(self, monkeypatch):
        """A rounding miss inside the found block does not spill into the next one."""
        monkeypatch.setattr(kmeans, 'DIST_SUM_BATCH', 2)
        dist = np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
        taken = np.zeros(6, dtype=bool)
        # block 1 sums to 10.0, below its prefix of 10.5
        prefix = np.array([3.0, 10.5, 21.5])
        assert pick_point_index(prefix, taken, dist, 10.2) == 5


class TestUpdateCentroids:
    """Running mean centroid updates."""

    def test_matches_sequential_lerp(self):
        rng = np.random.default_rng(0)
        means = rng.normal(size=(5, 3)).astype(np.float32)
        counts = np.zeros(5, dtype=np.float64)

        expected_means = means.astype(np.float64)
        expected_counts = counts.copy()
        for _ in range(3):
            points = rng.normal(size=(40, 3)).astype(np.float32)
            labels = rng.integers(0, 4, size=40)
            for p, label in zip(points, labels):
                expected_counts[label] += 1
                expected_means[label] += (p - expected_means[label]) / expected_counts[label]
            update_centroids(means, counts, points, labels)

        np.testing.assert_allclose(means, expected_means, rtol=1e-5, atol=1e-6)
        np.testing.assert_array_equal(counts, expected_counts)

    def test_untouched_centroid_keeps_seed(self):
        """Clusters without points in the batch do not move."""
        means = np.array([[1.0, 1.0], [5.0, 5.0]], dtype=np.float32)
        counts = np.zeros(2)
        update_centroids(means, counts, np.array([[0.0, 0.0], [2.0, 2.0]], dtype=np.float32), np.array([0, 0]))
        np.testing.assert_array_equal(means, [[1.0, 1.0], [5.0, 5.0]])
        assert counts.tolist() == [2.0, 0.0]


class TestPreconditions:
    """Invalid parameters are rejected before any work."""

    @pytest.mark.parametrize("kwargs", [
        dict(dim=0),
        dict(batch_size=0),
        dict(passes_over_data=0.0),
        dict(dim=7),
        dict(k=0),
        dict(k=101),
    ])
    def test_invalid(self, kwargs):
        args = dict(dim=3, data=np.zeros(300, dtype=np.float32), batch_size=10,
                    passes_over_data=1.0, progress=None, k=4)
        args.update(kwargs)
        with pytest.raises(KMeansConfigError):
            calculate(**args)


class TestClustering:
    """Full clustering runs."""

    def test_output_shapes(self):
        points, _, _ = make_blobs(n_per_blob=100, dim=5)
        means, labels = calculate(5, points, 64, 1.0, None, 8)

        assert means.shape == (8, 5)
        assert means.dtype == np.float32
        assert labels.shape == (400,)
        assert labels.dtype == np.int32

    def test_labels_are_nearest_centroid(self):
        points, _, _ = make_blobs(n_per_blob=100, dim=5)
        means, labels = calculate(5, points, 64, 1.0, None, 8)

        expected = np.argmin(cdist(points, means, 'sqeuclidean'), axis=1)
        np.testing.assert_array_equal(labels, expected)

    def test_four_blobs(self):
        """With k = 4 every blob ends up with its own centroid."""
        points, blob, centers = make_blobs(n_per_blob=500, dim=45)
        means, labels = calculate(45, points.reshape(-1), 256, 1.0, None, 4)

        for b in range(4):
            assert len(np.unique(labels[blob == b])) == 1
        assert len(np.unique(labels)) == 4
        centroid_blob = np.argmin(cdist(means, centers), axis=1)
        np.testing.assert_array_equal(np.sort(centroid_blob), [0, 1, 2, 3])

    def test_large_codebook_respects_blobs(self):
        """k = 1024 over 5,000 points: labels point at centroids inside the right blob."""
        points, blob, centers = make_blobs(n_per_blob=1250, dim=45)
        means, labels = calculate(45, points, 2048, 0.5, None, 1024)

        assert labels.min() >= 0 and labels.max() < 1024
        centroid_blob = np.argmin(cdist(means, centers), axis=1)
        assert np.mean(centroid_blob[labels] == blob) >= 0.95

    def test_k_equals_n(self):
        """One centroid per point reproduces the points."""
        rng = np.random.default_rng(3)
        points = rng.normal(size=(30, 4)).astype(np.float32)
        means, labels = calculate(4, points, 30, 1.0, None, 30)

        np.testing.assert_array_equal(np.sort(labels), np.arange(30))
        np.testing.assert_allclose(means[labels], points, atol=1e-5)

    def test_deterministic(self):
        points, _, _ = make_blobs(n_per_blob=200, dim=8)
        a = calculate(8, points, 128, 1.0, None, 16, seed=5)
        b = calculate(8, points, 128, 1.0, None, 16, seed=5)
        np.testing.assert_array_equal(a[0], b[0])
        np.testing.assert_array_equal(a[1], b[1])


class TestCancellation:
    """Progress callback returning False aborts the run."""

    def test_cancel_during_init(self):
        points, _, _ = make_blobs(n_per_blob=100, dim=5)
        assert calculate(5, points, 64, 1.0, lambda f: False, 8) is None

    def test_cancel_during_refinement(self):
        points, _, _ = make_blobs(n_per_blob=100, dim=5)
        seen = []

        def progress(fraction):
            seen.append(fraction)
            return fraction < 0.3

        assert calculate(5, points, 64, 1.0, progress, 8) is None
        assert seen[-1] >= 0.3
        assert seen[-1] < 0.7

    def test_progress_fractions(self):
        """Fractions rise through init, refinement and labeling."""
        points, _, _ = make_blobs(n_per_blob=100, dim=5)
        seen = []

        def progress(fraction):
            seen.append(fraction)
            return True

        assert calculate(5, points, 64, 1.0, progress, 8) is not None
        assert seen[0] == 0.0
        assert all(b >= a for a, b in zip(seen, seen[1:]))
        assert seen[-1] >= 0.7 and seen[-1] < 1.0
