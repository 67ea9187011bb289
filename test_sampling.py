import random
from collections import Counter

import pytest

from streamstat.sampling import ReservoirSampler


def _run(n, k, seed):
    sampler = ReservoirSampler(k, seed=seed)
    for i in range(n):
        sampler.offer({"id": i}, i)
    return sampler.result()


@pytest.mark.parametrize("n,k", [(0, 5), (3, 5), (5, 5), (6, 5), (1000, 10)])
def test_sample_length(n, k):
    assert len(_run(n, k, seed=1)) == min(n, k)


def test_short_stream_keeps_every_row():
    assert sorted(r["id"] for r in _run(4, 10, seed=3)) == [0, 1, 2, 3]


def test_stored_rows_are_copies():
    sampler = ReservoirSampler(2, seed=0)
    row = {"a": "1"}
    sampler.offer(row, 0)
    row["a"] = "changed"
    sampler.offer(row, 1)
    assert sampler.result()[0] == {"a": "1"}


def test_small_stream_inclusion_is_uniform():
    n, k, trials = 20, 5, 20_000
    rng = random.Random(11)
    hits = Counter()
    for _ in range(trials):
        sampler = ReservoirSampler(k, rng=rng)
        for i in range(n):
            sampler.offer({"id": i}, i)
        hits.update(r["id"] for r in sampler.result())
    for i in range(n):
        assert abs(hits[i] / trials - k / n) < 0.02


def test_large_stream_inclusion_converges_to_k_over_n():
    n, k, trials, buckets = 100_000, 1000, 20, 10
    rng = random.Random(2024)
    per_bucket = Counter()
    for _ in range(trials):
        sampler = ReservoirSampler(k, rng=rng)
        for i in range(n):
            sampler.offer({"id": i}, i)
        per_bucket.update(r["id"] * buckets // n for r in sampler.result())
    expected = trials * k / buckets
    for b in range(buckets):
        assert abs(per_bucket[b] - expected) < 0.1 * expected
