import math

from streamstat.classify import classify
from streamstat.stats import ColumnAccumulator, ColumnStats, KMVEstimator, resolve_data_type


def _feed(values, track_unique=True):
    stats = ColumnStats(track_unique=track_unique)
    for v in values:
        stats.add(classify(v))
    return stats


def test_counts_partition_every_value():
    stats = _feed(["1", "", "x", "2.5", None, "y"])
    assert (stats.null_count, stats.numeric_count, stats.text_count) == (2, 2, 2)
    assert stats.total == 6
    assert stats.count == 4
    assert stats.sum == 3.5
    assert (stats.min, stats.max) == (1.0, 2.5)


def test_unset_min_max_serialize_as_none():
    acc = ColumnAccumulator()
    for v in ["a", "b", ""]:
        acc.update("c", classify(v))
    out = acc.finalize("c")
    assert out["min"] is None and out["max"] is None and out["mean"] is None
    assert out["data_type"] == "categorical"
    assert out["longest_len"] == 1


def test_data_type_resolution():
    assert resolve_data_type(9, 1) == "numeric"
    assert resolve_data_type(8, 2) == "mixed"
    assert resolve_data_type(0, 3) == "categorical"
    assert resolve_data_type(0, 0) == "unknown"
    assert resolve_data_type(5, 0) == "numeric"


def test_all_null_column_is_unknown():
    acc = ColumnAccumulator()
    acc.ensure("empty")
    acc.update("empty", classify(""))
    out = acc.finalize("empty")
    assert out["data_type"] == "unknown"
    assert out["null_count"] == 1
    assert out["count"] == 0


def test_mean_and_stdev():
    out = ColumnAccumulator()
    for v in ["2", "4", "4", "4", "5", "5", "7", "9"]:
        out.update("x", classify(v))
    res = out.finalize("x")
    assert res["mean"] == 5.0
    assert math.isclose(res["stdev"], math.sqrt(32 / 7))


def test_columns_keep_first_seen_order():
    acc = ColumnAccumulator()
    for name in ["b", "a", "b", "c"]:
        acc.update(name, classify("1"))
    assert list(acc) == ["b", "a", "c"]
    assert list(acc.finalize_all()) == ["b", "a", "c"]


def test_unique_exact_then_estimated():
    small = KMVEstimator(k=16)
    for i in range(10):
        small.add(str(i % 5))
    assert small.estimate() == (5, True)

    big = KMVEstimator(k=256)
    for i in range(50_000):
        big.add(f"v{i}")
    est, exact = big.estimate()
    assert not exact
    assert 35_000 < est < 65_000


def test_unique_tracking_can_be_disabled():
    out = _feed(["1", "2"], track_unique=False).result()
    assert out["unique"] is None
