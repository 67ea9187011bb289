import bisect
import math
from collections import OrderedDict
from typing import Dict, Iterator, List, Optional, Tuple

import xxhash

from .classify import NULL, NUMERIC, Cell

NUMERIC_SHARE = 0.9


def _hash64(val: str) -> int:
    return xxhash.xxh64_intdigest(val.encode("utf-8"))


# ---- Unique (KMV) estimator ----
class KMVEstimator:
    """Distinct-value counter: exact up to 2k values, then a k-minimum-values sketch."""
    __slots__ = ("k", "_exact", "_hashes")

    def __init__(self, k: int = 256):
        self.k = k
        self._exact: Optional[set] = set()
        self._hashes: List[int] = []

    def add(self, val: str):
        if self._exact is not None:
            self._exact.add(val)
            if len(self._exact) >= self.k * 2:
                hashes = sorted(_hash64(v) for v in self._exact)
                self._hashes = hashes[:self.k]
                self._exact = None
            return
        h = _hash64(val)
        if len(self._hashes) < self.k:
            bisect.insort(self._hashes, h)
        elif h < self._hashes[-1] and h not in self._hashes:
            self._hashes.pop()
            bisect.insort(self._hashes, h)

    def estimate(self) -> Tuple[int, bool]:
        if self._exact is not None:
            return (len(self._exact), True)
        if len(self._hashes) < self.k:
            return (len(self._hashes), True)
        r_k = self._hashes[-1] / (2**64)
        if r_k <= 0:
            return (len(self._hashes), False)
        return (int(round((self.k - 1) / r_k)), False)


def resolve_data_type(numeric_count: int, text_count: int) -> str:
    total_non_null = numeric_count + text_count
    if total_non_null > 0 and numeric_count / total_non_null >= NUMERIC_SHARE:
        return "numeric"
    if numeric_count > 0 and text_count > 0:
        return "mixed"
    if text_count > 0:
        return "categorical"
    return "unknown"


# ---- Running per-column stats ----
class ColumnStats:
    __slots__ = ("sum", "min", "max", "count", "null_count", "numeric_count", "text_count",
                 "data_type", "_mean", "_m2", "longest_len", "unique")

    def __init__(self, track_unique: bool = True):
        self.sum = 0.0
        self.min = math.inf
        self.max = -math.inf
        self.count = 0
        self.null_count = 0
        self.numeric_count = 0
        self.text_count = 0
        self.data_type: Optional[str] = None
        self._mean = 0.0
        self._m2 = 0.0
        self.longest_len = 0
        self.unique = KMVEstimator(k=256) if track_unique else None

    @property
    def total(self) -> int:
        return self.null_count + self.numeric_count + self.text_count

    def add(self, cell: Cell):
        kind = cell.kind
        if kind == NULL:
            self.null_count += 1
            return
        self.count += 1
        if kind == NUMERIC:
            x = cell.value
            self.sum += x
            if x < self.min: self.min = x
            if x > self.max: self.max = x
            self.numeric_count += 1
            d = x - self._mean
            self._mean += d / self.numeric_count
            self._m2 += d * (x - self._mean)
        else:
            self.text_count += 1
            l = len(cell.value)
            if l > self.longest_len:
                self.longest_len = l
        if self.unique is not None:
            self.unique.add(f"{kind[0]}:{cell.value}")

    def result(self) -> dict:
        has_numbers = self.numeric_count > 0
        if self.unique is None:
            uniq_est, uniq_exact = (None, True)
        else:
            uniq_est, uniq_exact = self.unique.estimate()
        return {
            "count": self.count,
            "null_count": self.null_count,
            "numeric_count": self.numeric_count,
            "text_count": self.text_count,
            "sum": self.sum,
            "min": self.min if has_numbers else None,
            "max": self.max if has_numbers else None,
            "mean": self.sum / self.count if has_numbers else None,
            "stdev": math.sqrt(self._m2 / (self.numeric_count - 1)) if self.numeric_count > 1 else None,
            "longest_len": self.longest_len if self.text_count > 0 else None,
            "unique": uniq_est,
            "unique_exact": uniq_exact,
            "data_type": self.data_type,
        }


class ColumnAccumulator:
    """Column name -> ColumnStats, in first-seen order."""

    def __init__(self, track_unique: bool = True):
        self.track_unique = track_unique
        self._columns: "OrderedDict[str, ColumnStats]" = OrderedDict()

    def __contains__(self, name: str) -> bool:
        return name in self._columns

    def __iter__(self) -> Iterator[str]:
        return iter(self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    def __getitem__(self, name: str) -> ColumnStats:
        return self._columns[name]

    def ensure(self, name: str) -> ColumnStats:
        stats = self._columns.get(name)
        if stats is None:
            stats = self._columns[name] = ColumnStats(track_unique=self.track_unique)
        return stats

    def update(self, name: str, cell: Cell):
        stats = self._columns.get(name)
        if stats is None:
            stats = self.ensure(name)
        stats.add(cell)

    def finalize(self, name: str) -> dict:
        stats = self._columns[name]
        if stats.data_type is None:
            stats.data_type = resolve_data_type(stats.numeric_count, stats.text_count)
        return stats.result()

    def finalize_all(self) -> Dict[str, dict]:
        return OrderedDict((name, self.finalize(name)) for name in self._columns)
