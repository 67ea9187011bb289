import random
from typing import Any, Dict, List, Optional

Row = Dict[str, Any]


class ReservoirSampler:
    """Uniform fixed-size sample over a stream of unknown length (Algorithm R).

    The caller supplies the 0-based sequence index of every row it offers, so
    each of N >= k rows ends up in the sample with probability k/N.
    Slot order is not input order.
    """
    __slots__ = ("k", "seen", "_slots", "rng")

    def __init__(self, k: int, seed: Optional[int] = None, rng: Optional[random.Random] = None):
        if k < 0:
            raise ValueError("sample size must be >= 0")
        self.k = int(k)
        self.seen = 0
        self._slots: List[Optional[Row]] = [None] * self.k
        self.rng = rng if rng is not None else random.Random(seed)

    def offer(self, row: Row, index: int) -> bool:
        """Offer row number `index`; returns True when it was stored."""
        self.seen = index + 1
        if index < self.k:
            self._slots[index] = dict(row)
            return True
        r = self.rng.randint(0, index)
        if r < self.k:
            self._slots[r] = dict(row)
            return True
        return False

    def __len__(self) -> int:
        return min(self.seen, self.k)

    def result(self) -> List[Row]:
        return [row for row in self._slots[:len(self)] if row is not None]
