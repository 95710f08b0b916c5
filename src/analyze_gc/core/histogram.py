"""
Exact frequency histograms keyed by count pairs.
Histograms are built privately per work unit and merged afterwards, so the
merge must be commutative and associative.
"""

from collections import Counter
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Any

import numpy as np

from analyze_gc.core.models import CountPair


class Histogram:
    """
    Mapping from a CountPair (x, y) to the number of windows observed with it.
    Frequencies are Python ints and therefore cannot overflow.
    """

    __slots__ = ("_counts",)

    def __init__(self, counts: Optional[Dict[CountPair, int]] = None):
        self._counts: Counter = Counter()
        if counts:
            for key, frequency in counts.items():
                self.increment(key, frequency)

    def increment(self, key: CountPair, by: int = 1):
        x, y = key
        if x < 0 or y < 0:
            raise ValueError(f"Count pair must be non-negative, got {key}")
        if by < 0:
            raise ValueError(f"Cannot decrement a histogram (by={by})")
        if by:
            self._counts[(int(x), int(y))] += int(by)

    def add_pairs(self, first: np.ndarray, second: np.ndarray):
        """
        Count every (first[i], second[i]) pair in one pass.

        :param first: Non-negative integer array of first components.
        :param second: Non-negative integer array of second components, same shape as first.
        """
        if first.shape != second.shape:
            raise ValueError(f"Shape mismatch: {first.shape} vs {second.shape}")
        if first.size == 0:
            return
        first = first.astype(np.int64, copy=False)
        second = second.astype(np.int64, copy=False)
        # Pack each pair into one integer so np.unique can count them
        width = int(second.max()) + 1
        packed, frequencies = np.unique(first * width + second, return_counts=True)
        for value, frequency in zip(packed.tolist(), frequencies.tolist()):
            self._counts[divmod(value, width)] += frequency

    def update(self, other: "Histogram") -> "Histogram":
        """Merge other into this histogram in place."""
        self._counts.update(other._counts)
        return self

    def merge(self, other: "Histogram") -> "Histogram":
        """Return a new histogram holding the key-wise sum of both."""
        merged = Histogram()
        merged.update(self)
        merged.update(other)
        return merged

    def __add__(self, other: "Histogram") -> "Histogram":
        return self.merge(other)

    def total(self) -> int:
        return sum(self._counts.values())

    def items(self) -> List[Tuple[CountPair, int]]:
        return sorted(self._counts.items())

    def keys(self) -> List[CountPair]:
        return sorted(self._counts)

    def __iter__(self) -> Iterator[CountPair]:
        return iter(self.keys())

    def __getitem__(self, key: CountPair) -> int:
        return self._counts.get(tuple(key), 0)

    def __contains__(self, key) -> bool:
        return tuple(key) in self._counts

    def __len__(self) -> int:
        return len(self._counts)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Histogram):
            return NotImplemented
        return self._counts == other._counts

    def __repr__(self) -> str:
        return f"Histogram({dict(self.items())})"

    def to_arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Return (first, second, frequency) arrays sorted by key.
        Frequencies are returned as float64 since they feed floating point maths.
        """
        items = self.items()
        if not items:
            empty = np.zeros(0)
            return empty, empty, empty
        first = np.array([k[0] for k, _ in items], dtype=np.float64)
        second = np.array([k[1] for k, _ in items], dtype=np.float64)
        frequency = np.array([v for _, v in items], dtype=np.float64)
        return first, second, frequency

    def to_records(self) -> List[Dict[str, Any]]:
        return [{"key": [x, y], "frequency": frequency} for (x, y), frequency in self.items()]


def merge_histograms(histograms: Iterable[Histogram]) -> Histogram:
    """
    Fold any number of histograms into a new one.
    """
    merged = Histogram()
    for histogram in histograms:
        merged.update(histogram)
    return merged
