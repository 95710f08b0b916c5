"""
Sliding window scanner for analyze_gc.
Enumerates every window of a given length over a contig, keeps running base
counts updated in O(1) per slide, and turns countable windows into histogram keys.
"""

import math
from typing import Dict, Iterator, Sequence

import numpy as np

from analyze_gc.core.histogram import Histogram
from analyze_gc.core.models import Contig, CountPair, StatKind, Symbol, Window

# Number of windows handled per vectorised block in count_windows
CHUNK_SIZE = 1 << 20

_VALID_CODES = (Symbol.A, Symbol.C, Symbol.G, Symbol.T)


def min_valid_bases(length: int, threshold: float) -> int:
    """
    Smallest number of valid bases for a window of the given length to be countable,
    i.e. ceil(length * threshold).

    The product is rounded before the ceiling so that float noise (10 * 0.7 == 7.000000000000001)
    does not reject a window sitting exactly on the threshold.
    """
    return int(math.ceil(round(length * threshold, 9)))


def is_countable(window: Window, threshold: float) -> bool:
    return window.valid_count >= min_valid_bases(window.length, threshold)


def window_keys(window: Window, kinds: Sequence[StatKind]) -> Dict[StatKind, CountPair]:
    """
    Histogram key of a window for each requested statistic kind.
    The combined key uses valid_count as denominator: (gc, valid - gc).
    """
    keys = {}
    for kind in kinds:
        if kind is StatKind.COMBINED_GC:
            keys[kind] = (window.gc_count, window.at_count)
        elif kind is StatKind.G_VS_A:
            keys[kind] = (window.g_count, window.a_count)
        elif kind is StatKind.C_VS_T:
            keys[kind] = (window.c_count, window.t_count)
    return keys


def scan_windows(contig: Contig, length: int) -> Iterator[Window]:
    """
    Lazily yield every window of the given length over a contig, advancing one base at a time.

    :param contig: Contig to scan.
    :param length: Window length.
    :return: Generator of Window objects; yields nothing if the contig is shorter than length.
    """
    if length < 1:
        raise ValueError(f"Window length must be positive, got {length}")
    codes = contig.codes.tolist()
    n = len(codes)
    if n < length:
        return

    # counts[Symbol] holds the running total of each symbol inside the current window
    counts = [0] * len(Symbol)
    for code in codes[:length]:
        counts[code] += 1

    name = contig.name
    start = 0
    while True:
        yield Window(
            contig=name,
            start=start,
            length=length,
            a_count=counts[Symbol.A],
            c_count=counts[Symbol.C],
            g_count=counts[Symbol.G],
            t_count=counts[Symbol.T],
            invalid_count=counts[Symbol.OTHER],
        )
        end = start + length
        if end >= n:
            break
        counts[codes[start]] -= 1
        counts[codes[end]] += 1
        start += 1


def count_window_histograms(contig: Contig, length: int, threshold: float,
                            kinds: Sequence[StatKind]) -> Dict[StatKind, Histogram]:
    """
    Build histograms by walking scan_windows one window at a time.
    Reference path: simple and exact, but far slower than count_windows on real genomes.
    """
    histograms = {kind: Histogram() for kind in kinds}
    min_valid = min_valid_bases(length, threshold)
    for window in scan_windows(contig, length):
        if window.valid_count < min_valid:
            continue
        for kind, key in window_keys(window, kinds).items():
            histograms[kind].increment(key)
    return histograms


def _window_base_counts(block: np.ndarray, length: int, wanted: Sequence[Symbol]) -> Dict[Symbol, np.ndarray]:
    """
    Per-window counts of each wanted symbol for every window fully inside block.
    Each count is the difference of two running totals, so the cost per window is constant.
    """
    result = {}
    for symbol in wanted:
        running = np.empty(block.size + 1, dtype=np.int64)
        running[0] = 0
        np.cumsum(block == int(symbol), dtype=np.int64, out=running[1:])
        result[symbol] = running[length:] - running[:-length]
    return result


def count_windows(codes: np.ndarray, length: int, min_valid: int, kinds: Sequence[StatKind],
                  chunk_size: int = CHUNK_SIZE) -> Dict[StatKind, Histogram]:
    """
    Vectorised window counter used on the hot path.

    The contig is processed in blocks of chunk_size windows. Consecutive blocks overlap
    by length - 1 symbols so every window is seen exactly once.

    :param codes: Symbol codes of one contig.
    :param length: Window length.
    :param min_valid: Minimum number of valid bases for a window to be counted.
    :param kinds: Statistic kinds to accumulate.
    :param chunk_size: Windows per block.
    :return: Dictionary mapping each kind to its Histogram.
    """
    if length < 1:
        raise ValueError(f"Window length must be positive, got {length}")
    if chunk_size < 1:
        raise ValueError(f"Chunk size must be positive, got {chunk_size}")

    histograms = {kind: Histogram() for kind in kinds}
    n_windows = codes.size - length + 1
    if n_windows <= 0:
        return histograms

    combined = StatKind.COMBINED_GC in histograms
    g_vs_a = StatKind.G_VS_A in histograms
    c_vs_t = StatKind.C_VS_T in histograms

    for first in range(0, n_windows, chunk_size):
        last = min(first + chunk_size, n_windows)
        block = codes[first:last + length - 1]
        counts = _window_base_counts(block, length, _VALID_CODES)
        a, c, g, t = (counts[s] for s in _VALID_CODES)

        gc = c + g
        at = a + t
        keep = (gc + at) >= min_valid
        if not keep.any():
            continue
        if not keep.all():
            gc, at, a, c, g, t = (arr[keep] for arr in (gc, at, a, c, g, t))

        if combined:
            histograms[StatKind.COMBINED_GC].add_pairs(gc, at)
        if g_vs_a:
            histograms[StatKind.G_VS_A].add_pairs(g, a)
        if c_vs_t:
            histograms[StatKind.C_VS_T].add_pairs(c, t)

    return histograms
