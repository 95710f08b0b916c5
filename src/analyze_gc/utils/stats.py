"""
Statistics utilities.
Reference assembly statistics (N50 family, base composition) and summary
statistics of count-pair histograms.
"""

import numpy as np
from typing import Dict, List, Sequence, TYPE_CHECKING

from analyze_gc.core.models import Contig, Symbol

if TYPE_CHECKING:
    from analyze_gc.core.histogram import Histogram


def calculate_assembly_stats(lengths: List[int]) -> Dict[str, int]:
    """
    Calculate assembly statistics (N50, N90) and total bases.

    :param lengths: List of contig lengths.
    :return: Dictionary with stats.
    """
    stats = {"Total Bases": 0, "Num Contigs": 0, "Longest Contig": 0, "N50": 0, "N90": 0}
    if not lengths:
        return stats

    lengths_sorted = sorted(lengths, reverse=True)
    total_bases = sum(lengths_sorted)
    stats["Total Bases"] = total_bases
    stats["Num Contigs"] = len(lengths_sorted)
    stats["Longest Contig"] = lengths_sorted[0]

    cumulative = np.cumsum(lengths_sorted)
    for nx in (50, 90):
        # First contig at which the cumulative length reaches nx% of the total
        idx = int(np.searchsorted(cumulative, total_bases * nx / 100.0))
        stats[f"N{nx}"] = lengths_sorted[min(idx, len(lengths_sorted) - 1)]
    return stats


def calculate_reference_stats(contigs: Sequence[Contig]) -> Dict[str, float]:
    """
    Assembly statistics plus base composition of a reference.

    :param contigs: Loaded contigs.
    :return: Dictionary with assembly stats, valid/invalid base totals and GC percentage.
    """
    stats: Dict[str, float] = dict(calculate_assembly_stats([c.length for c in contigs]))
    totals = {symbol: 0 for symbol in Symbol}
    for contig in contigs:
        for symbol, count in contig.base_counts().items():
            totals[symbol] += count

    valid = sum(totals[s] for s in Symbol if s.is_valid)
    gc = totals[Symbol.G] + totals[Symbol.C]
    stats["Valid Bases"] = valid
    stats["Invalid Bases"] = totals[Symbol.OTHER]
    stats["GC (%)"] = round(gc / valid * 100, 4) if valid else 0.0
    return stats


def summarize_histogram(histogram: "Histogram") -> Dict[str, float]:
    """
    Mean and standard deviation of the first-component proportion x / (x + y),
    weighted by frequency. Keys with x + y == 0 carry no proportion and are skipped.

    :param histogram: Count-pair histogram.
    :return: Dictionary with 'windows', 'mean' and 'sd'.
    """
    first, second, frequency = histogram.to_arrays()
    windows = histogram.total()
    denom = first + second
    mask = denom > 0
    if not mask.any():
        return {"windows": windows, "mean": 0.0, "sd": 0.0}

    proportion = first[mask] / denom[mask]
    weights = frequency[mask]
    mean = float(np.average(proportion, weights=weights))
    variance = float(np.average((proportion - mean) ** 2, weights=weights))
    return {"windows": windows, "mean": round(mean, 6), "sd": round(variance ** 0.5, 6)}
