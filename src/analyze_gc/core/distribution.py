"""
Expected proportion distributions.
Turns a count-pair histogram into a smooth density over [0, 1] by spreading each
key (x, y) across a fixed grid with a Beta(x + 1, y + 1) kernel.
"""

import numpy as np
from scipy.special import betaln

from analyze_gc.core.histogram import Histogram

BINS = 1000

# Keys processed per vectorised block
_BLOCK = 2048


def bin_midpoints(bins: int = BINS) -> np.ndarray:
    return (np.arange(bins) + 0.5) / bins


def expected_density(histogram: Histogram, bins: int = BINS) -> np.ndarray:
    """
    Density of the first-component proportion x / (x + y) on a grid of bin midpoints.

    Each key's kernel is normalised over the grid and weighted by its frequency; the
    result is scaled so the mean over bins is 1. An empty histogram gives all zeros.

    :param histogram: Count-pair histogram.
    :param bins: Number of grid bins.
    :return: Array of length bins.
    """
    density = np.zeros(bins)
    first, second, frequency = histogram.to_arrays()
    total = frequency.sum()
    if total == 0:
        return density

    grid = bin_midpoints(bins)
    log_p = np.log(grid)
    log_q = np.log1p(-grid)
    for lo in range(0, first.size, _BLOCK):
        x = first[lo:lo + _BLOCK, None]
        y = second[lo:lo + _BLOCK, None]
        # Beta(x + 1, y + 1) pdf at each midpoint; subtracting log B keeps exp() in range
        kernel = np.exp(x * log_p + y * log_q - betaln(x + 1.0, y + 1.0))
        kernel /= kernel.sum(axis=1, keepdims=True)
        density += frequency[lo:lo + _BLOCK] @ kernel
    return density * bins / total
