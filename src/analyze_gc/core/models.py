"""
Data models for analyze_gc.
Defines nucleotide symbols, contigs, windows, statistic kinds, the resolved
run configuration and the final analysis result.
"""

import os
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple, TYPE_CHECKING

import numpy as np

from analyze_gc.core.errors import ConfigurationError

if TYPE_CHECKING:
    from analyze_gc.core.histogram import Histogram

DEFAULT_READ_LENGTHS = (50, 75, 100, 150, 200, 250, 300)
DEFAULT_THRESHOLD = 0.8
DEFAULT_PREFIX = "analyze_gc"

CountPair = Tuple[int, int]


class Symbol(IntEnum):
    """
    Nucleotide symbol. The integer value is the code stored in Contig.codes.
    """
    A = 0
    C = 1
    G = 2
    T = 3
    OTHER = 4

    @classmethod
    def from_char(cls, char: str) -> "Symbol":
        return _CHAR_TO_SYMBOL.get(char.upper(), cls.OTHER)

    @property
    def is_valid(self) -> bool:
        return self is not Symbol.OTHER


_CHAR_TO_SYMBOL = {"A": Symbol.A, "C": Symbol.C, "G": Symbol.G, "T": Symbol.T}


class StatKind(Enum):
    """
    Histogram statistic kinds.
    COMBINED_GC is always computed, the two bisulfite kinds only in bisulfite mode.
    """
    COMBINED_GC = "combined_gc"
    G_VS_A = "g_vs_a"
    C_VS_T = "c_vs_t"

    @classmethod
    def for_mode(cls, bisulfite: bool) -> Tuple["StatKind", ...]:
        if bisulfite:
            return (cls.COMBINED_GC, cls.G_VS_A, cls.C_VS_T)
        return (cls.COMBINED_GC,)


@dataclass(frozen=True)
class Contig:
    """
    A named reference sequence stored as an array of Symbol codes.
    The array is flagged read-only; contigs are shared between work units.
    """
    name: str
    codes: np.ndarray = field(repr=False, compare=False)

    def __post_init__(self):
        self.codes.setflags(write=False)

    @property
    def length(self) -> int:
        return int(self.codes.size)

    def __len__(self) -> int:
        return self.length

    def symbols(self) -> Iterator[Symbol]:
        for code in self.codes:
            yield Symbol(int(code))

    def base_counts(self) -> Dict[Symbol, int]:
        counts = np.bincount(self.codes, minlength=len(Symbol))
        return {symbol: int(counts[symbol]) for symbol in Symbol}


@dataclass(frozen=True)
class Window:
    """
    Base counts of one fixed-length window of a contig.
    """
    contig: str
    start: int
    length: int
    a_count: int
    c_count: int
    g_count: int
    t_count: int
    invalid_count: int

    @property
    def valid_count(self) -> int:
        return self.a_count + self.c_count + self.g_count + self.t_count

    @property
    def gc_count(self) -> int:
        return self.g_count + self.c_count

    @property
    def at_count(self) -> int:
        return self.valid_count - self.gc_count

    @property
    def valid_proportion(self) -> float:
        return self.valid_count / self.length


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Fully resolved run configuration, passed explicitly to every component.
    """
    threshold: float = DEFAULT_THRESHOLD
    read_lengths: Tuple[int, ...] = DEFAULT_READ_LENGTHS
    bisulfite: bool = True
    identifier: Optional[str] = None
    threads: int = field(default_factory=lambda: os.cpu_count() or 1)
    input_path: Optional[Path] = None
    output_dir: Path = Path("./output")
    prefix: str = DEFAULT_PREFIX

    def __post_init__(self):
        # Normalise to a sorted set of lengths; validation happens in validate()
        object.__setattr__(self, "read_lengths", tuple(sorted(set(self.read_lengths))))

    @property
    def kinds(self) -> Tuple[StatKind, ...]:
        return StatKind.for_mode(self.bisulfite)

    @property
    def max_read_length(self) -> int:
        return max(self.read_lengths)

    def validate(self) -> "AnalysisConfig":
        """
        Check the configuration before any work is dispatched.

        :return: self, to allow chaining.
        :raises ConfigurationError: on an invalid threshold, read length set or thread count.
        """
        if isinstance(self.threshold, bool) or not isinstance(self.threshold, (int, float)):
            raise ConfigurationError(f"Threshold must be a number, got {self.threshold!r}")
        if not 0.0 <= self.threshold <= 1.0:
            raise ConfigurationError(f"Illegal threshold {self.threshold}: must be within [0, 1]")
        if not self.read_lengths:
            raise ConfigurationError("At least one read length is required")
        bad_lengths = [rl for rl in self.read_lengths if not isinstance(rl, int) or rl < 1]
        if bad_lengths:
            raise ConfigurationError(f"Read lengths must be positive integers, got {bad_lengths}")
        if not isinstance(self.threads, int) or self.threads < 1:
            raise ConfigurationError(f"Thread count must be a positive integer, got {self.threads!r}")
        if not self.prefix:
            raise ConfigurationError("Output prefix must not be empty")
        return self


@dataclass(frozen=True)
class AnalysisResult:
    """
    Merged histograms for every read length and statistic kind, plus run metadata.
    """
    config: AnalysisConfig
    histograms: Dict[int, Dict[StatKind, "Histogram"]]
    windows_scanned: Dict[int, int] = field(default_factory=dict)
    reference_stats: Dict[str, float] = field(default_factory=dict)
    date: str = ""

    @property
    def read_lengths(self) -> Tuple[int, ...]:
        return self.config.read_lengths

    @property
    def kinds(self) -> Tuple[StatKind, ...]:
        return self.config.kinds

    def histogram(self, read_length: int, kind: StatKind = StatKind.COMBINED_GC) -> "Histogram":
        return self.histograms[read_length][kind]

    def countable_windows(self, read_length: int) -> int:
        return self.histogram(read_length, StatKind.COMBINED_GC).total()
