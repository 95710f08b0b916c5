"""
Analysis coordinator for analyze_gc.
Splits a reference into (contig, read length) work units, runs them on a pool of
worker processes, and merges the per-unit histograms into the final result.
"""

import logging
import multiprocessing
import signal
import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from analyze_gc.core.errors import AnalysisAborted, WorkUnitError
from analyze_gc.core.histogram import Histogram, merge_histograms
from analyze_gc.core.models import AnalysisConfig, AnalysisResult, Contig, StatKind
from analyze_gc.core.scanner import count_windows, min_valid_bases
from analyze_gc.utils.logging import worker_configurer
from analyze_gc.utils.stats import calculate_reference_stats

logger = logging.getLogger(__name__)

# Read-only contig store and configuration of a worker process, installed by _init_worker
_WORKER_CONTIGS: Sequence[Contig] = ()
_WORKER_CONFIG: Optional[AnalysisConfig] = None


@dataclass(frozen=True, order=True)
class WorkUnit:
    """
    One independent piece of work: all windows of one read length over one contig.
    Ordering is (read_length, contig_index), which is also the merge order.
    """
    read_length: int
    contig_index: int


UnitResult = Tuple[WorkUnit, Dict[StatKind, Histogram]]


def plan_work_units(contigs: Sequence[Contig], read_lengths: Sequence[int]) -> List[WorkUnit]:
    """
    Create a work unit for every (contig, read length) pair that yields at least one window.

    :param contigs: Loaded contigs.
    :param read_lengths: Read lengths to analyze.
    :return: List of WorkUnit, sorted by read length then contig order.
    """
    units = []
    for read_length in sorted(read_lengths):
        for idx, contig in enumerate(contigs):
            if contig.length >= read_length:
                units.append(WorkUnit(read_length=read_length, contig_index=idx))
    return units


def run_work_unit(contig: Contig, unit: WorkUnit, config: AnalysisConfig) -> UnitResult:
    """
    Count every window of one work unit into private histograms.
    """
    min_valid = min_valid_bases(unit.read_length, config.threshold)
    histograms = count_windows(contig.codes, unit.read_length, min_valid, config.kinds)
    logger.debug(
        f"Contig {contig.name} at read length {unit.read_length}: "
        f"{histograms[StatKind.COMBINED_GC].total()} countable windows"
    )
    return unit, histograms


def _init_worker(contigs: Sequence[Contig], config: AnalysisConfig, log_queue):
    global _WORKER_CONTIGS, _WORKER_CONFIG
    _WORKER_CONTIGS = contigs
    _WORKER_CONFIG = config
    # Interrupts are handled by the coordinator in the parent process
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    if log_queue is not None:
        worker_configurer(log_queue)


def _run_pooled_unit(unit: WorkUnit) -> UnitResult:
    return run_work_unit(_WORKER_CONTIGS[unit.contig_index], unit, _WORKER_CONFIG)


def _pool_context():
    # fork shares the contig arrays with workers copy-on-write instead of pickling them
    if "fork" in multiprocessing.get_all_start_methods():
        return multiprocessing.get_context("fork")
    return multiprocessing.get_context()


class AnalysisCoordinator:
    """
    Owns the run configuration and orchestrates the windowed counting.

    Work units are dispatched with at most max_in_flight units outstanding. Once an
    abort is requested no further unit is dispatched; units already running finish
    and the run ends with AnalysisAborted. Any failed unit fails the whole run.
    """

    def __init__(self, config: AnalysisConfig, log_queue=None, abort_event: Optional[threading.Event] = None):
        self.config = config.validate()
        self.log_queue = log_queue
        self.abort_event = abort_event if abort_event is not None else threading.Event()
        self.max_in_flight = 2 * config.threads

    def request_abort(self):
        if not self.abort_event.is_set():
            logger.warning("Abort requested: no further work units will be dispatched")
        self.abort_event.set()

    @property
    def aborted(self) -> bool:
        return self.abort_event.is_set()

    def run(self, contigs: Sequence[Contig]) -> AnalysisResult:
        """
        Analyze all contigs at all configured read lengths.

        :param contigs: Loaded, read-only contigs.
        :return: The merged AnalysisResult.
        :raises WorkUnitError: if any work unit fails.
        :raises AnalysisAborted: if an abort was requested before all units were dispatched.
        """
        cfg = self.config
        units = plan_work_units(contigs, cfg.read_lengths)
        logger.info(
            f"Scanning {len(contigs)} contigs at read lengths {list(cfg.read_lengths)} "
            f"({len(units)} work units, {cfg.threads} threads, threshold {cfg.threshold}, "
            f"bisulfite {'on' if cfg.bisulfite else 'off'})"
        )
        start_time = time.monotonic()

        if cfg.threads == 1 or len(units) <= 1:
            results = self._run_serial(contigs, units)
        else:
            results = self._run_pooled(contigs, units)

        if len(results) < len(units):
            raise AnalysisAborted(f"Run aborted after {len(results)} of {len(units)} work units")

        result = self._merge(contigs, results)
        logger.info(f"Window counting complete in {time.monotonic() - start_time:.1f}s")
        return result

    def _run_serial(self, contigs: Sequence[Contig], units: List[WorkUnit]) -> List[UnitResult]:
        results = []
        for unit in units:
            if self.aborted:
                break
            results.append(self._checked(contigs, unit, run_work_unit, contigs[unit.contig_index], unit, self.config))
            self._log_progress(len(results), len(units))
        return results

    def _run_pooled(self, contigs: Sequence[Contig], units: List[WorkUnit]) -> List[UnitResult]:
        results = []
        pending = deque(units)
        in_flight = deque()
        ctx = _pool_context()
        with ctx.Pool(self.config.threads, initializer=_init_worker,
                      initargs=(contigs, self.config, self.log_queue)) as pool:
            while True:
                while pending and not self.aborted and len(in_flight) < self.max_in_flight:
                    unit = pending.popleft()
                    in_flight.append((unit, pool.apply_async(_run_pooled_unit, (unit,))))
                if not in_flight:
                    break
                unit, async_result = in_flight.popleft()
                results.append(self._checked(contigs, unit, async_result.get))
                self._log_progress(len(results), len(units))
        return results

    @staticmethod
    def _checked(contigs: Sequence[Contig], unit: WorkUnit, func, *args) -> UnitResult:
        try:
            return func(*args)
        except Exception as e:
            raise WorkUnitError(contigs[unit.contig_index].name, unit.read_length, e) from e

    @staticmethod
    def _log_progress(done: int, total: int):
        if done == total or done % max(1, total // 10) == 0:
            logger.info(f"Completed {done}/{total} work units")

    def _merge(self, contigs: Sequence[Contig], results: List[UnitResult]) -> AnalysisResult:
        cfg = self.config
        by_unit = dict(results)
        histograms = {}
        windows_scanned = {}
        for read_length in cfg.read_lengths:
            units = sorted(u for u in by_unit if u.read_length == read_length)
            histograms[read_length] = {
                kind: merge_histograms(by_unit[u][kind] for u in units) for kind in cfg.kinds
            }
            windows_scanned[read_length] = sum(
                contigs[u.contig_index].length - read_length + 1 for u in units
            )
            countable = histograms[read_length][StatKind.COMBINED_GC].total()
            logger.info(
                f"Read length {read_length}: {countable} countable windows "
                f"of {windows_scanned[read_length]} scanned"
            )
        return AnalysisResult(
            config=cfg,
            histograms=histograms,
            windows_scanned=windows_scanned,
            reference_stats=calculate_reference_stats(contigs),
            date=datetime.now().astimezone().isoformat(timespec="seconds"),
        )


def analyze_reference(contigs: Sequence[Contig], config: AnalysisConfig, log_queue=None,
                      abort_event: Optional[threading.Event] = None) -> AnalysisResult:
    """
    Convenience wrapper: run a coordinator over the given contigs.
    """
    return AnalysisCoordinator(config, log_queue=log_queue, abort_event=abort_event).run(contigs)
