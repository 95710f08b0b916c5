"""
Logging utilities for analyze_gc.
Sets up logging to console and file, shared with worker processes through a queue.
"""

import logging
import sys
import multiprocessing
from pathlib import Path
from logging.handlers import QueueHandler, QueueListener

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

LOG_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warning': logging.WARNING,
    'error': logging.ERROR,
}


def setup_logging(output_dir: Path, level: str = 'info', quiet: bool = False):
    """
    Setup logging to stdout (at the requested level) and log.txt (DEBUG) in output directory.
    Supports multiprocessing via a QueueListener.

    :param output_dir: Directory to save log.txt.
    :param level: Console log level name (debug, info, warning, error).
    :param quiet: Silence console output entirely; log.txt is still written.
    :return: The queue to hand to worker processes and the running listener.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    log_file = output_dir / "log.txt"

    formatter = logging.Formatter(LOG_FORMAT)

    handlers = []
    if not quiet:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(LOG_LEVELS.get(level.lower(), logging.INFO))
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    handlers.append(file_handler)

    queue = multiprocessing.Manager().Queue(-1)

    listener = QueueListener(queue, *handlers, respect_handler_level=True)
    listener.start()

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in root.handlers[:]:
        root.removeHandler(h)
    root.addHandler(QueueHandler(queue))

    root.info(f"Logging initialized. Log file: {log_file}")

    return queue, listener


def worker_configurer(queue):
    """
    Configure a worker process to log to the central queue.
    """
    root = logging.getLogger()
    # Forked workers inherit the parent's QueueHandler; avoid logging every record twice
    for h in root.handlers[:]:
        root.removeHandler(h)
    root.addHandler(QueueHandler(queue))
    root.setLevel(logging.DEBUG)
