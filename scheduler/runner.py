# scheduler/runner.py
from __future__ import annotations
import random
import time
from typing import Callable, Optional

import requests

from utils.logging import get_logger

log = get_logger("scheduler")


class Interval:
    """Tracks when a periodic job last ran. due() is True before the first run."""

    def __init__(self, every_sec: float):
        self.every_sec = float(every_sec)
        self.last_run: Optional[float] = None

    def due(self, now: float, slack: float = 0.0) -> bool:
        # slack absorbs a sleep that woke up early because of jitter
        return self.last_run is None or now - self.last_run >= self.every_sec - slack

    def mark(self, now: float) -> None:
        self.last_run = now


def run_daemon(job_fn: Callable[[], None], interval_sec: int, jitter_sec: int = 0,
               max_runs: Optional[int] = None, sleep: Callable[[float], None] = time.sleep) -> int:
    """
    Call job_fn every interval_sec (± jitter_sec) until Ctrl+C.
    A failing job is logged and the loop keeps going. Returns the number of runs.
    """
    runs = 0
    log.info("Daemon started: every %ss (±%ss).", interval_sec, jitter_sec)
    try:
        while max_runs is None or runs < max_runs:
            try:
                job_fn()
            except (requests.RequestException, RuntimeError, ValueError, OSError):
                log.exception("Scheduled job failed; will retry next cycle.")
            runs += 1
            if max_runs is not None and runs >= max_runs:
                break
            delay = interval_sec + (random.uniform(-jitter_sec, jitter_sec) if jitter_sec else 0)
            sleep(max(1.0, delay))
    except KeyboardInterrupt:
        log.info("Daemon stopped.")
    return runs
