import json
import logging
import threading
import time
from typing import Dict


class ArchiveMetrics:
    """Thread-safe counters for blocks queued and chunks written by a session."""

    def __init__(self, log_interval_s: float = 30.0, logger: logging.Logger | None = None) -> None:
        self.log_interval_s = max(0.0, float(log_interval_s))
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._start_time = time.time()
        self._last_log_time = self._start_time
        self._counters = self._initial_counters()
        self._last_snapshot = self._counters.copy()

    @staticmethod
    def _initial_counters() -> Dict[str, int]:
        return {
            "logic_blocks": 0,
            "logic_samples": 0,
            "analog_blocks": 0,
            "analog_samples": 0,
            "chunks_written": 0,
            "bytes_written": 0,
            "warnings": 0,
        }

    def record_logic_block(self, samples: int) -> None:
        with self._lock:
            self._counters["logic_blocks"] += 1
            self._counters["logic_samples"] += max(0, samples)
        self.maybe_log()

    def record_analog_block(self, samples: int) -> None:
        with self._lock:
            self._counters["analog_blocks"] += 1
            self._counters["analog_samples"] += max(0, samples)
        self.maybe_log()

    def record_chunk(self, name: str, size: int) -> None:
        with self._lock:
            self._counters["chunks_written"] += 1
            self._counters["bytes_written"] += max(0, size)
        self.maybe_log()

    def increment_warnings(self) -> None:
        with self._lock:
            self._counters["warnings"] += 1

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return self._counters.copy()

    def maybe_log(self, force: bool = False) -> None:
        now = time.time()
        with self._lock:
            interval = now - self._last_log_time
            if not force and self.log_interval_s > 0.0 and interval < self.log_interval_s:
                return

            payload = self._build_payload(now, interval)
            self._last_log_time = now
            self._last_snapshot = self._counters.copy()

        self._logger.info("archive_metrics %s", json.dumps(payload, sort_keys=True))

    def _build_payload(self, now: float, interval: float) -> Dict[str, object]:
        delta = {
            key: self._counters[key] - self._last_snapshot.get(key, 0)
            for key in self._counters
        }
        return {
            "type": "archive_metrics",
            "uptime_s": round(now - self._start_time, 3),
            "interval_s": round(interval, 3),
            "counters": self._counters.copy(),
            "delta": delta,
        }
