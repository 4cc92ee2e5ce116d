"""
Thread-safe in-memory metrics for the reels service.

  - counters:  submit/poll/webhook traffic, merges applied vs discarded, errors
  - latency:   last 100 samples per endpoint
  - gauges:    tasks per status, start time
  - errors:    last 50 errors for debugging

Ephemeral: resets on restart.
"""

import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, List

_lock = threading.Lock()

_counters: Dict[str, int] = defaultdict(int)

_latency_samples: Dict[str, List[float]] = defaultdict(list)
MAX_SAMPLES = 100

_gauges: Dict[str, float] = defaultdict(float)

_recent_errors: List[dict] = []
MAX_ERRORS = 50


def inc_counter(name: str, amount: int = 1):
    """Increment a counter (e.g. 'requests.submit', 'merges.discarded')."""
    with _lock:
        _counters[name] += amount


def record_latency(endpoint: str, duration_ms: float):
    with _lock:
        samples = _latency_samples[endpoint]
        samples.append(duration_ms)
        if len(samples) > MAX_SAMPLES:
            _latency_samples[endpoint] = samples[-MAX_SAMPLES:]


@contextmanager
def timed(endpoint: str):
    start = time.perf_counter()
    try:
        yield
    finally:
        record_latency(endpoint, (time.perf_counter() - start) * 1000)


def set_gauge(name: str, value: float):
    with _lock:
        _gauges[name] = value


def record_error(endpoint: str, error_type: str, message: str, task_id: str = ""):
    with _lock:
        _counters[f"errors.{endpoint}.{error_type}"] += 1
        _recent_errors.append({
            "timestamp": time.time(),
            "endpoint": endpoint,
            "error_type": error_type,
            "message": message[:300],
            "task_id": task_id,
        })
        if len(_recent_errors) > MAX_ERRORS:
            _recent_errors.pop(0)


def get_snapshot() -> dict:
    now = time.time()

    with _lock:
        latency_stats = {}
        for endpoint, samples in _latency_samples.items():
            if not samples:
                continue
            sorted_s = sorted(samples)
            n = len(sorted_s)
            latency_stats[endpoint] = {
                "p50": sorted_s[n // 2],
                "p95": sorted_s[int(n * 0.95)] if n >= 20 else sorted_s[-1],
                "avg": sum(sorted_s) / n,
                "count": n,
            }

        return {
            "timestamp": now,
            "counters": dict(_counters),
            "gauges": dict(_gauges),
            "latency": latency_stats,
            "recent_errors": list(_recent_errors[-10:]),
            "uptime_seconds": now - _gauges.get("start_time", now),
        }


def reset():
    with _lock:
        _counters.clear()
        _latency_samples.clear()
        _gauges.clear()
        _recent_errors.clear()
