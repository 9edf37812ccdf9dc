"""Minimal in-process metrics recorder (not suitable for multi-process aggregation)."""

from __future__ import annotations

from collections import Counter, deque
from threading import Lock
from typing import Deque, Dict, Tuple

RECENT_DURATIONS = 100


class MetricsRecorder:
    def __init__(self) -> None:
        self._lock = Lock()
        self._requests = 0
        self._rate_limited = 0
        self._durations_ms: Deque[Tuple[str, float]] = deque(maxlen=RECENT_DURATIONS)
        self._tool_success: Counter[str] = Counter()
        self._tool_domain_error: Counter[str] = Counter()
        self._tool_dispatch_error: Counter[str] = Counter()
        self._tool_timeouts: Counter[str] = Counter()

    def incr_request(self) -> None:
        with self._lock:
            self._requests += 1

    def incr_rate_limited(self) -> None:
        with self._lock:
            self._rate_limited += 1

    def record_dispatch(self, tool: str, outcome: str, duration_ms: float) -> None:
        """Count one finished dispatch; ``outcome`` is ``success``, ``domain_error`` or an error kind."""
        with self._lock:
            self._durations_ms.append((tool, duration_ms))
            if outcome == "success":
                self._tool_success[tool] += 1
            elif outcome == "domain_error":
                self._tool_domain_error[tool] += 1
            else:
                self._tool_dispatch_error[tool] += 1

    def record_timeout(self, tool: str) -> int:
        """Count a timeout and return how many this tool has had so far."""
        with self._lock:
            self._tool_timeouts[tool] += 1
            return self._tool_timeouts[tool]

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            return {
                "requests": self._requests,
                "rate_limited": self._rate_limited,
                "tool_success": dict(self._tool_success),
                "tool_domain_error": dict(self._tool_domain_error),
                "tool_dispatch_error": dict(self._tool_dispatch_error),
                "tool_timeouts": dict(self._tool_timeouts),
                "recent_durations_ms": [
                    {"tool": tool, "duration_ms": round(duration, 3)} for tool, duration in self._durations_ms
                ],
            }

    def reset(self) -> None:
        with self._lock:
            self._requests = 0
            self._rate_limited = 0
            self._durations_ms.clear()
            self._tool_success.clear()
            self._tool_domain_error.clear()
            self._tool_dispatch_error.clear()
            self._tool_timeouts.clear()


default_metrics = MetricsRecorder()
