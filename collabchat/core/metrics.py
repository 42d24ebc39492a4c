# collabchat/core/metrics.py
import logging
from typing import Dict, Any
from threading import Lock

logger = logging.getLogger(__name__)


class Metrics:
    """Track application metrics"""

    def __init__(self):
        self._lock = Lock()
        self.request_count = 0
        self.error_count = 0
        self.response_times: Dict[str, list] = {}
        self.poll_outcomes: Dict[str, int] = {}
        self.poll_durations: list = []
        self.active_polls = 0

    def track_request(self, endpoint: str, duration: float, status_code: int):
        """Track request metrics with thread safety"""
        with self._lock:
            self.request_count += 1

            if endpoint not in self.response_times:
                self.response_times[endpoint] = []
            self.response_times[endpoint].append(duration)
            # Keep memory bounded on long-running workers
            if len(self.response_times[endpoint]) > 1000:
                self.response_times[endpoint] = self.response_times[endpoint][-1000:]

            if status_code >= 400:
                self.error_count += 1

    def track_poll(self, status: str, duration: float):
        with self._lock:
            self.poll_outcomes[status] = self.poll_outcomes.get(status, 0) + 1
            self.poll_durations.append(duration)
            if len(self.poll_durations) > 1000:
                self.poll_durations = self.poll_durations[-1000:]

    def poll_started(self):
        with self._lock:
            self.active_polls += 1

    def poll_finished(self):
        with self._lock:
            self.active_polls = max(0, self.active_polls - 1)

    def get_stats(self) -> Dict[str, Any]:
        """Get current metrics with thread safety"""
        with self._lock:
            stats = {
                "total_requests": self.request_count,
                "error_count": self.error_count,
                "error_rate": (
                    (self.error_count / self.request_count * 100) if self.request_count > 0 else 0
                ),
                "endpoints": {},
                "polls": {
                    "active": self.active_polls,
                    "outcomes": dict(self.poll_outcomes),
                    "average_duration": (
                        f"{sum(self.poll_durations) / len(self.poll_durations):.3f}s"
                        if self.poll_durations
                        else None
                    ),
                },
            }

            for endpoint, times in self.response_times.items():
                if times:
                    avg_time = sum(times) / len(times)
                    stats["endpoints"][endpoint] = {
                        "average_response_time": f"{avg_time:.3f}s",
                        "request_count": len(times),
                    }

            return stats

    def reset(self):
        """Reset all metrics - useful for testing"""
        with self._lock:
            self.request_count = 0
            self.error_count = 0
            self.response_times = {}
            self.poll_outcomes = {}
            self.poll_durations = []
            self.active_polls = 0


# Global metrics instance
metrics = Metrics()


def get_current_metrics():
    """Get current application metrics"""
    return metrics.get_stats()
