"""
Phantom Ping - Ping Statistics
==============================

Counters and round-trip samples for a ping run, with the summary ping(8)
prints and a Prometheus text export.

Metrics:
- phantom_ping_requests_sent_total
- phantom_ping_replies_received_total
- phantom_ping_errors_total
- phantom_ping_packet_loss_percent
- phantom_ping_rtt_milliseconds (min/avg/max/mdev)
"""

import math
import threading
import time
from typing import Dict, List


# =============================================================================
# PING STATISTICS
# =============================================================================

class PingStatistics:
    """
    Thread-safe statistics for one ping run.

    Usage:
        stats = PingStatistics()
        stats.record_sent()
        stats.record_reply(rtt_ns)
        print(stats.loss_percent)
    """

    def __init__(self, namespace: str = "phantom_ping"):
        """
        Args:
            namespace: Prometheus namespace for metrics
        """
        self.namespace = namespace

        # Counters
        self._sent = 0
        self._received = 0
        self._errors = 0

        # RTT samples in milliseconds
        self._rtts: List[float] = []

        self._lock = threading.Lock()
        self._start_time = time.time()

    # =========================================================================
    # RECORDING
    # =========================================================================

    def record_sent(self, count: int = 1) -> None:
        """Increment requests sent counter."""
        with self._lock:
            self._sent += count

    def record_reply(self, rtt_ns: int) -> None:
        """Record a matched reply and its round trip time in nanoseconds."""
        with self._lock:
            self._received += 1
            self._rtts.append(rtt_ns / 1e6)

    def record_error(self, count: int = 1) -> None:
        """Increment error counter."""
        with self._lock:
            self._errors += count

    # =========================================================================
    # GETTERS
    # =========================================================================

    @property
    def transmitted(self) -> int:
        return self._sent

    @property
    def received(self) -> int:
        return self._received

    @property
    def errors(self) -> int:
        return self._errors

    @property
    def loss_percent(self) -> float:
        """Percentage of requests without a reply."""
        with self._lock:
            if not self._sent:
                return 0.0
            return max(0.0, 100.0 * (self._sent - self._received) / self._sent)

    def rtt_summary(self) -> Dict[str, float]:
        """
        Round trip statistics in milliseconds.

        Returns:
            Dict with min, avg, max and mdev, or an empty dict without samples
        """
        with self._lock:
            if not self._rtts:
                return {}
            n = len(self._rtts)
            avg = sum(self._rtts) / n
            mean_sq = sum(r * r for r in self._rtts) / n
            return {
                "min": min(self._rtts),
                "avg": avg,
                "max": max(self._rtts),
                "mdev": math.sqrt(max(0.0, mean_sq - avg * avg)),
            }

    def get_counters(self) -> Dict[str, int]:
        """Get current counter values."""
        with self._lock:
            return {
                f"{self.namespace}_requests_sent_total": self._sent,
                f"{self.namespace}_replies_received_total": self._received,
                f"{self.namespace}_errors_total": self._errors,
            }

    # =========================================================================
    # PROMETHEUS FORMAT EXPORT
    # =========================================================================

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus format."""
        lines = []
        help_text = {
            "requests_sent_total": "Total echo requests sent",
            "replies_received_total": "Total matching echo replies received",
            "errors_total": "Total send errors",
        }

        for name, value in self.get_counters().items():
            short = name[len(self.namespace) + 1:]
            lines.append(f"# HELP {name} {help_text[short]}")
            lines.append(f"# TYPE {name} counter")
            lines.append(f"{name} {value}")

        lines.append(f"# HELP {self.namespace}_packet_loss_percent Requests without reply")
        lines.append(f"# TYPE {self.namespace}_packet_loss_percent gauge")
        lines.append(f"{self.namespace}_packet_loss_percent {self.loss_percent}")

        summary = self.rtt_summary()
        if summary:
            lines.append(f"# HELP {self.namespace}_rtt_milliseconds Round trip time")
            lines.append(f"# TYPE {self.namespace}_rtt_milliseconds gauge")
            for stat, value in summary.items():
                lines.append(f'{self.namespace}_rtt_milliseconds{{stat="{stat}"}} {value}')

        uptime = time.time() - self._start_time
        lines.append(f"# HELP {self.namespace}_uptime_seconds Uptime in seconds")
        lines.append(f"# TYPE {self.namespace}_uptime_seconds gauge")
        lines.append(f"{self.namespace}_uptime_seconds {uptime}")

        return '\n'.join(lines)


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    'PingStatistics',
]
