"""
Periodic Pinger - fixed-rate echo requests with a concurrent reply collector.

A sender thread fires ``count`` echo requests at a fixed interval while the
calling thread collects replies. The collector waits on a single-count gate
until the first request is on the wire: some stacks (Windows) fail a receive
on a raw socket that has not sent anything yet with WSAETIMEDOUT.

Usage:
    pinger = PeriodicPinger(session, "127.0.0.1", count=3, interval=1.0)
    stats = pinger.run()
"""

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Optional

from ..output.metrics import PingStatistics
from .echo_session import EchoReply, EchoSession
from .errors import ClosedResource, EchoTimeout, PingError

logger = logging.getLogger(__name__)


class PeriodicPinger:
    """
    Drives one session: a sender thread plus a reply collector.

    Args:
        session: Open echo session (used by both flows)
        destination: Host or numeric address to ping
        count: Number of echo requests
        interval: Seconds between the starts of consecutive requests
        statistics: Collector for counters and RTT samples
        on_reply: Called with each matched EchoReply
        on_timeout: Called with the sequence number of each request whose
            reply never came (None when no request was outstanding)
    """

    def __init__(self,
                 session: EchoSession,
                 destination: str,
                 count: int = 3,
                 interval: float = 1.0,
                 statistics: Optional[PingStatistics] = None,
                 on_reply: Optional[Callable[[EchoReply], None]] = None,
                 on_timeout: Optional[Callable[[Optional[int]], None]] = None):
        if count < 1:
            raise ValueError(f"Count must be >= 1, got {count}")
        if interval < 0:
            raise ValueError(f"Interval must be >= 0, got {interval}")
        self.session = session
        self.destination = destination
        self.count = count
        self.interval = interval
        self.statistics = statistics or PingStatistics()
        self.on_reply = on_reply
        self.on_timeout = on_timeout

        self._first_sent = threading.Event()
        self._stop = threading.Event()
        # sequence numbers sent and not answered yet, oldest first
        self._pending: Deque[int] = deque()
        self._pending_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the sender thread."""
        if self._thread is not None:
            raise RuntimeError("PeriodicPinger already started")
        self._thread = threading.Thread(target=self._send_loop,
                                        name="phantom-ping-sender",
                                        daemon=True)
        self._thread.start()

    def _send_loop(self) -> None:
        next_send = time.monotonic()
        for index in range(self.count):
            if self._stop.is_set():
                break
            # pending before the write, the reply may arrive first
            sequence = self.session.sequence & 0xFFFF
            with self._pending_lock:
                self._pending.append(sequence)
            try:
                self.session.send_echo_request(self.destination)
                self.statistics.record_sent()
            except ClosedResource:
                self._forget(sequence)
                logger.debug("Session closed, sender stopping")
                break
            except (PingError, OSError) as e:
                logger.error("Echo request %d to %s failed: %s", index, self.destination, e)
                self._forget(sequence)
                self.statistics.record_error()
            finally:
                # open the gate even when the first send failed
                self._first_sent.set()

            next_send += self.interval
            delay = next_send - time.monotonic()
            if delay > 0 and self._stop.wait(delay):
                break
        self._first_sent.set()

    def _forget(self, sequence: int) -> None:
        with self._pending_lock:
            if sequence in self._pending:
                self._pending.remove(sequence)

    def _oldest_pending(self) -> Optional[int]:
        with self._pending_lock:
            return self._pending.popleft() if self._pending else None

    def wait_first_sent(self, timeout: Optional[float] = None) -> bool:
        """Block until the first request went out. False on timeout."""
        return self._first_sent.wait(timeout)

    def collect(self) -> PingStatistics:
        """
        Receive ``count`` replies, counting timeouts as losses.

        Returns:
            The statistics collector
        """
        for index in range(self.count):
            try:
                reply = self.session.receive_echo_reply()
            except EchoTimeout:
                sequence = self._oldest_pending()
                logger.debug("Reply %d timed out (icmp_seq=%s)", index, sequence)
                if self.on_timeout is not None:
                    self.on_timeout(sequence)
                continue
            self._forget(reply.sequence_number)
            self.statistics.record_reply(reply.round_trip_ns)
            if self.on_reply is not None:
                self.on_reply(reply)
        return self.statistics

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the sender and wait for it to exit."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def run(self) -> PingStatistics:
        """Send and collect everything, then stop the sender."""
        self.start()
        try:
            self.wait_first_sent()
            return self.collect()
        finally:
            self.stop()
