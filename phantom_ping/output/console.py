import sys
from typing import Optional

from colorama import Fore, Style
from colorama import init as colorama_init

from .metrics import PingStatistics


class ConsoleColors:
    """colorama codes for terminal output"""
    HEADER = Fore.MAGENTA
    BLUE = Fore.BLUE
    CYAN = Fore.CYAN
    GREEN = Fore.GREEN
    YELLOW = Fore.YELLOW
    RED = Fore.RED
    ENDC = Style.RESET_ALL
    BOLD = Style.BRIGHT


class ConsoleFormatter:
    """Formatters for ping console output"""

    def __init__(self, use_color: Optional[bool] = None):
        if use_color is None:
            use_color = sys.stdout.isatty()
        self.use_color = use_color
        if use_color:
            colorama_init()

    def _paint(self, text: str, color: str) -> str:
        if not self.use_color:
            return text
        return f"{color}{text}{ConsoleColors.ENDC}"

    def error(self, msg: str) -> str:
        return self._paint(f"[✗] {msg}", ConsoleColors.RED)

    def warning(self, msg: str) -> str:
        return self._paint(f"[!] {msg}", ConsoleColors.YELLOW)

    def info(self, msg: str) -> str:
        return self._paint(f"[i] {msg}", ConsoleColors.BLUE)

    def header(self, host: str, address: str, data_length: int, packet_length: int) -> str:
        return self._paint(
            f"PING {host} ({address}) {data_length}({packet_length}) bytes of data.",
            ConsoleColors.BOLD)

    def reply(self, size: int, source: str, sequence: int, ttl: Optional[int], rtt_ms: float) -> str:
        ttl_part = f" ttl={ttl}" if ttl is not None else ""
        return self._paint(
            f"{size} bytes from {source}: icmp_seq={sequence}{ttl_part} time={rtt_ms:.3f} ms",
            ConsoleColors.GREEN)

    def timeout(self, sequence: Optional[int]) -> str:
        if sequence is None:
            return self._paint("Request timeout", ConsoleColors.YELLOW)
        return self._paint(f"Request timeout for icmp_seq {sequence}", ConsoleColors.YELLOW)

    def dissection(self, summary: str) -> str:
        return self._paint(f"    {summary}", ConsoleColors.CYAN)

    def summary(self, host: str, stats: PingStatistics) -> str:
        loss_color = ConsoleColors.GREEN if stats.received == stats.transmitted else ConsoleColors.RED
        lines = [
            self._paint(f"--- {host} ping statistics ---", ConsoleColors.BOLD),
            self._paint(
                f"{stats.transmitted} packets transmitted, {stats.received} received, "
                f"{stats.loss_percent:.1f}% packet loss", loss_color),
        ]
        if stats.errors:
            lines.append(self._paint(f"{stats.errors} send errors", ConsoleColors.RED))
        rtt = stats.rtt_summary()
        if rtt:
            lines.append(
                f"rtt min/avg/max/mdev = {rtt['min']:.3f}/{rtt['avg']:.3f}/"
                f"{rtt['max']:.3f}/{rtt['mdev']:.3f} ms")
        return '\n'.join(lines)
