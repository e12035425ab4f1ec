from .console import ConsoleFormatter, ConsoleColors
from .metrics import PingStatistics

__all__ = [
    'ConsoleFormatter',
    'ConsoleColors',
    'PingStatistics',
]
