#!/usr/bin/env python3
"""
Phantom Ping - ICMP/ICMPv6 Echo over raw sockets
=================================================

USAGE:
    pping [options] <target>

OPTIONS:
    -c, --count <num>         Echo requests to send (default: 3)
    -i, --interval <sec>      Seconds between requests (default: 1)
    -W, --timeout <sec>       Reply timeout (default: 10)
    -s, --size <bytes>        Data bytes per request (default: 56)
    -4 / -6                   Force IPv4 / IPv6
    --id <id>                 Echo identifier (default: derived from PID)
    --config <file>           JSON configuration file
    --dissect                 Print a scapy summary of every reply
    --no-color                Plain output
    -v, --verbose             Debug logging

EXAMPLES:
    sudo pping localhost
    sudo pping -6 -c 5 -i 0.2 ::1
    sudo pping --id 65535 --dissect 127.0.0.1

Raw sockets need root privileges (or CAP_NET_RAW).
"""

import argparse
import logging
import socket
import sys
from typing import Any, Dict, List, Optional

from . import __version__
from .config.config_manager import ConfigManager
from .core.echo_session import EchoReply, EchoSession, SessionConfig
from .core.errors import AddressResolutionFailure, PingError, TransportUnavailable
from .core.ping_scheduler import PeriodicPinger
from .core.raw_socket import is_root
from .output.console import ConsoleFormatter

logger = logging.getLogger(__name__)

FAMILIES = {"auto": None, "ipv4": socket.AF_INET, "ipv6": socket.AF_INET6}
COLOR_MODES = {"auto": None, "always": True, "never": False}


# =============================================================================
# ARGUMENT VALIDATION
# =============================================================================

def validate_count(value: str) -> int:
    try:
        count = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"count must be an integer, got {value!r}")
    if count < 1:
        raise argparse.ArgumentTypeError("count must be >= 1")
    return count


def validate_seconds(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected seconds, got {value!r}")
    if seconds < 0:
        raise argparse.ArgumentTypeError("seconds must be >= 0")
    return seconds


def validate_timeout(value: str) -> float:
    seconds = validate_seconds(value)
    if seconds == 0:
        raise argparse.ArgumentTypeError("timeout must be > 0")
    return seconds


def validate_size(value: str) -> int:
    try:
        size = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"size must be an integer, got {value!r}")
    if not 8 <= size <= 65000:
        raise argparse.ArgumentTypeError("size must be 8..65000 (8 bytes hold the timestamp)")
    return size


def validate_identifier(value: str) -> int:
    try:
        identifier = int(value, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"identifier must be an integer, got {value!r}")
    if not 0 <= identifier <= 0xFFFF:
        raise argparse.ArgumentTypeError("identifier must be 0..65535")
    return identifier


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="pping",
        description="Phantom Ping - ICMP/ICMPv6 echo over raw sockets",
        epilog="Raw sockets need root privileges (or CAP_NET_RAW).",
    )
    parser.add_argument('target', help='Host name or address to ping')
    parser.add_argument('-c', '--count', type=validate_count, default=None,
                        help='Echo requests to send')
    parser.add_argument('-i', '--interval', type=validate_seconds, default=None,
                        help='Seconds between requests')
    parser.add_argument('-W', '--timeout', type=validate_timeout, default=None,
                        help='Reply timeout in seconds')
    parser.add_argument('-s', '--size', type=validate_size, default=None,
                        help='Data bytes per request')

    family = parser.add_mutually_exclusive_group()
    family.add_argument('-4', dest='family', action='store_const', const='ipv4',
                        help='Use IPv4')
    family.add_argument('-6', dest='family', action='store_const', const='ipv6',
                        help='Use IPv6')

    parser.add_argument('--id', dest='identifier', type=validate_identifier, default=None,
                        help='Echo identifier')
    parser.add_argument('--config', default=None, help='JSON configuration file')
    parser.add_argument('--dissect', action='store_true',
                        help='Print a scapy summary of every reply')
    parser.add_argument('--no-color', action='store_true', help='Plain output')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    return parser


def resolve_settings(args: argparse.Namespace, config: ConfigManager) -> Dict[str, Any]:
    """Merge command-line values over configuration values."""
    def pick(arg_value, key):
        return arg_value if arg_value is not None else config.get(key)

    identifier = pick(args.identifier, "ping.identifier")
    family = pick(args.family, "network.family")
    if family not in FAMILIES:
        raise ValueError(f"Unknown address family {family!r}")
    color = False if args.no_color else COLOR_MODES.get(config.get("general.color", "auto"))

    return {
        "count": pick(args.count, "ping.count"),
        "interval": pick(args.interval, "ping.interval"),
        "timeout": pick(args.timeout, "network.timeout"),
        "data_length": pick(args.size, "network.data_length"),
        "family": FAMILIES[family],
        "identifier": None if identifier == "auto" else int(identifier),
        "color": color,
        "log_level": "DEBUG" if args.verbose else config.get("general.log_level", "WARNING"),
    }


# =============================================================================
# MAIN
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = create_parser().parse_args(argv)

    config = ConfigManager(args.config)
    if args.config:
        config.load()
    settings = resolve_settings(args, config)

    logging.basicConfig(level=getattr(logging, settings["log_level"]),
                        format='%(asctime)s - %(levelname)s - %(message)s')
    console = ConsoleFormatter(use_color=settings["color"])

    try:
        session, address = EchoSession.for_destination(
            args.target,
            identifier=settings["identifier"],
            family=settings["family"],
            config=SessionConfig(timeout=settings["timeout"],
                                 data_length=settings["data_length"]),
        )
    except (AddressResolutionFailure, ValueError) as e:
        print(console.error(str(e)), file=sys.stderr)
        return 2
    except TransportUnavailable as e:
        print(console.error(str(e)), file=sys.stderr)
        if not is_root():
            print(console.warning("Run as root or grant CAP_NET_RAW"), file=sys.stderr)
        return 2

    def on_reply(reply: EchoReply) -> None:
        print(console.reply(reply.packet.icmp_packet_byte_length, reply.source,
                            reply.sequence_number, reply.packet.ttl, reply.round_trip_ms))
        if args.dissect:
            print(console.dissection(reply.packet.to_scapy().summary()))

    def on_timeout(sequence: Optional[int]) -> None:
        print(console.timeout(sequence))

    with session:
        print(console.header(args.target, address, session.request_data_length,
                             session.request_packet_length))
        pinger = PeriodicPinger(session, address,
                                count=settings["count"],
                                interval=settings["interval"],
                                on_reply=on_reply,
                                on_timeout=on_timeout)
        try:
            stats = pinger.run()
        except KeyboardInterrupt:
            stats = pinger.statistics
        except PingError as e:
            logger.debug("Ping run aborted", exc_info=True)
            print(console.error(str(e)), file=sys.stderr)
            stats = pinger.statistics

    print()
    print(console.summary(args.target, stats))
    return 0 if stats.received else 1


if __name__ == "__main__":
    sys.exit(main())
