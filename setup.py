#!/usr/bin/env python3
"""
Phantom Ping v1.0.0 - Setup Configuration
=========================================

ICMP/ICMPv6 echo engine over raw sockets.

Installation:
    pip install .

    OR (development mode):
    pip install -e ".[dev]"

    Creates 'pping' console script.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read long description from README
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text(encoding="utf-8") if readme_path.exists() else ""

# Core dependencies
REQUIRED_PACKAGES = [
    "scapy>=2.4.5",         # Packet dissection (--dissect)
    "jsonschema>=4.0.0",    # Configuration validation
    "colorama>=0.4.4",      # Cross-platform colored output
]

# Optional development dependencies
EXTRAS_REQUIRE = {
    "dev": [
        "pytest>=7.0.0",    # Testing
        "pytest-cov>=4.0.0", # Coverage reporting
        "black>=22.0.0",    # Code formatting
        "pylint>=2.14.0",   # Linting
        "mypy>=0.950",      # Type checking
    ],
}

setup(
    # Package Information
    name="phantom-ping",
    version="1.0.0",
    author="Phantom Ping Team",
    description="ICMP/ICMPv6 echo engine: packet building, checksums, reply correlation and RTT",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # Classification
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "Operating System :: POSIX :: Linux",
        "Operating System :: MacOS",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet",
        "Topic :: System :: Networking",
        "Topic :: System :: Networking :: Monitoring",
    ],

    # Keywords for searching
    keywords=[
        "network",
        "ping",
        "icmp",
        "icmpv6",
        "raw-socket",
        "checksum",
    ],

    # Package Configuration
    packages=find_packages(exclude=["tests", "tests.*"]),

    # Python Version Requirement
    python_requires=">=3.8",

    # Dependencies
    install_requires=REQUIRED_PACKAGES,
    extras_require=EXTRAS_REQUIRE,

    # Entry Points (Console Scripts)
    entry_points={
        "console_scripts": [
            "pping=phantom_ping.cli:main",
        ],
    },

    zip_safe=False,
)
