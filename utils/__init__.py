import logging
import math
import os
from argparse import ArgumentParser
from datetime import datetime
from typing import Final


def get_log_level(level_name: str) -> int:
    """
    Maps a level name from the command line to a logging level,
    defaulting to INFO for anything unrecognised
    """
    levels = {
        "critical": logging.CRITICAL,
        "error": logging.ERROR,
        "warn": logging.WARNING,
        "warning": logging.WARNING,
        "info": logging.INFO,
        "debug": logging.DEBUG,
    }
    level = levels.get(level_name.lower())
    if level is None:
        level = logging.INFO
    return level


def coerce_to_bool(value) -> bool:
    """
    Given a thing, try hard to convert it from something which looks boolean
    like, but it actually a string or something, to a boolean
    """
    if not isinstance(value, bool):
        if isinstance(value, str):
            return value.lower() in {"true", "1", "yes"}
        else:
            raise TypeError(type(value))
    return value


def common_args(description: str) -> ArgumentParser:
    """
    Constructs an ArgumentParser with the connection and logging options,
    each defaulting to its environment variable
    """
    parser = ArgumentParser(
        description=description,
    )

    # Where the registry lives, e.g. https://registry.example.com
    parser.add_argument(
        "--url",
        default=os.getenv("REGISTRY_URL", ""),
        help="Base URL of the registry (env: REGISTRY_URL)",
    )

    # Credentials are only sent if both are given
    parser.add_argument(
        "--username",
        default=os.getenv("REGISTRY_USERNAME", ""),
        help="Username for HTTP Basic auth (env: REGISTRY_USERNAME)",
    )
    parser.add_argument(
        "--password",
        default=os.getenv("REGISTRY_PASSWORD", ""),
        help="Password for HTTP Basic auth (env: REGISTRY_PASSWORD)",
    )

    # Off by default, most of these registries use self-signed certificates
    parser.add_argument(
        "--verify-tls",
        default=os.getenv("REGISTRY_VERIFY_TLS", "false"),
        help="If true, verify the registry's TLS certificate (env: REGISTRY_VERIFY_TLS)",
    )

    # Allows configuration of log level for debugging
    parser.add_argument(
        "--loglevel",
        default="info",
        help="Configures the logging level",
    )

    return parser


def bytes_to_human_readable(size_bytes: int | float, precision: int = 2) -> str:
    """
    Converts a size in bytes to a human-readable string (e.g., 1024 -> 1.00 KiB).

    Args:
        size_bytes: The size in bytes (int or float).
        precision: The number of decimal places for the result.

    Returns:
        A string representing the size in a human-readable format.
    """
    if size_bytes < 0:
        return "Invalid size"
    if size_bytes == 0:
        return "0 Bytes"

    UNITS: Final[list[str]] = ["Bytes", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB", "ZiB", "YiB"]
    BASE: Final[int] = 1024

    # Every 2^10 is one unit further along
    unit_index: int = math.floor(math.log2(size_bytes) / 10)
    unit_index = max(0, min(unit_index, len(UNITS) - 1))

    converted_size: float = size_bytes / (BASE**unit_index)
    return f"{converted_size:.{precision}f} {UNITS[unit_index]}"


def shorten_digest(digest: str) -> str:
    """
    Shortens a digest for display, keeping the algorithm and 12 hex characters
    """
    if not digest:
        return "-"
    if digest.startswith("sha256:"):
        return f"{digest[:19]}..."
    return f"{digest[:12]}..."


def datestr2date(value: str) -> datetime:
    """
    Parses an image config date string to a Python datetime, handling
    the Z notation for Zulu (UTC) time
    """
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
