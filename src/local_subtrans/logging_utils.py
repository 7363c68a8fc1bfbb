#!/usr/bin/env python3
"""Logging and progress helpers for Local SubTrans.

Every pipeline component reports through these print-based helpers and
accepts a ``quiet`` flag, so the CLI controls verbosity in one place.
"""
from __future__ import annotations

import sys


# ============================================================
# Logging
# ============================================================

def log(msg: str, *, quiet: bool = False) -> None:
    """Print a message to stdout unless quiet mode is enabled.

    Args:
        msg: Message to log
        quiet: If True, suppress output
    """
    if not quiet:
        print(msg, flush=True)


def warn(msg: str, *, quiet: bool = False) -> None:
    """Print a ``WARNING:`` line to stderr unless quiet mode is enabled.

    Args:
        msg: Warning message
        quiet: If True, suppress output
    """
    if not quiet:
        print(f"WARNING: {msg}", file=sys.stderr, flush=True)


def debug(msg: str, *, enabled: bool = False) -> None:
    """Print a ``DEBUG:`` line to stderr when verbose output was requested."""
    if enabled:
        print(f"DEBUG: {msg}", file=sys.stderr, flush=True)


def die(msg: str, code: int = 1) -> int:
    """Print an ``ERROR:`` line to stderr and hand back an exit code.

    Args:
        msg: Error message
        code: Exit code to return (default: 1)

    Returns:
        The exit code provided
    """
    print(f"ERROR: {msg}", file=sys.stderr, flush=True)
    return code


# ============================================================
# Progress
# ============================================================

def progress_line(msg: str, *, enabled: bool, quiet: bool) -> None:
    """Overwrite the current terminal line with a progress message (max 120 chars)."""
    if quiet or not enabled:
        return
    sys.stdout.write("\r" + msg[:120].ljust(120))
    sys.stdout.flush()


def progress_done(*, enabled: bool, quiet: bool) -> None:
    if quiet or not enabled:
        return
    sys.stdout.write("\n")
    sys.stdout.flush()


# ============================================================
# Time Formatting
# ============================================================

def format_duration(seconds: float) -> str:
    """Format a duration as H:MM:SS, or M:SS below one hour.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted duration string (e.g., "1:23:45" or "23:45")
    """
    seconds = max(0, int(seconds))
    h = seconds // 3600
    m = (seconds % 3600) // 60
    s = seconds % 60
    if h > 0:
        return f"{h:d}:{m:02d}:{s:02d}"
    return f"{m:d}:{s:02d}"


def format_age(seconds: float) -> str:
    """Format an elapsed age coarsely for cache listings.

    Args:
        seconds: Age in seconds

    Returns:
        "3d 4h", "2h 5m", "4m 1s" or "9s"
    """
    seconds = max(0, int(seconds))
    days = seconds // 86400
    hours = (seconds % 86400) // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
