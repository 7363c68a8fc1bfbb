#!/usr/bin/env python3
"""System utilities and dependency checks for Local SubTrans.

This module provides:
- File system helpers
- External tool checks (ffmpeg, ffprobe)
- Command execution helpers
- Media duration probing
"""
from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple


# ============================================================
# File System Utilities
# ============================================================

def ensure_parent_dir(path: Path) -> None:
    """Create a file's parent directory if it does not exist yet.

    Args:
        path: Path to a file whose parent directory should exist
    """
    parent = path.parent
    if parent and not parent.exists():
        parent.mkdir(parents=True, exist_ok=True)


def file_mtime_seconds(path: Path) -> Optional[int]:
    """Return a file's modification time in whole seconds, or None if unreadable."""
    try:
        return int(path.stat().st_mtime)
    except OSError:
        return None


# ============================================================
# External Tool Checks
# ============================================================

def which_or_none(name: str) -> Optional[str]:
    return shutil.which(name)


def binary_ok(name: str) -> bool:
    """Check whether an executable is available on PATH (or is an existing path).

    Args:
        name: Executable name or path

    Returns:
        True if it can be executed
    """
    return which_or_none(name) is not None


def binary_version(name: str) -> Optional[str]:
    """Return the first line of ``<name> -version``, or None if unavailable."""
    if not binary_ok(name):
        return None
    code, out, _ = run_cmd_text([name, "-version"])
    if code != 0:
        return None
    return out.splitlines()[0].strip() if out else None


# ============================================================
# Command Execution
# ============================================================

def run_cmd_text(cmd: List[str]) -> Tuple[int, str, str]:
    """Run a command and capture its output as text.

    Args:
        cmd: Command and arguments to execute

    Returns:
        Tuple of (return_code, stdout, stderr)
    """
    p = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
    return p.returncode, p.stdout, p.stderr


def run_checked(cmd: List[str]) -> None:
    """Run a command, raising with the tail of stderr when it fails.

    Args:
        cmd: Command and arguments to execute

    Raises:
        subprocess.CalledProcessError: If the command exits non-zero
    """
    p = subprocess.run(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE, text=True)
    if p.returncode != 0:
        tail = "\n".join((p.stderr or "").splitlines()[-20:])
        raise subprocess.CalledProcessError(p.returncode, cmd, output=None, stderr=tail)


# ============================================================
# Media Probing
# ============================================================

def probe_duration_seconds(path: str) -> Optional[float]:
    """Probe a media file for its duration in seconds.

    Args:
        path: Path to media file

    Returns:
        Duration in seconds, or None if ffprobe is missing or probing fails
    """
    if not binary_ok("ffprobe"):
        return None
    cmd = [
        "ffprobe", "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        path
    ]
    code, out, _ = run_cmd_text(cmd)
    if code != 0:
        return None
    try:
        return float(out.strip())
    except ValueError:
        return None
