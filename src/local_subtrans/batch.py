#!/usr/bin/env python3
"""Batch processing utilities for Local SubTrans.

This module handles:
- Video file discovery and expansion
- Output path calculation per target language
- Preflight checks before processing
"""
from __future__ import annotations

import glob
from pathlib import Path
from typing import Iterable, List, Optional, Tuple


# ============================================================
# Video File Discovery
# ============================================================

VIDEO_EXTS = {".mp4", ".avi", ".mov", ".mkv", ".wmv", ".flv", ".webm"}


def is_video_file(p: Path) -> bool:
    return p.is_file() and p.suffix.lower() in VIDEO_EXTS


def iter_video_files_in_dir(d: Path) -> Iterable[Path]:
    """Recursively iterate over all video files in a directory, in sorted order.

    Args:
        d: Directory path to search

    Yields:
        Path objects for each video file found
    """
    for p in sorted(d.rglob("*")):
        if is_video_file(p):
            yield p


def expand_inputs(inputs: List[str], glob_pat: Optional[str] = None) -> List[Path]:
    """Expand input specifications into a list of file paths.

    Handles:
    - Individual files
    - Directories (recursively finds video files)
    - Glob patterns (e.g., "*.mp4")

    Args:
        inputs: List of input file/directory/glob specifications
        glob_pat: Optional additional glob pattern

    Returns:
        Deduplicated list of Path objects
    """
    out: List[Path] = []
    for s in inputs:
        p = Path(s)
        if p.is_dir():
            out.extend(iter_video_files_in_dir(p))
        elif any(ch in s for ch in "*?[") and not p.exists():
            out.extend(Path(x) for x in sorted(glob.glob(s)))
        else:
            out.append(p)

    if glob_pat:
        out.extend(Path(x) for x in sorted(glob.glob(glob_pat)))

    # de-dupe, preserve order
    seen = set()
    uniq: List[Path] = []
    for p in out:
        rp = str(p.resolve()) if p.exists() else str(p)
        if rp in seen:
            continue
        seen.add(rp)
        uniq.append(p)
    return uniq


# ============================================================
# Output Path Calculation
# ============================================================

def outputs_for(video: Path, outdir: Optional[Path], lang: str) -> Tuple[Path, Path]:
    """Return the (srt, mp4) output paths for a video and target language.

    Outputs are named ``<stem>_<lang>.srt`` and ``<stem>_<lang>.mp4`` and go
    next to the video unless outdir is given.
    """
    base = outdir if outdir is not None else video.parent
    stem = f"{video.stem}_{lang}"
    return base / f"{stem}.srt", base / f"{stem}.mp4"


def parse_langs(value: str) -> List[str]:
    """Split a comma separated language list, dropping blanks and duplicates."""
    out: List[str] = []
    for part in (value or "").split(","):
        lang = part.strip().lower()
        if lang and lang not in out:
            out.append(lang)
    return out


# ============================================================
# Preflight Checks
# ============================================================

def preflight_one(input_path: Path, output_path: Path, overwrite: bool) -> Tuple[bool, str]:
    """Perform preflight checks before processing a file.

    Args:
        input_path: Input file path
        output_path: Output file path
        overwrite: If True, allow overwriting existing output

    Returns:
        Tuple of (success: bool, error_message: str)
        If success is True, error_message will be empty
    """
    if not input_path.exists():
        return False, f"Input file not found: {input_path}"
    if input_path.is_dir():
        return False, f"Input path is a directory (expected video file): {input_path}"
    if output_path.exists() and output_path.is_dir():
        return False, f"Output path is a directory (expected file): {output_path}"
    if output_path.exists() and not overwrite:
        return False, f"Output already exists: {output_path} (use --overwrite)"
    return True, ""
