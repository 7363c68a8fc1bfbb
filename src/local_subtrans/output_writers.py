#!/usr/bin/env python3
"""Subtitle and transcript files for Local SubTrans.

This module writes transcripts as SRT (SubRip) or JSON and reads SRT
files back into Transcript objects for the translate-only workflow.
"""
from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import TOOL_VERSION, TimedSegment, Transcript
from .system import ensure_parent_dir
from .text_processing import normalize_spaces, wrap_text_lines


_SRT_TIME_RE = re.compile(
    r"(\d+):(\d{2}):(\d{2})[,.](\d{3})\s*-->\s*(\d+):(\d{2}):(\d{2})[,.](\d{3})"
)


# ============================================================
# Time Formatting
# ============================================================

def format_srt_time(seconds: float) -> str:
    """Format time for SRT format (HH:MM:SS,mmm).

    Args:
        seconds: Time in seconds

    Returns:
        Formatted time string (e.g., "00:01:23,456")
    """
    ms = int(round(max(0.0, seconds) * 1000))
    h = ms // 3_600_000
    ms %= 3_600_000
    m = ms // 60_000
    ms %= 60_000
    s = ms // 1000
    ms %= 1000
    return f"{h:02d}:{m:02d}:{s:02d},{ms:03d}"


def parse_srt_time(h: str, m: str, s: str, ms: str) -> float:
    return int(h) * 3600 + int(m) * 60 + int(s) + int(ms) / 1000.0


# ============================================================
# Atomic File Writing
# ============================================================

def atomic_write_text(path: Path, content: str) -> None:
    """Write text to a file atomically using a temporary file.

    Args:
        path: Destination file path
        content: Text content to write
    """
    ensure_parent_dir(path)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(content, encoding="utf-8")
    os.replace(tmp, path)


# ============================================================
# SRT
# ============================================================

def render_srt(transcript: Transcript, *, max_chars: Optional[int] = None) -> str:
    """Render a transcript as SRT text, skipping segments without text.

    Args:
        transcript: Transcript to render
        max_chars: Optional line width; long texts are wrapped when given

    Returns:
        SRT document
    """
    chunks: List[str] = []
    n = 0
    for seg in transcript.segments:
        text = normalize_spaces(seg.text)
        if not text:
            continue
        n += 1
        body = "\n".join(wrap_text_lines(text, max_chars)) if max_chars else text
        chunks.append(f"{n}\n{format_srt_time(seg.start)} --> {format_srt_time(seg.end)}\n{body}\n")
    return "\n".join(chunks)


def write_srt(transcript: Transcript, out_path: Path, *, max_chars: Optional[int] = None) -> None:
    """Write a transcript as an SRT file (atomically).

    Args:
        transcript: Transcript to write
        out_path: Output file path
        max_chars: Optional line width for wrapping
    """
    atomic_write_text(Path(out_path), render_srt(transcript, max_chars=max_chars))


def parse_srt(content: str, language: str = "") -> Transcript:
    """Parse SRT text into a Transcript.

    Cue numbers are ignored; segments are numbered in file order. Multi-line
    cue text is joined with spaces. Blocks without a timing line are skipped.
    """
    segments: List[TimedSegment] = []
    for block in re.split(r"\n\s*\n", content.replace("\r\n", "\n").strip()):
        lines = block.strip().split("\n")
        for i, line in enumerate(lines):
            m = _SRT_TIME_RE.search(line)
            if m is None:
                continue
            g = m.groups()
            segments.append(TimedSegment(
                id=len(segments),
                start=parse_srt_time(*g[:4]),
                end=parse_srt_time(*g[4:]),
                text=normalize_spaces(" ".join(lines[i + 1:])),
            ))
            break
    return Transcript.from_segments(segments, language=language)


def read_srt(path: Path, language: str = "") -> Transcript:
    """Read an SRT file into a Transcript.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    return parse_srt(Path(path).read_text(encoding="utf-8-sig"), language=language)


# ============================================================
# JSON
# ============================================================

def write_transcript_json(
    out_path: Path,
    transcript: Transcript,
    *,
    input_file: str,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """Write a transcript with its metadata as a JSON bundle.

    Args:
        out_path: Output file path
        transcript: Transcript to write
        input_file: Media file the transcript came from
        extra: Additional top-level fields (tuning results, model names, ...)
    """
    payload: Dict[str, Any] = {
        "tool_version": TOOL_VERSION,
        "input_file": input_file,
        "language": transcript.language,
        "transcript": transcript.to_dict(),
    }
    if extra:
        payload.update(extra)
    atomic_write_text(Path(out_path), json.dumps(payload, ensure_ascii=False, indent=2) + "\n")
