#!/usr/bin/env python3
"""ffmpeg operations for Local SubTrans.

This module handles audio extraction (optionally tempo-adjusted) and
burning subtitles into a video. Failures raise
subprocess.CalledProcessError carrying the tail of ffmpeg's stderr.
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

from .system import binary_ok, ensure_parent_dir, run_checked


# ============================================================
# Availability
# ============================================================

def ffmpeg_ok(ffmpeg_bin: str = "ffmpeg") -> bool:
    return binary_ok(ffmpeg_bin)


# ============================================================
# Audio Extraction
# ============================================================

def audio_extract_cmd(
    input_path: str,
    wav_path: str,
    *,
    tempo_percent: Optional[int] = None,
    ffmpeg_bin: str = "ffmpeg",
) -> List[str]:
    """Build the ffmpeg command producing 16kHz mono PCM WAV.

    Args:
        input_path: Source audio/video file
        wav_path: Destination WAV file
        tempo_percent: Optional playback speed in percent (100 = unchanged)
        ffmpeg_bin: ffmpeg executable

    Returns:
        Command argument list
    """
    cmd = [
        ffmpeg_bin, "-y",
        "-loglevel", "error",
        "-i", input_path,
        "-vn",
        "-acodec", "pcm_s16le",
        "-ar", "16000",
        "-ac", "1",
    ]
    if tempo_percent is not None and tempo_percent != 100:
        cmd += ["-af", f"atempo={tempo_percent / 100.0:g}"]
    cmd.append(wav_path)
    return cmd


def extract_audio(input_path: Path, wav_path: Path, *, ffmpeg_bin: str = "ffmpeg") -> None:
    """Convert an audio/video file to 16kHz mono WAV.

    Raises:
        subprocess.CalledProcessError: If ffmpeg fails
    """
    ensure_parent_dir(Path(wav_path))
    run_checked(audio_extract_cmd(str(input_path), str(wav_path), ffmpeg_bin=ffmpeg_bin))


def extract_audio_with_tempo(
    input_path: Path,
    wav_path: Path,
    tempo_percent: int,
    *,
    ffmpeg_bin: str = "ffmpeg",
) -> None:
    """Convert to 16kHz mono WAV resampled at tempo_percent / 100 speed.

    ffmpeg's atempo filter accepts factors between 0.5 and 100.

    Raises:
        ValueError: If the tempo is outside the supported range
        subprocess.CalledProcessError: If ffmpeg fails
    """
    if not 50 <= tempo_percent <= 10000:
        raise ValueError(f"Tempo {tempo_percent}% is outside ffmpeg's atempo range (50-10000%).")
    ensure_parent_dir(Path(wav_path))
    run_checked(
        audio_extract_cmd(str(input_path), str(wav_path), tempo_percent=tempo_percent, ffmpeg_bin=ffmpeg_bin)
    )


# ============================================================
# Subtitle Embedding
# ============================================================

def escape_filter_path(path: str) -> str:
    """Escape a path for use inside an ffmpeg filter argument."""
    return (
        path.replace("\\", "/")
        .replace(":", "\\:")
        .replace("'", "\\'")
        .replace(",", "\\,")
    )


def embed_subtitles_cmd(
    video_path: str,
    srt_path: str,
    output_path: str,
    *,
    extra_options: Sequence[str] = (),
    ffmpeg_bin: str = "ffmpeg",
) -> List[str]:
    cmd = [
        ffmpeg_bin, "-y",
        "-loglevel", "error",
        "-i", video_path,
        "-vf", f"subtitles={escape_filter_path(srt_path)}",
        "-c:v", "libx264",
        "-c:a", "copy",
    ]
    cmd.extend(extra_options)
    cmd.append(output_path)
    return cmd


def embed_subtitles(
    video_path: Path,
    srt_path: Path,
    output_path: Path,
    *,
    extra_options: Sequence[str] = (),
    ffmpeg_bin: str = "ffmpeg",
) -> None:
    """Burn an SRT file into a copy of a video.

    Args:
        video_path: Source video
        srt_path: Subtitles to burn in (must already exist)
        output_path: Destination video
        extra_options: Additional ffmpeg output options
        ffmpeg_bin: ffmpeg executable

    Raises:
        FileNotFoundError: If the SRT file does not exist
        subprocess.CalledProcessError: If ffmpeg fails
    """
    if not Path(srt_path).exists():
        raise FileNotFoundError(f"Subtitle file not found: {srt_path}")
    ensure_parent_dir(Path(output_path))
    run_checked(
        embed_subtitles_cmd(
            str(video_path), str(srt_path), str(output_path),
            extra_options=extra_options, ffmpeg_bin=ffmpeg_bin,
        )
    )
