#!/usr/bin/env python3
"""faster-whisper integration for Local SubTrans.

This module initializes Whisper models with device fallback and converts
faster-whisper segments into Transcript objects carrying the confidence
fields the quality assessor needs.
"""
from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from faster_whisper import WhisperModel

from .errors import TranscriptionError
from .logging_utils import format_duration, log, progress_done, progress_line
from .models import TimedSegment, TranscriberConfig, Transcript
from .system import probe_duration_seconds


# ============================================================
# Device Initialization
# ============================================================

def init_whisper_model(
    model_name: str,
    device: str,               # auto|cpu|cuda
    quiet: bool,
    strict_cuda: bool,
) -> Tuple[WhisperModel, str, str]:
    """Initialize a Whisper model with appropriate device and compute type.

    Args:
        model_name: Name of the Whisper model (e.g., "base", "medium")
        device: Device selection: "auto", "cpu", or "cuda"
        quiet: If True, suppress log messages
        strict_cuda: If True, fail if CUDA requested but unavailable

    Returns:
        Tuple of (model, device_used, compute_type_used)

    Raises:
        RuntimeError: If strict_cuda=True and CUDA initialization fails
    """
    if device == "cpu":
        return WhisperModel(model_name, device="cpu", compute_type="int8"), "cpu", "int8"

    try:
        m = WhisperModel(model_name, device="cuda", compute_type="float16")
        log(f"   Loaded {model_name} on device=cuda compute_type=float16", quiet=quiet)
        return m, "cuda", "float16"
    except Exception as e:
        if device == "cuda" and strict_cuda:
            raise RuntimeError(f"CUDA requested but init failed: {e}") from e
        log(f"   CUDA not available for {model_name}; using CPU. Reason: {e}", quiet=quiet)
        return WhisperModel(model_name, device="cpu", compute_type="int8"), "cpu", "int8"


# ============================================================
# Segment Conversion
# ============================================================

def segment_from_whisper(seg: Any, idx: int, time_scale: float = 1.0) -> TimedSegment:
    """Convert a faster-whisper Segment into a TimedSegment.

    Args:
        seg: faster-whisper segment (any object with the same attributes)
        idx: Fallback id when the segment has none
        time_scale: Multiplier applied to start/end (tempo compensation)

    Returns:
        TimedSegment with missing confidence fields defaulted to 0.0
    """
    return TimedSegment(
        id=int(getattr(seg, "id", idx)),
        start=float(getattr(seg, "start", 0.0)) * time_scale,
        end=float(getattr(seg, "end", 0.0)) * time_scale,
        text=str(getattr(seg, "text", "")).strip(),
        avg_logprob=float(getattr(seg, "avg_logprob", 0.0) or 0.0),
        compression_ratio=float(getattr(seg, "compression_ratio", 0.0) or 0.0),
        no_speech_prob=float(getattr(seg, "no_speech_prob", 0.0) or 0.0),
        tokens=list(getattr(seg, "tokens", None) or []),
        temperature=float(getattr(seg, "temperature", 0.0) or 0.0),
    )


def segments_to_transcript(segments: Iterable[Any], language: str, time_scale: float = 1.0) -> Transcript:
    timed = [segment_from_whisper(s, i, time_scale) for i, s in enumerate(segments)]
    return Transcript.from_segments(timed, language=language)


# ============================================================
# Transcriber
# ============================================================

class WhisperTranscriber:
    """Speech-to-text collaborator backed by faster-whisper.

    Models are loaded lazily and kept per name, so the exploration model
    and the final model are each loaded once per run.
    """

    def __init__(self, config: TranscriberConfig, *, quiet: bool = False, show_progress: bool = True):
        self.config = config
        self.quiet = quiet
        self.show_progress = show_progress
        self._models: Dict[str, WhisperModel] = {}

    def get_model(self, model_name: str) -> WhisperModel:
        if model_name not in self._models:
            model, _, _ = init_whisper_model(
                model_name=model_name,
                device=self.config.device,
                quiet=self.quiet,
                strict_cuda=self.config.strict_cuda,
            )
            self._models[model_name] = model
        return self._models[model_name]

    def _run(self, model: WhisperModel, audio_path: Path, language: Optional[str]) -> Tuple[List[Any], str]:
        segments_iter, info = model.transcribe(
            str(audio_path),
            language=language,
            temperature=self.config.temperature,
            vad_filter=self.config.vad_filter,
        )

        seg_list: List[Any] = []
        dur_total = probe_duration_seconds(str(audio_path))
        t0 = time.time()
        for idx, seg in enumerate(segments_iter, start=1):
            seg_list.append(seg)
            media_t = float(getattr(seg, "end", 0.0))
            pct = f"{min(1.0, media_t / dur_total) * 100:5.1f}%" if dur_total else ""
            progress_line(
                f"   {pct} segs:{idx:5d} | media_t={format_duration(media_t)}",
                enabled=self.show_progress,
                quiet=self.quiet,
            )
        progress_done(enabled=self.show_progress, quiet=self.quiet)
        log(f"   {len(seg_list)} segments in {format_duration(time.time() - t0)}", quiet=self.quiet)
        return seg_list, getattr(info, "language", None) or (language or "")

    def transcribe(
        self,
        audio_path: Path,
        model_name: str,
        language: Optional[str] = None,
        *,
        time_scale: float = 1.0,
    ) -> Transcript:
        """Transcribe an audio file.

        When no language hint is given and the detected language is not in
        ``acceptable_languages``, the audio is transcribed again with
        ``fallback_language``.

        Args:
            audio_path: WAV file to transcribe
            model_name: Whisper model name
            language: Optional language hint
            time_scale: Multiplier applied to segment times

        Returns:
            Transcript

        Raises:
            TranscriptionError: If the model cannot be loaded or transcription fails
        """
        try:
            model = self.get_model(model_name)
            seg_list, detected = self._run(model, audio_path, language)
            acceptable = self.config.acceptable_languages
            if language is None and acceptable and detected not in acceptable:
                fallback = self.config.fallback_language
                log(
                    f"   Detected language '{detected}' not in {acceptable}; retrying with '{fallback}'",
                    quiet=self.quiet,
                )
                seg_list, detected = self._run(model, audio_path, fallback)
        except TranscriptionError:
            raise
        except Exception as e:
            raise TranscriptionError(f"Transcription of {audio_path} with {model_name} failed: {e}") from e
        return segments_to_transcript(seg_list, detected, time_scale)
