#!/usr/bin/env python3
"""Tempo tuning for Local SubTrans.

The tuner resamples the source audio at several tempos and transcribes each
with the cheap exploration model. It scores every result by how evenly the
segments are sized, then re-transcribes with the full model at the winning
tempo.

There is no ground truth to compare against; the coefficient of variation of
segment durations stands in for "clean segmentation".
"""
from __future__ import annotations

import math
import subprocess
from pathlib import Path
from typing import List, Optional

from .cache import CacheStore
from .errors import CacheError, QualityError, TranscriptionError
from .logging_utils import log, warn
from .models import TranscriberConfig, TranscriberMode, Transcript, TuneAttempt, TuneResult
from .media import extract_audio_with_tempo
from .quality import QualityAssessor


WORST_SCORE = float("inf")
NEUTRAL_TEMPO = 100


# ============================================================
# Scoring Helpers
# ============================================================

def generate_tempo_range(min_tempo: int, max_tempo: int, steps: int) -> List[int]:
    """Evenly spaced tempo percentages between min_tempo and max_tempo.

    Args:
        min_tempo: Lowest tempo in percent
        max_tempo: Highest tempo in percent
        steps: Number of values to produce

    Returns:
        List of tempos; [100] when steps <= 1
    """
    if steps <= 1:
        return [NEUTRAL_TEMPO]
    step = (max_tempo - min_tempo) / (steps - 1)
    return [min_tempo + int(round(i * step)) for i in range(steps)]


def segment_smoothness(transcript: Transcript) -> float:
    """Coefficient of variation of segment durations; lower is smoother.

    Args:
        transcript: Transcript to score

    Returns:
        stddev / mean of the positive segment durations, or inf when fewer
        than two segments have a positive duration
    """
    durations = [s.end - s.start for s in transcript.segments if s.end - s.start > 0]
    if len(durations) < 2:
        return WORST_SCORE
    mean = sum(durations) / len(durations)
    if mean <= 0:
        return WORST_SCORE
    variance = sum((d - mean) ** 2 for d in durations) / len(durations)
    return math.sqrt(variance) / mean


def select_best_attempt(attempts: List[TuneAttempt]) -> Optional[TuneAttempt]:
    """Lowest-scoring attempt (earliest wins ties); None if every attempt scored inf."""
    finite = [a for a in attempts if a.quality_proxy != WORST_SCORE]
    if not finite:
        return None
    return min(finite, key=lambda a: a.quality_proxy)


# ============================================================
# Tuner
# ============================================================

class TranscriptionTuner:
    """Explore tempos with the cheap model, then transcribe with the full model.

    Args:
        transcriber: Object with ``transcribe(audio_path, model_name, language, time_scale=)``
        assessor: QualityAssessor used on the final transcript
        cache: CacheStore for tempo audio, transcripts and tuning results
        config: Transcriber settings
        ffmpeg_bin: ffmpeg executable used for tempo resampling
        quiet: Suppress log output
    """

    def __init__(
        self,
        transcriber,
        assessor: QualityAssessor,
        cache: CacheStore,
        config: TranscriberConfig,
        *,
        ffmpeg_bin: str = "ffmpeg",
        quiet: bool = False,
    ):
        self.transcriber = transcriber
        self.assessor = assessor
        self.cache = cache
        self.config = config
        self.ffmpeg_bin = ffmpeg_bin
        self.quiet = quiet

    # --------------------------------------------------------
    # Cached building blocks
    # --------------------------------------------------------

    def tempo_audio(self, audio_path: Path, tempo: int) -> Path:
        """Return audio resampled at tempo, extracting it into the audio cache on a miss."""
        if tempo == NEUTRAL_TEMPO:
            return audio_path
        audio_cache = self.cache.audio
        key = audio_cache.tempo_key_for(audio_path, tempo)
        cached = audio_cache.lookup(key)
        if cached is not None:
            return cached
        audio_cache.ensure_dir()
        extract_audio_with_tempo(audio_path, audio_cache.audio_path_for(key), tempo, ffmpeg_bin=self.ffmpeg_bin)
        return audio_cache.register(key, audio_path)

    def transcribe_at(self, audio_path: Path, tempo: int, model_name: str, language: Optional[str]) -> Transcript:
        """Transcribe audio_path at a tempo, with timestamps mapped back to source time."""
        source = self.tempo_audio(audio_path, tempo)
        store = self.cache.transcriptions
        key = store.key_for(source, model_name, self.config.temperature, language)
        cached = store.load(key)
        if cached is not None:
            log(f"   Cache hit: {model_name} @ {tempo}%", quiet=self.quiet)
            return cached

        transcript = self.transcriber.transcribe(source, model_name, language, time_scale=tempo / 100.0)
        try:
            store.save(
                key, transcript,
                audio_path=source, model=model_name,
                temperature=self.config.temperature, language=language,
            )
        except (OSError, CacheError) as e:
            warn(f"Failed to cache transcription: {e}", quiet=self.quiet)
        return transcript

    # --------------------------------------------------------
    # Stages
    # --------------------------------------------------------

    def explore(self, audio_path: Path, language: Optional[str]) -> List[TuneAttempt]:
        """Score every candidate tempo with the exploration model.

        A failing candidate is recorded with an infinite score and does not
        stop the exploration.
        """
        cfg = self.config
        tempos = generate_tempo_range(cfg.min_tempo, cfg.max_tempo, cfg.explore_steps)
        attempts: List[TuneAttempt] = []
        for i, tempo in enumerate(tempos, start=1):
            log(f"   [{i}/{len(tempos)}] Exploring tempo {tempo}% with {cfg.explore_model}", quiet=self.quiet)
            try:
                transcript = self.transcribe_at(audio_path, tempo, cfg.explore_model, language)
                score = segment_smoothness(transcript)
            except (TranscriptionError, CacheError, subprocess.CalledProcessError, ValueError) as e:
                warn(f"Tempo {tempo}% failed: {e}", quiet=self.quiet)
                score = WORST_SCORE
            attempts.append(TuneAttempt(parameter_value=tempo, quality_proxy=score))
            log(f"      smoothness={score:.4f}", quiet=self.quiet)
        return attempts

    def finalize(
        self,
        audio_path: Path,
        tempo: int,
        language: Optional[str],
        attempts: List[TuneAttempt],
        tested: List[str],
    ) -> TuneResult:
        """Transcribe with the full model at tempo and attach its quality score.

        Quality failures are reported but do not abort; the caller gets the
        final transcript with its score either way.

        Raises:
            TranscriptionError: If the final transcription fails
        """
        cfg = self.config
        log(f"   Transcribing with {cfg.transcribe_model} at tempo {tempo}%", quiet=self.quiet)
        try:
            transcript = self.transcribe_at(audio_path, tempo, cfg.transcribe_model, language)
        except (subprocess.CalledProcessError, ValueError) as e:
            raise TranscriptionError(f"Final transcription at tempo {tempo}% failed: {e}") from e

        try:
            report = self.assessor.validate(transcript)
        except QualityError as e:
            warn(f"Quality check failed: {e}", quiet=self.quiet)
            report = e.report or self.assessor.assess(transcript)

        return TuneResult(
            best_transcript=transcript,
            best_parameter=tempo,
            best_quality_score=report.score(),
            all_attempts=attempts,
            best_temperature=cfg.temperature,
            tested_parameters=tested,
        )

    def tune(self, audio_path: Path, language: Optional[str] = None) -> TuneResult:
        """Run the full tuning pipeline (or a single pass in simple mode).

        Args:
            audio_path: 16kHz mono WAV of the source
            language: Optional language hint

        Returns:
            TuneResult, served from the tuning cache when every knob matches

        Raises:
            TranscriptionError: If the final transcription fails
        """
        cfg = self.config
        audio_path = Path(audio_path)
        key = self.cache.tuning.key_for(audio_path, cfg, language)
        cached = self.cache.tuning.load(key)
        if cached is not None:
            log(
                f"   Using cached tuning result (tempo {cached.best_parameter}%, "
                f"quality {cached.best_quality_score:.3f})",
                quiet=self.quiet,
            )
            return cached

        if cfg.mode == TranscriberMode.SIMPLE:
            result = self.finalize(audio_path, NEUTRAL_TEMPO, language, [], ["single-pass"])
            result.all_attempts = [
                TuneAttempt(NEUTRAL_TEMPO, segment_smoothness(result.best_transcript))
            ]
        else:
            attempts = self.explore(audio_path, language)
            best = select_best_attempt(attempts)
            if best is None:
                warn("Every tempo candidate failed; using 100%", quiet=self.quiet)
                best_tempo = NEUTRAL_TEMPO
            else:
                best_tempo = best.parameter_value
                log(f"   Best tempo: {best_tempo}% (smoothness {best.quality_proxy:.4f})", quiet=self.quiet)
            tested = [f"tempo={a.parameter_value}%" for a in attempts]
            tested.append(f"explore_model={cfg.explore_model}")
            result = self.finalize(audio_path, best_tempo, language, attempts, tested)

        try:
            self.cache.tuning.save(key, result, audio_path=audio_path)
        except (OSError, CacheError) as e:
            warn(f"Failed to cache tuning result: {e}", quiet=self.quiet)
        log(f"   Tuning complete: quality score {result.best_quality_score:.3f}", quiet=self.quiet)
        return result
