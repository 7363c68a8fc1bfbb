#!/usr/bin/env python3
"""Transcript quality assessment for Local SubTrans.

This module scores a transcript and detects hallucinated segments using the
confidence fields reported by the speech-to-text model.
"""
from __future__ import annotations

from collections import Counter
from typing import List, Optional

from .errors import HallucinationError, QualityError
from .models import HallucinationPeriod, QualityConfig, QualityReport, TimedSegment, Transcript


# ============================================================
# Hallucination Rules
# ============================================================

# silence misread as speech
SILENCE_NO_SPEECH_PROB = 0.8
SILENCE_MAX_COMPRESSION = 1.5

# pathologically repetitive output
REPETITION_MIN_COMPRESSION = 3.0


def detect_hallucinations(segments: List[TimedSegment]) -> List[HallucinationPeriod]:
    """Flag segments that look like hallucinated output.

    Both rules are checked for every segment, so a single segment can
    contribute two periods.

    Args:
        segments: Transcript segments

    Returns:
        List of HallucinationPeriod records in segment order
    """
    periods: List[HallucinationPeriod] = []
    for seg in segments:
        if seg.no_speech_prob > SILENCE_NO_SPEECH_PROB and seg.compression_ratio < SILENCE_MAX_COMPRESSION:
            periods.append(HallucinationPeriod(seg.start, seg.end, seg.no_speech_prob))
        if seg.compression_ratio > REPETITION_MIN_COMPRESSION:
            confidence = (seg.compression_ratio - REPETITION_MIN_COMPRESSION) / 10.0
            periods.append(HallucinationPeriod(seg.start, seg.end, confidence))
    return periods


def repetitive_segment_ratio(segments: List[TimedSegment]) -> float:
    """Fraction of segments that duplicate an earlier segment's text.

    Args:
        segments: Transcript segments

    Returns:
        sum(count - 1) over duplicated texts divided by the segment count
    """
    if not segments:
        return 0.0
    counts = Counter(s.text.strip().lower() for s in segments)
    counts.pop("", None)
    repeats = sum(c - 1 for c in counts.values() if c > 1)
    return repeats / len(segments)


def max_segment_token_count(segments: List[TimedSegment]) -> int:
    return max((len(s.tokens) for s in segments), default=0)


# ============================================================
# Assessor
# ============================================================

class QualityAssessor:
    """Computes QualityReports and enforces the configured thresholds."""

    def __init__(self, config: Optional[QualityConfig] = None):
        self.config = config or QualityConfig()

    def assess(self, transcript: Transcript) -> QualityReport:
        segments = transcript.segments
        return QualityReport(
            max_segment_token_count=max_segment_token_count(segments),
            repetitive_segment_ratio=repetitive_segment_ratio(segments),
            hallucination_periods=detect_hallucinations(segments),
        )

    def validate(self, transcript: Transcript) -> QualityReport:
        """Check a transcript against the configured thresholds.

        Hallucinations are always rejected, whatever the thresholds are.

        Args:
            transcript: Transcript to check

        Returns:
            The QualityReport when the transcript is acceptable

        Raises:
            HallucinationError: If any hallucinated period was detected
            QualityError: If a threshold is exceeded
        """
        report = self.assess(transcript)
        cfg = self.config

        if report.has_hallucinations():
            raise HallucinationError(
                f"Detected {len(report.hallucination_periods)} hallucinated period(s)",
                report,
            )
        if report.repetitive_segment_ratio > cfg.repetitive_segment_threshold:
            raise QualityError(
                f"Repetitive segment ratio {report.repetitive_segment_ratio:.2f} "
                f"exceeds {cfg.repetitive_segment_threshold:.2f}",
                report,
            )
        if report.max_segment_token_count > cfg.max_tokens_threshold:
            raise QualityError(
                f"Segment with {report.max_segment_token_count} tokens "
                f"exceeds {cfg.max_tokens_threshold:g}",
                report,
            )
        score = report.score()
        if score > cfg.min_quality_score:
            raise QualityError(
                f"Quality score {score:.3f} exceeds {cfg.min_quality_score:.3f}",
                report,
            )
        return report
