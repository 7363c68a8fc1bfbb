#!/usr/bin/env python3
"""Exception types for Local SubTrans.

Media (ffmpeg) failures are reported as subprocess.CalledProcessError and
configuration problems as FileNotFoundError / ValueError; everything raised
by the transcription and translation stages derives from SubtransError.
"""
from __future__ import annotations

from typing import Optional

from .models import QualityReport


class SubtransError(Exception):
    """Base class for pipeline errors."""


class TranscriptionError(SubtransError):
    """The speech-to-text collaborator failed."""


class TranslationError(SubtransError):
    """The translation model failed or no acceptable translation was produced."""


class CacheError(SubtransError):
    """A cache directory could not be created or read."""


class QualityError(SubtransError):
    """A transcript breached a configured quality threshold.

    Attributes:
        report: The QualityReport that caused the rejection, when available
    """

    def __init__(self, message: str, report: Optional[QualityReport] = None):
        super().__init__(message)
        self.report = report


class HallucinationError(QualityError):
    """A transcript contains hallucinated periods."""
