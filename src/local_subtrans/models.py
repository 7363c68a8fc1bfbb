#!/usr/bin/env python3
"""Data models for Local SubTrans.

This module contains the data classes used throughout the application:
- TOOL_VERSION: Version constant
- Configuration sections (TranscriberConfig, TranslateConfig, QualityConfig, ...)
- TimedSegment / Transcript: Speech-to-text output
- QualityReport: Derived quality metrics for a transcript
- TuneAttempt / TuneResult: Tempo tuning records
- ReconstructedSentence / SentenceCandidate: Sentence reconstruction records
- Cache entry records and CacheInfo
"""
from __future__ import annotations

import copy
import dataclasses
import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


# ============================================================
# Versioning
# ============================================================

TOOL_VERSION = "0.2.0"


# ============================================================
# Modes
# ============================================================

class TranscriberMode:
    TUNED = "tuned"
    SIMPLE = "simple"

    ALL = (TUNED, SIMPLE)


class TranslationMode:
    SIMPLE = "simple"
    CONTEXT = "context"
    NLP = "nlp"
    LLM = "llm"

    ALL = (SIMPLE, CONTEXT, NLP, LLM)


class TranslationQuality(enum.Enum):
    """Ordered verdicts returned by the translation judge."""
    PERFECT = "PERFECT"
    GOOD = "GOOD"
    BAD = "BAD"
    INVALID = "INVALID"

    @classmethod
    def from_label(cls, label: str) -> "TranslationQuality":
        """Map a judge label to a verdict; unknown labels count as GOOD."""
        try:
            return cls(label.strip().strip("[]").strip().upper())
        except ValueError:
            return cls.GOOD

    def is_acceptable(self) -> bool:
        return self in (TranslationQuality.PERFECT, TranslationQuality.GOOD)


# ============================================================
# Configuration
# ============================================================

@dataclass
class TranscriberConfig:
    """Settings for the speech-to-text stage and tempo tuning."""
    mode: str = TranscriberMode.TUNED

    # models
    explore_model: str = "base"
    transcribe_model: str = "medium"
    device: str = "auto"           # auto|cpu|cuda
    strict_cuda: bool = False

    # language handling
    acceptable_languages: List[str] = field(default_factory=list)
    fallback_language: str = "en"

    # tempo exploration
    explore_steps: int = 10
    min_tempo: int = 80
    max_tempo: int = 110

    temperature: float = 0.0
    vad_filter: bool = True


@dataclass
class TranslateConfig:
    """Settings for the translation model and strategies."""
    endpoint: str = "http://localhost:11434"
    model: str = "llama3.2:3b"
    mode: str = TranslationMode.SIMPLE
    max_retries: int = 3
    retry_delay: float = 0.5
    timeout: float = 300.0

    # context mode
    context_window_size: int = 2

    # nlp mode
    nlp_gap_threshold: float = 2.0

    # llm mode
    llm_window_size: int = 6
    llm_confidence_threshold: float = 0.6


@dataclass
class QualityConfig:
    """Thresholds used to accept or reject a transcript."""
    repetitive_segment_threshold: float = 0.8
    max_tokens_threshold: float = 50.0
    min_quality_score: float = 0.7


@dataclass
class MediaConfig:
    """Settings for the ffmpeg collaborator."""
    ffmpeg_binary: str = "ffmpeg"
    subtitle_options: List[str] = field(default_factory=list)


@dataclass
class CacheConfig:
    root: str = ".subtrans/cache"


@dataclass
class AppConfig:
    """Fully resolved application configuration."""
    transcriber: TranscriberConfig = field(default_factory=TranscriberConfig)
    translate: TranslateConfig = field(default_factory=TranslateConfig)
    quality: QualityConfig = field(default_factory=QualityConfig)
    media: MediaConfig = field(default_factory=MediaConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)


# ============================================================
# Transcript Data Structures
# ============================================================

@dataclass
class TimedSegment:
    """A single timed unit of transcribed speech.

    Attributes:
        id: Segment index as reported by the transcriber
        start: Start time in seconds
        end: End time in seconds
        text: Segment text (replaced by its translation during translation)
        avg_logprob: Average token log probability
        compression_ratio: gzip compression ratio of the text
        no_speech_prob: Probability that the segment contains no speech
        tokens: Token ids produced for the segment
        temperature: Sampling temperature used for the segment
    """
    id: int
    start: float
    end: float
    text: str
    avg_logprob: float = 0.0
    compression_ratio: float = 0.0
    no_speech_prob: float = 0.0
    tokens: List[int] = field(default_factory=list)
    temperature: float = 0.0

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass
class Transcript:
    """Ordered timed segments plus their joined text and language."""
    full_text: str
    segments: List[TimedSegment]
    language: str = ""

    @classmethod
    def from_segments(cls, segments: List[TimedSegment], language: str = "") -> "Transcript":
        t = cls(full_text="", segments=segments, language=language)
        t.rebuild_full_text()
        return t

    def rebuild_full_text(self) -> None:
        self.full_text = " ".join(s.text.strip() for s in self.segments if s.text.strip())

    def copy(self) -> "Transcript":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transcript":
        segments = [TimedSegment(**s) for s in data.get("segments", [])]
        return cls(
            full_text=data.get("full_text", ""),
            segments=segments,
            language=data.get("language", ""),
        )


# ============================================================
# Quality
# ============================================================

@dataclass
class HallucinationPeriod:
    start: float
    end: float
    confidence: float


@dataclass
class QualityReport:
    """Quality metrics derived from a transcript. Lower score is better."""
    max_segment_token_count: int
    repetitive_segment_ratio: float
    hallucination_periods: List[HallucinationPeriod] = field(default_factory=list)

    def score(self) -> float:
        token_penalty = self.max_segment_token_count / 100.0
        return token_penalty + self.repetitive_segment_ratio + 0.5 * len(self.hallucination_periods)

    def has_hallucinations(self) -> bool:
        return len(self.hallucination_periods) > 0


# ============================================================
# Tuning
# ============================================================

@dataclass
class TuneAttempt:
    """One explored tempo and its smoothness score (lower is better)."""
    parameter_value: int
    quality_proxy: float


@dataclass
class TuneResult:
    """Outcome of a tuning run.

    Attributes:
        best_transcript: Transcript produced with the full model at the best tempo
        best_parameter: Selected tempo in percent
        best_quality_score: QualityReport score of best_transcript
        all_attempts: Every explored tempo with its smoothness score
        best_temperature: Temperature used for the final transcription
        tested_parameters: Human-readable description of what was explored
    """
    best_transcript: Transcript
    best_parameter: int
    best_quality_score: float
    all_attempts: List[TuneAttempt] = field(default_factory=list)
    best_temperature: float = 0.0
    tested_parameters: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        d = dataclasses.asdict(self)
        # json has no infinity; failed attempts are stored as null
        d["all_attempts"] = [
            {"parameter_value": a.parameter_value,
             "quality_proxy": None if a.quality_proxy == float("inf") else a.quality_proxy}
            for a in self.all_attempts
        ]
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TuneResult":
        attempts = [
            TuneAttempt(
                parameter_value=int(a["parameter_value"]),
                quality_proxy=float("inf") if a.get("quality_proxy") is None else float(a["quality_proxy"]),
            )
            for a in data.get("all_attempts", [])
        ]
        return cls(
            best_transcript=Transcript.from_dict(data["best_transcript"]),
            best_parameter=int(data["best_parameter"]),
            best_quality_score=float(data["best_quality_score"]),
            all_attempts=attempts,
            best_temperature=float(data.get("best_temperature", 0.0)),
            tested_parameters=list(data.get("tested_parameters", [])),
        )


# ============================================================
# Sentence Reconstruction
# ============================================================

@dataclass
class ReconstructedSentence:
    """A sentence merged from one or more segments (referenced by index)."""
    text: str
    start_time: float
    end_time: float
    source_segment_indices: List[int] = field(default_factory=list)
    translated_text: str = ""


@dataclass
class SentenceCandidate:
    """Voting record for a sentence detected by sliding-window analysis."""
    text: str
    detection_count: int
    total_windows: int

    @property
    def confidence(self) -> float:
        if self.total_windows <= 0:
            return 0.0
        return self.detection_count / self.total_windows


# ============================================================
# Cache Records
# ============================================================

@dataclass
class TranscriptionCacheEntry:
    transcript: Transcript
    model: str
    temperature: float
    language: Optional[str]
    audio_path: str
    audio_modified: Optional[int]
    cached_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranscriptionCacheEntry":
        d = dict(data)
        d["transcript"] = Transcript.from_dict(d["transcript"])
        return cls(**d)


@dataclass
class AudioCacheEntry:
    audio_path: str
    video_path: str
    video_modified: Optional[int]
    cached_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AudioCacheEntry":
        return cls(**data)


@dataclass
class TranslationCacheEntry:
    source_text: str
    target_language: str
    context: str
    translation: str
    quality: str
    model: str
    cached_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranslationCacheEntry":
        return cls(**data)


@dataclass
class CacheInfo:
    """Aggregate statistics over every cache directory."""
    transcription_files: int = 0
    transcription_size: int = 0
    audio_files: int = 0
    audio_size: int = 0
    translation_files: int = 0
    translation_size: int = 0
    tuning_files: int = 0
    tuning_size: int = 0
    oldest_entry: Optional[int] = None
    newest_entry: Optional[int] = None
    models_used: List[str] = field(default_factory=list)

    def total_size(self) -> int:
        return self.transcription_size + self.audio_size + self.translation_size + self.tuning_size
