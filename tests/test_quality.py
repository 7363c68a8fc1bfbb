"""Tests for the quality module."""
import pytest
from local_subtrans.errors import HallucinationError, QualityError
from local_subtrans.models import QualityConfig, TimedSegment, Transcript
from local_subtrans.quality import (
    QualityAssessor,
    detect_hallucinations,
    max_segment_token_count,
    repetitive_segment_ratio,
)


def seg(i, text, *, tokens=5, no_speech=0.1, ratio=1.2):
    return TimedSegment(
        id=i, start=float(i), end=float(i) + 1.0, text=text,
        tokens=list(range(tokens)), no_speech_prob=no_speech, compression_ratio=ratio,
    )


def clean_transcript():
    return Transcript.from_segments([
        seg(0, "Hello there."),
        seg(1, "How are you today?"),
        seg(2, "I am fine, thanks."),
    ], "en")


class TestDetectHallucinations:
    """Tests for detect_hallucinations function."""

    def test_clean_segments(self):
        """Test that ordinary segments produce no periods."""
        assert detect_hallucinations(clean_transcript().segments) == []

    def test_silence_rule(self):
        """Test high no-speech probability with low compression is flagged."""
        periods = detect_hallucinations([seg(0, "Thanks for watching", no_speech=0.9, ratio=1.0)])
        assert len(periods) == 1
        assert periods[0].confidence == 0.9
        assert (periods[0].start, periods[0].end) == (0.0, 1.0)

    def test_silence_rule_boundaries_are_exclusive(self):
        """Test that values exactly at the thresholds are not flagged."""
        assert detect_hallucinations([seg(0, "x", no_speech=0.8, ratio=1.0)]) == []
        assert detect_hallucinations([seg(0, "x", no_speech=0.9, ratio=1.5)]) == []

    def test_repetition_rule(self):
        """Test very high compression ratio is flagged with scaled confidence."""
        periods = detect_hallucinations([seg(0, "la la la la", ratio=4.0)])
        assert len(periods) == 1
        assert periods[0].confidence == pytest.approx(0.1)

    def test_periods_from_both_rules(self):
        """Test each rule contributes its own period."""
        periods = detect_hallucinations([
            seg(0, "a", no_speech=0.95, ratio=1.0),
            seg(1, "b", ratio=5.0),
        ])
        assert len(periods) == 2


class TestRepetitiveSegmentRatio:
    """Tests for repetitive_segment_ratio function."""

    def test_empty(self):
        """Test no segments gives zero."""
        assert repetitive_segment_ratio([]) == 0.0

    def test_counts_repeats_case_insensitively(self):
        """Test duplicates are counted after trimming and lowercasing."""
        segments = [seg(0, "Yes"), seg(1, " yes "), seg(2, "YES"), seg(3, "No")]
        assert repetitive_segment_ratio(segments) == pytest.approx(2 / 4)

    def test_no_repeats(self):
        """Test unique texts give zero."""
        assert repetitive_segment_ratio(clean_transcript().segments) == 0.0


class TestMaxSegmentTokenCount:
    """Tests for max_segment_token_count function."""

    def test_max(self):
        """Test the largest token list wins."""
        assert max_segment_token_count([seg(0, "a", tokens=3), seg(1, "b", tokens=12)]) == 12

    def test_empty(self):
        """Test no segments gives zero."""
        assert max_segment_token_count([]) == 0


class TestQualityAssessor:
    """Tests for QualityAssessor."""

    def test_clean_transcript_validates(self):
        """Test a clean three-segment transcript passes validation."""
        report = QualityAssessor().validate(clean_transcript())
        assert report.max_segment_token_count == 5
        assert report.repetitive_segment_ratio == 0.0
        assert report.score() == pytest.approx(0.05)

    def test_hallucination_always_rejected(self):
        """Test hallucinations are rejected even with permissive thresholds."""
        t = clean_transcript()
        t.segments[1].no_speech_prob = 0.95
        t.segments[1].compression_ratio = 1.0
        permissive = QualityConfig(
            repetitive_segment_threshold=1.0, max_tokens_threshold=1000, min_quality_score=100,
        )
        with pytest.raises(HallucinationError) as exc:
            QualityAssessor(permissive).validate(t)
        assert exc.value.report is not None
        assert exc.value.report.has_hallucinations()

    def test_repetition_rejected(self):
        """Test a mostly repeated transcript fails the repetition threshold."""
        t = Transcript.from_segments([seg(i, "same") for i in range(10)])
        with pytest.raises(QualityError, match="Repetitive"):
            QualityAssessor().validate(t)

    def test_token_threshold_rejected(self):
        """Test an over-long segment fails the token threshold."""
        t = clean_transcript()
        t.segments[0].tokens = list(range(60))
        with pytest.raises(QualityError, match="tokens"):
            QualityAssessor().validate(t)

    def test_score_threshold_rejected(self):
        """Test a score above min_quality_score fails."""
        t = clean_transcript()
        t.segments[0].tokens = list(range(40))
        with pytest.raises(QualityError, match="Quality score") as exc:
            QualityAssessor(QualityConfig(min_quality_score=0.3)).validate(t)
        assert not isinstance(exc.value, HallucinationError)

    def test_assess_does_not_raise(self):
        """Test assess reports problems without raising."""
        t = Transcript.from_segments([seg(i, "same") for i in range(4)])
        report = QualityAssessor().assess(t)
        assert report.repetitive_segment_ratio == pytest.approx(0.75)
