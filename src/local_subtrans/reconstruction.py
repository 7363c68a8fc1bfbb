#!/usr/bin/env python3
"""Sentence reconstruction for Local SubTrans.

Speech-to-text segments often cut sentences in half. Two reconstructors
rebuild whole sentences before translation:

- build_sentences: a deterministic heuristic driven by timing gaps and
  punctuation, which remembers the segment indices behind every sentence.
- SlidingWindowReconstructor: asks a language model to join segments in
  overlapping windows and keeps the sentences most windows agree on.
"""
from __future__ import annotations

from collections import Counter
from typing import List, Optional, Sequence, Set

from .errors import TranslationError
from .logging_utils import debug, log, warn
from .models import ReconstructedSentence, SentenceCandidate, TimedSegment
from .ollama_client import OllamaClient
from .response_parsing import parse_sentences
from .text_processing import (
    distribute_time,
    has_strong_sentence_ending,
    normalize_spaces,
    split_by_sentences,
    split_words_evenly,
)


# Buffered text is flushed once it grows past these lengths
MAX_BUFFER_CHARS = 800
SOFT_BUFFER_CHARS = 200

# A window needs at least this many segments ahead of it
MIN_WINDOW_SEGMENTS = 2


# ============================================================
# Gap / Punctuation Heuristic
# ============================================================

def _split_flushed(
    text: str,
    start: float,
    end: float,
    indices: List[int],
    out: List[ReconstructedSentence],
) -> None:
    parts = split_by_sentences(text)
    if len(parts) <= 1 or len(parts) > len(indices):
        out.append(ReconstructedSentence(text=text, start_time=start, end_time=end,
                                         source_segment_indices=list(indices)))
        return

    per_sentence = len(indices) // len(parts)
    for i, (s, e, part) in enumerate(distribute_time(start, end, parts)):
        lo = i * per_sentence
        # the last sentence takes any remainder so every segment is covered
        hi = len(indices) if i == len(parts) - 1 else lo + per_sentence
        out.append(ReconstructedSentence(text=part, start_time=s, end_time=e,
                                         source_segment_indices=indices[lo:hi]))


def build_sentences(segments: Sequence[TimedSegment], gap_threshold: float = 2.0) -> List[ReconstructedSentence]:
    """Merge consecutive segments into sentences.

    Segments are appended to a buffer until a pause longer than
    gap_threshold, until the buffer passes 800 characters, or until it
    passes 200 characters and contains a strong sentence ending. Each
    flushed buffer is then split at sentence punctuation with time
    distributed by character count.

    Args:
        segments: Transcript segments in order
        gap_threshold: Pause in seconds that always ends a sentence

    Returns:
        Sentences with their source segment indices
    """
    out: List[ReconstructedSentence] = []
    buf = ""
    buf_start = 0.0
    indices: List[int] = []

    for idx, seg in enumerate(segments):
        text = seg.text.strip()
        if not text:
            continue

        if buf and idx > 0 and seg.start - segments[idx - 1].end > gap_threshold:
            _split_flushed(buf.strip(), buf_start, segments[indices[-1]].end, indices, out)
            buf, indices = "", []

        if not buf:
            buf_start = seg.start
        buf = f"{buf} {text}" if buf else text
        indices.append(idx)

        if len(buf) > MAX_BUFFER_CHARS or (len(buf) > SOFT_BUFFER_CHARS and has_strong_sentence_ending(buf)):
            _split_flushed(buf.strip(), buf_start, seg.end, indices, out)
            buf, indices = "", []

    if buf.strip():
        _split_flushed(buf.strip(), buf_start, segments[indices[-1]].end, indices, out)
    return out


def map_sentences_to_segments(sentences: Sequence[ReconstructedSentence], segments: List[TimedSegment]) -> None:
    """Write each sentence's (translated) words back over its source segments.

    Words are spread evenly over the sentence's segments. Segment timing is
    left untouched; only the text changes.

    Args:
        sentences: Sentences produced by build_sentences
        segments: Segments to update in place
    """
    for sentence in sentences:
        text = sentence.translated_text or sentence.text
        indices = [i for i in sentence.source_segment_indices if 0 <= i < len(segments)]
        if not indices or not text.split():
            continue
        for idx, chunk in zip(indices, split_words_evenly(text, len(indices))):
            segments[idx].text = chunk


# ============================================================
# Sliding-Window Consensus
# ============================================================

def build_analysis_prompt(texts: Sequence[str]) -> str:
    bullets = "\n".join(f"• {t}" for t in texts)
    return (
        "You are a professional editor. Your task is to reconstruct complete sentences "
        "from transcribed speech segments.\n\n"
        "TASK: Combine the segments below into complete, natural sentences. Preserve the "
        "original words exactly - do not rephrase or correct grammar.\n\n"
        f"SEGMENTS:\n{bullets}\n\n"
        "INSTRUCTIONS:\n"
        "1. Join segments that form complete thoughts\n"
        "2. Keep the original text exactly as written\n"
        "3. Each sentence should be a complete idea\n"
        "4. Maintain natural flow and meaning\n\n"
        "Return ONLY a JSON object with the list of sentences:\n"
        '{\n  "sentences": [\n    "First complete sentence here",\n'
        '    "Second complete sentence here"\n  ]\n}\n\n'
        "Analyze the segments and return only the JSON response:"
    )


def normalize_text(text: str) -> str:
    return normalize_spaces(text).lower()


def is_prefix_or_suffix(shorter: str, longer: str) -> bool:
    """True when shorter (normalized) starts or ends longer (normalized).

    A string is never a prefix of a string that is not strictly longer.
    """
    if len(shorter) >= len(longer):
        return False
    s = normalize_text(shorter)
    lg = normalize_text(longer)
    return lg.startswith(s) or lg.endswith(s)


def calculate_sentence_confidence(all_sentences: Sequence[str], total_windows: int) -> List[SentenceCandidate]:
    """Turn every sentence reported by every window into scored candidates.

    Exact duplicates are counted. Candidates are then visited longest first:
    one that is a prefix or suffix of an already accepted candidate is
    dropped as redundant, otherwise it is accepted and absorbs the counts of
    any still unclaimed shorter prefixes or suffixes of itself.

    Args:
        all_sentences: Trimmed sentences from all successful windows
        total_windows: Number of windows that returned a result

    Returns:
        Candidates sorted by confidence, highest first
    """
    counts = Counter(all_sentences)
    ordered = sorted(counts, key=len, reverse=True)

    final: List[SentenceCandidate] = []
    used: Set[str] = set()
    for text in ordered:
        if text in used:
            continue
        if any(is_prefix_or_suffix(text, c.text) for c in final):
            continue
        used.add(text)
        detections = counts[text]
        for other in counts:
            if other != text and other not in used and is_prefix_or_suffix(other, text):
                detections += counts[other]
                used.add(other)
        final.append(SentenceCandidate(text=text, detection_count=detections, total_windows=total_windows))

    final.sort(key=lambda c: c.confidence, reverse=True)
    return final


class SlidingWindowReconstructor:
    """Rebuild sentences by model consensus over overlapping windows.

    Args:
        client: OllamaClient for the analysis calls
        window_size: Segments per window
        confidence_threshold: Minimum detection ratio to keep a sentence (inclusive)
        quiet: Suppress log output
        verbose: Print per-window debug output
    """

    def __init__(
        self,
        client: OllamaClient,
        *,
        window_size: int = 6,
        confidence_threshold: float = 0.6,
        quiet: bool = False,
        verbose: bool = False,
    ):
        self.client = client
        self.window_size = max(1, window_size)
        self.confidence_threshold = confidence_threshold
        self.quiet = quiet
        self.verbose = verbose

    def analyze_window(self, segments: Sequence[TimedSegment], window_start: int) -> List[str]:
        """Ask the model to join the segments of one window.

        Raises:
            TranslationError: On HTTP failure
        """
        window_end = min(window_start + self.window_size, len(segments))
        texts = [s.text for s in segments[window_start:window_end]]
        body = self.client.generate_raw(build_analysis_prompt(texts))
        debug(f"Raw analysis response: {body}", enabled=self.verbose)
        return parse_sentences(body)

    def analyze_all(self, segments: Sequence[TimedSegment]) -> List[SentenceCandidate]:
        """Slide the window one segment at a time and score every sentence seen.

        Windows whose request fails are skipped and not counted.
        """
        total = len(segments)
        if total < MIN_WINDOW_SEGMENTS:
            return []

        all_sentences: List[str] = []
        windows = 0
        start = 0
        while start < total:
            end = min(start + self.window_size, total)
            log(f"   Analyzing window {start + 1}-{end} of {total} segments", quiet=self.quiet)
            try:
                found = self.analyze_window(segments, start)
            except TranslationError as e:
                warn(f"Failed to analyze window {start + 1}-{end}: {e}", quiet=self.quiet)
            else:
                windows += 1
                all_sentences.extend(s.strip() for s in found if s.strip())

            start += 1
            if start + MIN_WINDOW_SEGMENTS >= total:
                break

        candidates = calculate_sentence_confidence(all_sentences, windows)
        log(f"   {windows} windows analyzed, {len(candidates)} unique sentences", quiet=self.quiet)
        return candidates

    def finalize(self, candidates: Sequence[SentenceCandidate]) -> List[SentenceCandidate]:
        """Keep candidates whose confidence reaches the threshold."""
        kept = [c for c in candidates if c.confidence >= self.confidence_threshold]
        for c in kept:
            debug(f"{c.confidence * 100:.1f}% ({c.detection_count}/{c.total_windows}) {c.text}", enabled=self.verbose)
        if not kept:
            log(
                f"   No sentence reached {self.confidence_threshold * 100:.1f}% confidence; "
                "using individual segments",
                quiet=self.quiet,
            )
        return kept

    @staticmethod
    def reconstruct_from_candidates(
        segments: Sequence[TimedSegment],
        candidates: Sequence[SentenceCandidate],
    ) -> List[ReconstructedSentence]:
        """Convert accepted candidates to sentences in document order.

        Candidates are placed where their text first occurs in the transcript;
        ones that cannot be located keep their relative order at the end. With
        no candidates every segment becomes its own sentence.
        """
        if not candidates:
            return [
                ReconstructedSentence(text=s.text, start_time=s.start, end_time=s.end,
                                      source_segment_indices=[i])
                for i, s in enumerate(segments)
            ]

        full = normalize_text(" ".join(s.text for s in segments))

        def position(c: SentenceCandidate) -> float:
            found = full.find(normalize_text(c.text))
            return float(found) if found >= 0 else float("inf")

        ordered = sorted(candidates, key=position)
        first: Optional[TimedSegment] = segments[0] if segments else None
        last: Optional[TimedSegment] = segments[-1] if segments else None
        return [
            ReconstructedSentence(
                text=c.text,
                start_time=first.start if first else 0.0,
                end_time=last.end if last else 0.0,
            )
            for c in ordered
        ]

    def reconstruct(self, segments: Sequence[TimedSegment]) -> List[ReconstructedSentence]:
        """Run window analysis, thresholding and conversion in one go."""
        return self.reconstruct_from_candidates(segments, self.finalize(self.analyze_all(segments)))
