#!/usr/bin/env python3
"""Translation strategies for Local SubTrans.

Every strategy translates a Transcript in place into one target language:

- simple:  each segment on its own, one attempt, no context
- context: each segment with its neighbours as context, judged and retried
- nlp:     segments merged into sentences by a gap/punctuation heuristic
- llm:     sentences agreed on by sliding-window model analysis

A unit (segment or sentence) that fails to translate keeps its original text.
"""
from __future__ import annotations

from typing import Dict, List, Sequence, Type

from .config import normalize_translation_mode
from .errors import TranslationError
from .logging_utils import log, warn
from .models import (
    ReconstructedSentence,
    TimedSegment,
    TranslateConfig,
    TranslationMode,
    TranslationQuality,
    Transcript,
)
from .quality_gate import RetryQualityGate
from .reconstruction import SlidingWindowReconstructor, build_sentences, map_sentences_to_segments
from .translator import OllamaTranslator


# A sentence translation longer than this many times its source is rejected
MAX_SENTENCE_GROWTH = 3

NLP_CACHE_CONTEXT = "nlp"


# ============================================================
# Helpers
# ============================================================

def build_segment_context(segments: Sequence[TimedSegment], idx: int, window: int) -> str:
    """Join the text of up to ``window`` segments on each side of idx."""
    before = segments[max(0, idx - window):idx]
    after = segments[idx + 1:idx + 1 + window]
    return " ".join(s.text for s in list(before) + list(after))


def validate_translation(original: str, translated: str) -> bool:
    """Reject empty, untranslated or runaway sentence translations."""
    if not translated.strip():
        return False
    if original.strip() == translated.strip():
        return False
    return len(translated) <= MAX_SENTENCE_GROWTH * len(original)


def update_transcript_with_sentences(transcript: Transcript, sentences: Sequence[ReconstructedSentence]) -> None:
    """Replace the transcript's text with translated sentences.

    With one sentence per segment the segment texts are replaced in place.
    Otherwise the segments are replaced by one evenly spaced segment per
    sentence covering the original time span.

    Args:
        transcript: Transcript to update
        sentences: Sentences with ``translated_text`` filled in
    """
    segments = transcript.segments
    if len(sentences) == len(segments):
        for seg, sentence in zip(segments, sentences):
            seg.text = sentence.translated_text
        transcript.rebuild_full_text()
        return

    if segments:
        span_start = segments[0].start
        slot = (segments[-1].end - span_start) / max(1, len(sentences))
    else:
        span_start, slot = 0.0, 1.0

    rebuilt: List[TimedSegment] = []
    for i, sentence in enumerate(sentences):
        start = span_start + i * slot
        rebuilt.append(TimedSegment(
            id=i,
            start=start,
            end=start + slot,
            text=sentence.translated_text,
            compression_ratio=1.0,
        ))
    transcript.segments = rebuilt
    transcript.full_text = " ".join(s.translated_text for s in sentences)


# ============================================================
# Strategies
# ============================================================

class TranslationStrategy:
    """Base class for in-place transcript translation.

    Args:
        translator: OllamaTranslator used for model calls and caching
        config: Translation settings
        quiet: Suppress log output
        verbose: Print debug output
    """

    mode = ""

    def __init__(
        self,
        translator: OllamaTranslator,
        config: TranslateConfig,
        *,
        quiet: bool = False,
        verbose: bool = False,
    ):
        self.translator = translator
        self.config = config
        self.quiet = quiet
        self.verbose = verbose

    def translate(self, transcript: Transcript, target_language: str) -> None:
        raise NotImplementedError

    def translate_once(self, text: str, target_language: str, cache_context: str) -> str:
        """Single-attempt translation through the translation cache.

        Raises:
            TranslationError: If the model call fails
        """
        tr = self.translator
        key = tr.cache_key(text, target_language, cache_context)
        hit = tr.cached(key)
        if hit is not None:
            return hit
        translation = tr.translate_text(text, target_language)
        tr.remember(key, text, target_language, cache_context, translation, TranslationQuality.GOOD)
        return translation


class SimpleStrategy(TranslationStrategy):
    mode = TranslationMode.SIMPLE

    def translate(self, transcript: Transcript, target_language: str) -> None:
        total = len(transcript.segments)
        for i, seg in enumerate(transcript.segments, start=1):
            if not seg.text.strip():
                continue
            log(f"   [{i}/{total}] {seg.text}", quiet=self.quiet)
            try:
                seg.text = self.translate_once(seg.text, target_language, "")
            except TranslationError as e:
                warn(f"Segment {i} failed, keeping original: {e}", quiet=self.quiet)
        transcript.rebuild_full_text()


class ContextStrategy(TranslationStrategy):
    """Translate segments one by one, showing the model their neighbours."""

    mode = TranslationMode.CONTEXT

    def translate(self, transcript: Transcript, target_language: str) -> None:
        segments = transcript.segments
        # contexts come from the source text, before any segment is replaced
        contexts = [build_segment_context(segments, i, self.config.context_window_size) for i in range(len(segments))]
        gate = RetryQualityGate(
            self.translator,
            max_retries=self.config.max_retries,
            retry_delay=self.config.retry_delay,
            quiet=self.quiet,
        )
        source_language = transcript.language or "en"
        for i, (seg, context) in enumerate(zip(segments, contexts), start=1):
            if not seg.text.strip():
                continue
            log(f"   [{i}/{len(segments)}] {seg.text}", quiet=self.quiet)
            try:
                seg.text = gate.translate(seg.text, target_language, context, source_language=source_language)
            except TranslationError as e:
                warn(f"Segment {i} failed, keeping original: {e}", quiet=self.quiet)
        transcript.rebuild_full_text()


class NlpStrategy(TranslationStrategy):
    """Translate heuristic sentences and spread the words back over segments."""

    mode = TranslationMode.NLP

    def translate(self, transcript: Transcript, target_language: str) -> None:
        sentences = build_sentences(transcript.segments, self.config.nlp_gap_threshold)
        log(f"   Reconstructed {len(sentences)} sentences from {len(transcript.segments)} segments",
            quiet=self.quiet)
        for i, sentence in enumerate(sentences, start=1):
            log(f"   [{i}/{len(sentences)}] {sentence.text}", quiet=self.quiet)
            try:
                sentence.translated_text = self.translate_once(sentence.text, target_language, NLP_CACHE_CONTEXT)
            except TranslationError as e:
                warn(f"Sentence {i} failed, keeping original: {e}", quiet=self.quiet)
        map_sentences_to_segments(sentences, transcript.segments)
        transcript.rebuild_full_text()


class LlmStrategy(TranslationStrategy):
    """Translate sentences found by sliding-window model consensus."""

    mode = TranslationMode.LLM

    def translate(self, transcript: Transcript, target_language: str) -> None:
        if not transcript.segments:
            return
        reconstructor = SlidingWindowReconstructor(
            self.translator.client,
            window_size=self.config.llm_window_size,
            confidence_threshold=self.config.llm_confidence_threshold,
            quiet=self.quiet,
            verbose=self.verbose,
        )
        sentences = reconstructor.reconstruct(transcript.segments)
        log(f"   Reconstructed {len(sentences)} sentences", quiet=self.quiet)

        translated = 0
        for i, sentence in enumerate(sentences, start=1):
            try:
                result = self.translator.translate_text(sentence.text, target_language)
            except TranslationError as e:
                warn(f"Sentence {i} failed, keeping original: {e}", quiet=self.quiet)
                sentence.translated_text = sentence.text
                continue
            if validate_translation(sentence.text, result):
                sentence.translated_text = result
                translated += 1
            else:
                warn(f"Sentence {i} failed validation, keeping original", quiet=self.quiet)
                sentence.translated_text = sentence.text

        update_transcript_with_sentences(transcript, sentences)
        log(f"   Translated {translated}/{len(sentences)} sentences", quiet=self.quiet)


STRATEGIES: Dict[str, Type[TranslationStrategy]] = {
    TranslationMode.SIMPLE: SimpleStrategy,
    TranslationMode.CONTEXT: ContextStrategy,
    TranslationMode.NLP: NlpStrategy,
    TranslationMode.LLM: LlmStrategy,
}


def create_strategy(
    mode: str,
    translator: OllamaTranslator,
    config: TranslateConfig,
    *,
    quiet: bool = False,
    verbose: bool = False,
) -> TranslationStrategy:
    """Instantiate the strategy for a mode name or alias.

    Raises:
        ValueError: If the mode is unknown
    """
    cls = STRATEGIES[normalize_translation_mode(mode)]
    return cls(translator, config, quiet=quiet, verbose=verbose)
