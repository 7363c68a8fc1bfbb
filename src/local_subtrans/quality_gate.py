#!/usr/bin/env python3
"""Retry-until-acceptable translation for Local SubTrans.

A translation is only accepted once the judge rates it PERFECT or GOOD.
Accepted translations are cached with the judge's label; rejected ones are
never persisted.
"""
from __future__ import annotations

import time

from .errors import TranslationError
from .logging_utils import log, warn
from .translator import OllamaTranslator


# A translation this many times longer than its source is treated as the
# model translating the context too
MAX_LENGTH_RATIO = 5


class RetryQualityGate:
    """Translate a text with a judge in the loop.

    Args:
        translator: OllamaTranslator providing translation, judging and caching
        max_retries: Attempts before giving up
        retry_delay: Seconds to sleep between attempts
        quiet: Suppress log output
    """

    def __init__(
        self,
        translator: OllamaTranslator,
        *,
        max_retries: int = 3,
        retry_delay: float = 0.5,
        quiet: bool = False,
    ):
        self.translator = translator
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.quiet = quiet

    def translate(
        self,
        text: str,
        target_language: str,
        context: str = "",
        *,
        source_language: str = "en",
    ) -> str:
        """Translate text, retrying until the judge accepts the result.

        An over-long translation drops the context and uses up the attempt
        without sleeping. A rejected or failed attempt sleeps ``retry_delay``
        and retries with the same context.

        Args:
            text: Source text
            target_language: Target language code
            context: Neighbouring text given to the model for reference
            source_language: Source language code (for the judge prompt)

        Returns:
            The accepted (or cached) translation

        Raises:
            TranslationError: When every attempt fails
        """
        tr = self.translator
        key = tr.cache_key(text, target_language, context)
        hit = tr.cached(key)
        if hit is not None:
            return hit

        current_context = context
        for attempt in range(1, self.max_retries + 1):
            try:
                translation = tr.translate_text(text, target_language, current_context or None)
            except TranslationError as e:
                warn(f"Attempt {attempt} failed: {e}", quiet=self.quiet)
                self._pause(attempt)
                continue

            if len(translation) > MAX_LENGTH_RATIO * len(text):
                log(f"   Translation too long, removing context (attempt {attempt})", quiet=self.quiet)
                current_context = ""
                continue

            try:
                quality = tr.evaluate_quality(
                    text, translation, current_context, target_language, source_language
                )
            except TranslationError as e:
                warn(f"Quality evaluation failed: {e} (attempt {attempt})", quiet=self.quiet)
            else:
                if quality.is_acceptable():
                    log(f"   Quality: {quality.value}", quiet=self.quiet)
                    tr.remember(key, text, target_language, current_context, translation, quality)
                    return translation
                warn(f"Quality: {quality.value} - retrying (attempt {attempt})", quiet=self.quiet)

            self._pause(attempt)

        raise TranslationError(f"Failed to translate after {self.max_retries} attempts")

    def _pause(self, attempt: int) -> None:
        # no wait once the last attempt is spent
        if attempt < self.max_retries:
            time.sleep(self.retry_delay)
