#!/usr/bin/env python3
"""Translation and judging through an Ollama model.

OllamaTranslator owns the prompts, the response parsing and the two-level
translation cache (persistent TranslationCache first, then an in-memory
dict for the current run). Strategies and the quality gate build on it.
"""
from __future__ import annotations

from typing import Dict, Optional

from .cache import TranslationCache, text_key
from .errors import CacheError, TranslationError
from .logging_utils import debug, warn
from .models import TranslateConfig, TranslationCacheEntry, TranslationQuality
from .ollama_client import OllamaClient
from .response_parsing import parse_evaluation, parse_translation


# Texts shorter than this are translated without surrounding context
SHORT_TEXT_CHARS = 50


# ============================================================
# Language Names
# ============================================================

LANGUAGE_NAMES: Dict[str, str] = {
    "en": "English", "ja": "Japanese", "ko": "Korean", "zh": "Chinese",
    "fr": "French", "de": "German", "es": "Spanish", "ru": "Russian",
    "it": "Italian", "pt": "Portuguese", "pl": "Polish", "nl": "Dutch",
    "tr": "Turkish", "ar": "Arabic", "hi": "Hindi", "th": "Thai",
    "vi": "Vietnamese", "sv": "Swedish", "da": "Danish", "no": "Norwegian",
    "fi": "Finnish", "he": "Hebrew", "hu": "Hungarian", "cs": "Czech",
    "sk": "Slovak", "bg": "Bulgarian", "hr": "Croatian", "sl": "Slovenian",
    "et": "Estonian", "lv": "Latvian", "lt": "Lithuanian", "mt": "Maltese",
    "ga": "Irish", "cy": "Welsh", "eu": "Basque", "ca": "Catalan",
    "gl": "Galician", "is": "Icelandic", "mk": "Macedonian", "sq": "Albanian",
    "be": "Belarusian", "uk": "Ukrainian", "az": "Azerbaijani", "kk": "Kazakh",
    "ky": "Kyrgyz", "uz": "Uzbek", "tg": "Tajik", "am": "Amharic",
    "ka": "Georgian", "hy": "Armenian", "ne": "Nepali", "si": "Sinhala",
    "my": "Burmese", "km": "Khmer", "lo": "Lao", "gu": "Gujarati",
    "pa": "Punjabi", "ta": "Tamil", "te": "Telugu", "kn": "Kannada",
    "ml": "Malayalam", "bn": "Bengali", "as": "Assamese", "or": "Odia",
    "mr": "Marathi",
}


def language_code_to_name(code: str) -> str:
    """Full language name for a code, or the code itself when unknown."""
    return LANGUAGE_NAMES.get((code or "").lower(), code)


# ============================================================
# Prompts
# ============================================================

def build_translation_prompt(text: str, target_language: str, context: Optional[str] = None) -> str:
    name = language_code_to_name(target_language)
    header = (
        "You are a professional translator.\n\n"
        f"CRITICAL: You must translate the text to {name} ONLY. Do not translate to any other language.\n"
        f"The target language is: {name} (language code: {target_language})\n\n"
        f'Return ONLY the translation in JSON format as {{"text":"your {name} translation here"}}.\n'
        "Do not include any explanations, alternatives, or text in other languages.\n\n"
    )
    if len(text) < SHORT_TEXT_CHARS:
        return header + f'Text to translate: "{text}"\n'

    prompt = header + f"[Text to translate]\n{text}\n\n"
    if context and context.strip():
        prompt += (
            "[Context for reference - DO NOT translate this part]\n"
            f"{context}\n\n"
            f"Remember: Only translate the text in the [Text to translate] section above to {name}.\n"
        )
    return prompt


def build_evaluation_prompt(
    original: str,
    translation: str,
    context: str,
    target_language: str,
    source_language: str,
) -> str:
    target = language_code_to_name(target_language)
    source = language_code_to_name(source_language)
    return (
        "You are a professional translation quality evaluator.\n\n"
        f"Evaluate the translation quality from {source} to {target} ({target_language}).\n\n"
        "IMPORTANT CRITERIA:\n"
        f"1. The translation must be in {target} language ONLY\n"
        "2. The translation must accurately convey the meaning of the source text\n"
        f"3. The translation must be grammatically correct in {target}\n"
        f"4. The translation must be natural and fluent in {target}\n\n"
        "Evaluate translation quality in one of the following levels:\n"
        "- [PERFECT]: The translation is perfect, in correct language, and no further improvement is needed.\n"
        "- [GOOD]: The translation is good and in correct language, but some minor improvements are needed.\n"
        "- [BAD]: The translation is bad, incorrect, or needs to be re-translated.\n"
        "- [INVALID]: The translation is in wrong language, invalid, or not related to the source.\n\n"
        'Please return the evaluation results in JSON format as {"evaluation":"evaluation result"}.\n\n'
        f"[Source ({source})]\n{original}\n\n"
        f"[Translation (should be in {target})]\n{translation}\n\n"
        f"[Context]\n{context}"
    )


# ============================================================
# Translator
# ============================================================

class OllamaTranslator:
    """Translate single texts and judge translations with an Ollama model.

    Args:
        client: OllamaClient used for every request
        config: Translation settings
        cache: Persistent translation cache, or None to keep results in memory only
        quiet: Suppress warnings
        verbose: Print debug output (raw responses)
    """

    def __init__(
        self,
        client: OllamaClient,
        config: TranslateConfig,
        *,
        cache: Optional[TranslationCache] = None,
        quiet: bool = False,
        verbose: bool = False,
    ):
        self.client = client
        self.config = config
        self.cache = cache
        self.quiet = quiet
        self.verbose = verbose
        self.memory: Dict[str, str] = {}

    @property
    def model(self) -> str:
        return self.config.model

    # --------------------------------------------------------
    # Model calls
    # --------------------------------------------------------

    def translate_text(self, text: str, target_language: str, context: Optional[str] = None) -> str:
        """Translate one text, optionally with reference context.

        Raises:
            TranslationError: On HTTP failure or an empty response
        """
        raw = self.client.generate(build_translation_prompt(text, target_language, context)).strip()
        debug(f"Raw translation response: {raw}", enabled=self.verbose)
        if not raw:
            raise TranslationError("Empty translation received")
        return parse_translation(raw)

    def evaluate_quality(
        self,
        original: str,
        translation: str,
        context: str,
        target_language: str,
        source_language: str = "en",
    ) -> TranslationQuality:
        """Ask the model to grade a translation.

        Raises:
            TranslationError: On HTTP failure
        """
        prompt = build_evaluation_prompt(original, translation, context, target_language, source_language)
        raw = self.client.generate(prompt)
        debug(f"Raw evaluation response: {raw}", enabled=self.verbose)
        return parse_evaluation(raw)

    # --------------------------------------------------------
    # Caching
    # --------------------------------------------------------

    def cache_key(self, text: str, target_language: str, context: str) -> str:
        return text_key(text, target_language, context, self.model)

    def cached(self, key: str) -> Optional[str]:
        """Look up a translation: persistent cache first, then this run's memory."""
        if self.cache is not None:
            hit = self.cache.load(key)
            if hit is not None:
                self.memory[key] = hit
                return hit
        return self.memory.get(key)

    def remember(
        self,
        key: str,
        text: str,
        target_language: str,
        context: str,
        translation: str,
        quality: TranslationQuality,
    ) -> None:
        """Store an accepted translation in memory and, when configured, on disk."""
        self.memory[key] = translation
        if self.cache is None:
            return
        entry = TranslationCacheEntry(
            source_text=text,
            target_language=target_language,
            context=context,
            translation=translation,
            quality=quality.value,
            model=self.model,
        )
        try:
            self.cache.save(key, entry)
        except (OSError, CacheError) as e:
            warn(f"Failed to save translation to cache: {e}", quiet=self.quiet)
