#!/usr/bin/env python3
"""Parsing of language-model responses for Local SubTrans.

Model output is only loosely structured: JSON may arrive wrapped in code
fences, surrounded by prose, or nested inside Ollama's ``{"response": ...}``
envelope. Each parser here runs an ordered list of fallible attempts and
uses the first one that yields the expected shape.
"""
from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional

from .models import TranslationQuality


# ============================================================
# JSON Extraction
# ============================================================

# Longest prefix first so ```json is not mistaken for ```
_FENCES = (
    ("```json", "```"),
    ("```", "```"),
    ("`json", "`"),
    ("`", "`"),
)


def strip_code_fences(text: str) -> str:
    """Remove a single surrounding markdown code fence, if present."""
    text = text.strip()
    for opening, closing in _FENCES:
        if text.startswith(opening) and text.endswith(closing) and len(text) >= len(opening) + len(closing):
            return text[len(opening):len(text) - len(closing)].strip()
    return text


def extract_braced(text: str) -> Optional[str]:
    """Return the substring from the first ``{`` to the last ``}``, or None."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        return None
    return text[start:end + 1]


def _loads_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    if not text:
        return None
    try:
        data = json.loads(text)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def parse_json_object(text: str, accept: Callable[[Dict[str, Any]], bool] = lambda d: True) -> Optional[Dict[str, Any]]:
    """Find a JSON object in loosely formatted model output.

    Attempts, in order: the text as-is, the text without code fences, the
    braced slice of the raw text, the braced slice of the unfenced text.

    Args:
        text: Model output
        accept: Predicate the decoded object must satisfy

    Returns:
        The first decoded object accepted by the predicate, or None
    """
    text = text.strip()
    cleaned = strip_code_fences(text)
    attempts = (
        lambda: text,
        lambda: cleaned,
        lambda: extract_braced(text),
        lambda: extract_braced(cleaned),
    )
    for attempt in attempts:
        data = _loads_object(attempt())
        if data is not None and accept(data):
            return data
    return None


def unwrap_envelope(body: str) -> Optional[str]:
    """Return the ``response`` field of an Ollama generate body, or None."""
    data = _loads_object(body.strip())
    if data is None or not isinstance(data.get("response"), str):
        return None
    return data["response"].strip()


# ============================================================
# Sentence Analysis
# ============================================================

def _has_sentences(data: Dict[str, Any]) -> bool:
    return isinstance(data.get("sentences"), list)


def _sentences_from(text: str) -> Optional[List[str]]:
    data = parse_json_object(text, _has_sentences)
    if data is None:
        return None
    return [str(s) for s in data["sentences"] if isinstance(s, (str, int, float))]


def parse_sentences(body: str) -> List[str]:
    """Extract the ``sentences`` list from a window-analysis response.

    The Ollama envelope is unwrapped first; if that yields nothing usable the
    whole body is parsed instead, so bare responses from other servers work
    too.

    Args:
        body: Raw HTTP response body

    Returns:
        List of sentences, or an empty list when nothing parses
    """
    inner = unwrap_envelope(body)
    if inner is not None:
        sentences = _sentences_from(inner)
        if sentences is not None:
            return sentences
    sentences = _sentences_from(body)
    return sentences if sentences is not None else []


# ============================================================
# Translation / Evaluation
# ============================================================

_PREAMBLE_PREFIXES = ("Here are", "Option", "**Option", "Translation:", "- ", "* ")
_PREAMBLE_MARKERS = ("(Captures", "maintains")


def _has_text(data: Dict[str, Any]) -> bool:
    return isinstance(data.get("text"), str)


def _has_evaluation(data: Dict[str, Any]) -> bool:
    return isinstance(data.get("evaluation"), str)


def clean_translation_response(response: str) -> str:
    """Pick the translation out of a chatty free-text response.

    Lines that look like preamble, option lists or commentary are skipped
    and the first remaining line longer than three characters is returned.
    Failing that, the first non-empty line, then the response itself.
    """
    lines = response.splitlines()
    for line in lines:
        s = line.strip()
        if not s:
            continue
        if s.startswith(_PREAMBLE_PREFIXES) or any(m in s for m in _PREAMBLE_MARKERS):
            continue
        if s.startswith("**") and s.endswith("**"):
            continue
        if len(s) > 3:
            return s
    for line in lines:
        if line.strip():
            return line.strip()
    return response


def parse_translation(response: str) -> str:
    """Return the translation from a ``{"text": ...}`` response or cleaned free text."""
    response = response.strip()
    data = parse_json_object(response, _has_text)
    if data is not None:
        return data["text"].strip()
    return clean_translation_response(response)


def parse_evaluation(response: str) -> TranslationQuality:
    """Map a judge response to a TranslationQuality.

    A ``{"evaluation": label}`` object is preferred. Otherwise the first of
    PERFECT, GOOD, BAD found anywhere in the text wins, and INVALID when none
    is present.
    """
    response = response.strip()
    data = parse_json_object(response, _has_evaluation)
    if data is not None:
        return TranslationQuality.from_label(data["evaluation"])

    upper = response.upper()
    for quality in (TranslationQuality.PERFECT, TranslationQuality.GOOD, TranslationQuality.BAD):
        if quality.value in upper:
            return quality
    return TranslationQuality.INVALID
