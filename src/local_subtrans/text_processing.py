#!/usr/bin/env python3
"""Text processing utilities for Local SubTrans.

This module provides whitespace normalization, line wrapping, sentence
splitting and the proportional timing and word distribution used when
segments are merged into sentences and split back again.
"""
from __future__ import annotations

import re
from typing import List, Tuple


SENTENCE_END = ".!?"

# Minimum lengths for a split to count as a sentence
MIN_SENTENCE_CHARS = 30
MIN_FINAL_SENTENCE_CHARS = 15

# split_by_length defaults
MAX_CHUNK_CHARS = 500
MIN_CHUNK_CHARS = 100

_STRONG_ENDING_RE = re.compile(r"[.!?] [A-Z]")
_COMMON_OPENERS = (". The ", ". I ", ". We ", ". This ", ". That ", ". So ")


# ============================================================
# Text Normalization
# ============================================================

def normalize_spaces(text: str) -> str:
    """Normalize whitespace in text by replacing non-breaking spaces and collapsing multiple spaces.

    Args:
        text: Input text

    Returns:
        Normalized text with single spaces
    """
    text = text.replace("\u00a0", " ")
    text = re.sub(r"\s+", " ", text).strip()
    return text


# ============================================================
# Text Wrapping
# ============================================================

def wrap_text_lines(text: str, max_chars_per_line: int) -> List[str]:
    """Wrap text into lines that fit within a maximum character width.

    Words longer than the width are kept whole on their own line.

    Args:
        text: Input text to wrap
        max_chars_per_line: Maximum characters per line

    Returns:
        List of wrapped text lines
    """
    text = normalize_spaces(text)
    if not text:
        return []
    lines: List[str] = []
    cur: List[str] = []
    cur_len = 0
    for w in text.split(" "):
        if cur and cur_len + 1 + len(w) > max_chars_per_line:
            lines.append(" ".join(cur))
            cur, cur_len = [], 0
        cur_len += len(w) + (1 if cur else 0)
        cur.append(w)
    if cur:
        lines.append(" ".join(cur))
    return lines


# ============================================================
# Sentence Splitting
# ============================================================

def has_strong_sentence_ending(text: str) -> bool:
    """True when text contains a sentence end followed by a capitalized word.

    Args:
        text: Accumulated sentence text

    Returns:
        True for ``.!?`` + space + ASCII capital, or a period before a common
        sentence opener ("The", "I", "We", "This", "That", "So")
    """
    if _STRONG_ENDING_RE.search(text):
        return True
    return any(opener in text for opener in _COMMON_OPENERS)


def split_by_length(text: str, max_length: int = MAX_CHUNK_CHARS, min_length: int = MIN_CHUNK_CHARS) -> List[str]:
    """Split unpunctuated text into word-aligned chunks.

    A chunk is closed before it would exceed max_length, but only once it
    is longer than min_length.

    Args:
        text: Text to split
        max_length: Target maximum chunk length
        min_length: Chunks are never closed below this length

    Returns:
        List of chunks
    """
    chunks: List[str] = []
    cur = ""
    for word in text.split():
        if len(cur) + len(word) + 1 > max_length and len(cur) > min_length:
            chunks.append(cur)
            cur = ""
        cur = f"{cur} {word}" if cur else word
    if cur:
        chunks.append(cur)
    return chunks


def split_by_sentences(text: str) -> List[str]:
    """Split text into sentences, keeping the terminal punctuation.

    A ``.``, ``!`` or ``?`` followed by whitespace ends a sentence when the
    sentence is longer than 30 characters and the next word is capitalized
    (or nothing follows). At the very end of the text the minimum is 15
    characters. Text longer than 500 characters that cannot be split this
    way is chunked by length instead.

    Args:
        text: Text to split

    Returns:
        List of sentences (empty for blank text)
    """
    sentences: List[str] = []
    start = 0
    n = len(text)
    for i, ch in enumerate(text):
        if ch not in SENTENCE_END:
            continue
        sentence = text[start:i + 1].strip()
        if i + 1 == n:
            if len(sentence) > MIN_FINAL_SENTENCE_CHARS:
                sentences.append(sentence)
                start = n
            continue
        if not text[i + 1].isspace() or len(sentence) <= MIN_SENTENCE_CHARS:
            continue
        rest = text[i + 1:].lstrip()
        if not rest or rest[0].isupper():
            sentences.append(sentence)
            start = i + 1

    tail = text[start:].strip()
    if tail:
        sentences.append(tail)

    if len(sentences) <= 1 and len(text.strip()) > MAX_CHUNK_CHARS:
        return split_by_length(text)
    return sentences


# ============================================================
# Timing and Word Distribution
# ============================================================

def distribute_time(start: float, end: float, parts: List[str]) -> List[Tuple[float, float, str]]:
    """Distribute time across text parts proportionally to their length.

    The last part always ends exactly at ``end``.

    Args:
        start: Start time in seconds
        end: End time in seconds
        parts: List of text parts to distribute time across

    Returns:
        List of (start, end, text) tuples with distributed timing
    """
    total = max(1, sum(len(p) for p in parts))
    dur = max(0.0, end - start)
    out: List[Tuple[float, float, str]] = []
    t = start
    for i, p in enumerate(parts):
        seg_end = t + dur * len(p) / total if i < len(parts) - 1 else end
        out.append((t, seg_end, p))
        t = seg_end
    return out


def split_words_evenly(text: str, slots: int) -> List[str]:
    """Spread the words of text over a number of slots.

    Each slot receives ``n // slots`` words and the first ``n % slots``
    slots receive one more. Slots past the last word are empty strings.

    Args:
        text: Text to distribute
        slots: Number of slots

    Returns:
        List of exactly ``slots`` strings
    """
    if slots <= 0:
        return []
    words = text.split()
    per_slot, extra = divmod(len(words), slots)
    out: List[str] = []
    pos = 0
    for i in range(slots):
        take = per_slot + (1 if i < extra else 0)
        out.append(" ".join(words[pos:pos + take]))
        pos += take
    return out
