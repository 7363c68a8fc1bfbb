#!/usr/bin/env python3
"""Configuration management for Local SubTrans.

This module loads the JSON config file, applies per-section overrides on
top of the dataclass defaults, and normalizes translation mode names.
"""
from __future__ import annotations

import dataclasses
import json
from pathlib import Path
from typing import Any, Dict, Optional, TypeVar

from .models import (
    AppConfig,
    CacheConfig,
    MediaConfig,
    QualityConfig,
    TranscriberConfig,
    TranscriberMode,
    TranslateConfig,
    TranslationMode,
)


T = TypeVar("T")

DEFAULT_CONFIG_NAME = "subtrans.json"


# ============================================================
# Mode Names
# ============================================================

MODE_ALIASES = {
    "simple": TranslationMode.SIMPLE,
    "context": TranslationMode.CONTEXT,
    "ctx": TranslationMode.CONTEXT,
    "nlp": TranslationMode.NLP,
    "sentence": TranslationMode.NLP,
    "llm": TranslationMode.LLM,
    "window": TranslationMode.LLM,
}


def normalize_translation_mode(name: str) -> str:
    """Resolve a translation mode name or alias.

    Args:
        name: Mode name as given by the user (case-insensitive)

    Returns:
        One of TranslationMode.ALL

    Raises:
        ValueError: If the name is not a known mode or alias
    """
    key = (name or "").strip().lower()
    if key not in MODE_ALIASES:
        raise ValueError(
            f"Invalid translation mode '{name}'. Valid modes: {', '.join(TranslationMode.ALL)}"
        )
    return MODE_ALIASES[key]


# ============================================================
# Configuration Loading
# ============================================================

SECTIONS: Dict[str, type] = {
    "transcriber": TranscriberConfig,
    "translate": TranslateConfig,
    "quality": QualityConfig,
    "media": MediaConfig,
    "cache": CacheConfig,
}


def load_config_file(path: Optional[str]) -> Dict[str, Any]:
    """Load configuration from a JSON file.

    Args:
        path: Path to JSON config file, or None to skip loading

    Returns:
        Dictionary of configuration sections, or empty dict if path is None

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config file isn't a valid JSON object
    """
    if not path:
        return {}
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config file not found: {p}")
    data = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Config must be a JSON object at top-level.")
    return data


def default_config_path(cwd: Optional[Path] = None) -> Optional[str]:
    """Return ``subtrans.json`` in the working directory when it exists."""
    p = (cwd or Path.cwd()) / DEFAULT_CONFIG_NAME
    return str(p) if p.is_file() else None


def apply_overrides(base: T, overrides: Dict[str, Any]) -> T:
    """Apply overrides to a config dataclass, ignoring unknown keys.

    Args:
        base: Config dataclass instance
        overrides: Dictionary of field values to override

    Returns:
        New instance of the same dataclass with overrides applied
    """
    names = {f.name for f in dataclasses.fields(base)}
    known = {k: v for k, v in overrides.items() if k in names}
    return dataclasses.replace(base, **known)


def resolve_config(data: Dict[str, Any]) -> AppConfig:
    """Build an AppConfig from loaded config-file data.

    Args:
        data: Mapping of section name to section overrides

    Returns:
        Resolved AppConfig

    Raises:
        ValueError: On unknown sections, non-object sections or invalid modes
    """
    cfg = AppConfig()
    for section, overrides in data.items():
        if section not in SECTIONS:
            raise ValueError(
                f"Unknown config section '{section}'. Valid sections: {', '.join(SECTIONS)}"
            )
        if not isinstance(overrides, dict):
            raise ValueError(f"Config section '{section}' must be a JSON object.")
        setattr(cfg, section, apply_overrides(getattr(cfg, section), overrides))

    cfg.translate.mode = normalize_translation_mode(cfg.translate.mode)
    if cfg.transcriber.mode not in TranscriberMode.ALL:
        raise ValueError(
            f"Invalid transcriber mode '{cfg.transcriber.mode}'. "
            f"Valid modes: {', '.join(TranscriberMode.ALL)}"
        )
    return cfg
