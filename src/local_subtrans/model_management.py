#!/usr/bin/env python3
"""Model management and diagnostics for Local SubTrans.

This module provides functionality for:
- Listing Whisper models and their download state
- Downloading and deleting cached Whisper models
- System diagnostics (ffmpeg, faster-whisper, Ollama)
"""
from __future__ import annotations

import os
import platform
import shutil
import sys
from typing import List, Optional, Tuple

import faster_whisper
from faster_whisper import utils as fw_utils

from .logging_utils import die
from .models import TOOL_VERSION, AppConfig
from .ollama_client import OllamaClient
from .system import binary_version, which_or_none


# ============================================================
# System Diagnostics
# ============================================================

def diagnose(cfg: AppConfig, client: Optional[OllamaClient] = None) -> None:
    """Print system diagnostic information to stdout.

    Displays:
    - Tool, Python and platform versions
    - ffmpeg/ffprobe versions and paths
    - faster-whisper version
    - Whether the Ollama endpoint serves the configured translation model

    Args:
        cfg: Resolved configuration (ffmpeg binary, Ollama endpoint and model)
        client: Optional preconfigured Ollama client
    """
    ffmpeg_bin = cfg.media.ffmpeg_binary
    print(f"tool_version: {TOOL_VERSION}")
    print(f"python: {sys.version.split()[0]}")
    print(f"platform: {platform.platform()}")
    print(f"ffmpeg: {binary_version(ffmpeg_bin)}")
    print(f"ffprobe: {binary_version('ffprobe')}")
    print(f"faster_whisper: {getattr(faster_whisper, '__version__', 'unknown')}")
    print("PATH ffmpeg:", which_or_none(ffmpeg_bin))
    print("PATH ffprobe:", which_or_none("ffprobe"))

    client = client or OllamaClient(cfg.translate.endpoint, cfg.translate.model, timeout=10.0)
    state = "available" if client.is_available() else "unavailable"
    print(f"ollama: {cfg.translate.endpoint} model={cfg.translate.model} ({state})")


# ============================================================
# Model Listing
# ============================================================

def list_downloaded_models() -> List[Tuple[str, str]]:
    """Get a list of already-downloaded Whisper models.

    Returns:
        List of (model_name, path) tuples for downloaded models
    """
    downloaded: List[Tuple[str, str]] = []
    for name in fw_utils.available_models():
        try:
            path = fw_utils.download_model(name, local_files_only=True)
        except Exception:
            continue
        if path and os.path.exists(path):
            downloaded.append((name, path))
    return downloaded


def list_available_models() -> List[str]:
    """Get a list of all available Whisper model names."""
    return list(fw_utils.available_models())


def model_status_rows() -> List[Tuple[str, str]]:
    """Pair every known model name with "Downloaded" or "Missing"."""
    have = {name for name, _ in list_downloaded_models()}
    return [(name, "Downloaded" if name in have else "Missing") for name in list_available_models()]


# ============================================================
# Model Download/Delete
# ============================================================

def download_model_cli(model_name: str) -> int:
    """Download a Whisper model.

    Args:
        model_name: Name of the model to download (e.g., "small")

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    try:
        path = fw_utils.download_model(model_name, local_files_only=False)
    except Exception as e:
        return die(f"Failed to download model '{model_name}': {e}", 1)
    print(f"Downloaded {model_name} to {path}")
    return 0


def delete_model_cli(model_name: str) -> int:
    """Delete a cached Whisper model from disk.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    try:
        path = fw_utils.download_model(model_name, local_files_only=True)
    except Exception:
        return die(f"Model '{model_name}' is not downloaded.", 1)
    if not path or not os.path.exists(path):
        return die(f"Model '{model_name}' is not downloaded.", 1)
    try:
        shutil.rmtree(path)
    except OSError as e:
        return die(f"Failed to delete model '{model_name}': {e}", 1)
    print(f"Deleted cached model: {model_name}")
    return 0
