"""Local SubTrans - Local video transcription and translation.

This package transcribes audio/video with faster-whisper (tuning playback
tempo for the cleanest transcript), translates subtitles through a local
Ollama model with quality checks, and burns the result into the video
with ffmpeg.
"""
from .cli import main
from .models import TOOL_VERSION

__version__ = TOOL_VERSION
__all__ = ["main", "__version__"]
