#!/usr/bin/env python3
"""End-to-end processing pipeline for Local SubTrans.

Workflow wires the cache, the Whisper transcriber, the quality assessor,
the tempo tuner, the Ollama translator and ffmpeg together. Each public
method is one CLI subcommand's worth of work.
"""
from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple

from . import media
from .batch import expand_inputs, outputs_for
from .cache import CacheStore
from .errors import CacheError, SubtransError, TranslationError
from .logging_utils import log, warn
from .models import AppConfig, Transcript, TuneResult
from .ollama_client import OllamaClient
from .output_writers import read_srt, write_srt, write_transcript_json
from .quality import QualityAssessor
from .translation import TranslationStrategy, create_strategy
from .translator import OllamaTranslator
from .tuner import TranscriptionTuner
from .whisper_wrapper import WhisperTranscriber


# Per-file failures that batch processing reports and skips
FILE_ERRORS = (SubtransError, subprocess.CalledProcessError, OSError, ValueError)


class Workflow:
    """Full video-to-subtitles pipeline.

    Args:
        config: Resolved application configuration
        quiet: Suppress log output
        verbose: Print debug output
        show_progress: Show the transcription progress line
        transcriber: Optional speech-to-text collaborator (defaults to WhisperTranscriber)
        client: Optional Ollama client (defaults to one built from the config)
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        quiet: bool = False,
        verbose: bool = False,
        show_progress: bool = True,
        transcriber=None,
        client: Optional[OllamaClient] = None,
    ):
        self.config = config
        self.quiet = quiet
        self.verbose = verbose
        self.ffmpeg_bin = config.media.ffmpeg_binary

        self.cache = CacheStore(Path(config.cache.root), quiet=quiet)
        self.transcriber = transcriber or WhisperTranscriber(
            config.transcriber, quiet=quiet, show_progress=show_progress
        )
        self.assessor = QualityAssessor(config.quality)
        self.tuner = TranscriptionTuner(
            self.transcriber, self.assessor, self.cache, config.transcriber,
            ffmpeg_bin=self.ffmpeg_bin, quiet=quiet,
        )
        self.client = client or OllamaClient(
            config.translate.endpoint, config.translate.model, timeout=config.translate.timeout
        )
        self.translator = OllamaTranslator(
            self.client, config.translate,
            cache=self.cache.translations, quiet=quiet, verbose=verbose,
        )

    # --------------------------------------------------------
    # Building blocks
    # --------------------------------------------------------

    def strategy(self, mode: Optional[str] = None) -> TranslationStrategy:
        return create_strategy(
            mode or self.config.translate.mode, self.translator, self.config.translate,
            quiet=self.quiet, verbose=self.verbose,
        )

    def check_ollama(self) -> None:
        """Raise TranslationError unless the translation model is being served."""
        if not self.client.is_available():
            raise TranslationError(
                f"Ollama model '{self.config.translate.model}' is not available at "
                f"{self.config.translate.endpoint}"
            )

    def extract_audio(self, video: Path, wav_out: Optional[Path] = None) -> Path:
        """Return 16kHz mono audio for video, reusing the audio cache.

        Args:
            video: Source video
            wav_out: Optional destination; by default the cached WAV is returned

        Returns:
            Path to the WAV file

        Raises:
            subprocess.CalledProcessError: If ffmpeg fails
        """
        audio_cache = self.cache.audio
        key = audio_cache.key_for(video)
        cached = audio_cache.lookup(key)
        if cached is not None:
            log(f"   Using cached audio: {cached}", quiet=self.quiet)
            if wav_out is None:
                return cached
            shutil.copyfile(cached, wav_out)
            return wav_out

        if wav_out is None:
            audio_cache.ensure_dir()
            media.extract_audio(video, audio_cache.audio_path_for(key), ffmpeg_bin=self.ffmpeg_bin)
            return audio_cache.register(key, video)

        media.extract_audio(video, wav_out, ffmpeg_bin=self.ffmpeg_bin)
        try:
            audio_cache.store_file(key, wav_out, video)
        except (OSError, CacheError) as e:
            warn(f"Failed to cache extracted audio: {e}", quiet=self.quiet)
        return wav_out

    def transcribe(self, audio: Path, language: Optional[str] = None) -> TuneResult:
        return self.tuner.tune(audio, language)

    def translate_transcript(self, transcript: Transcript, lang: str, mode: Optional[str] = None) -> Transcript:
        """Translate a copy of transcript; the original is left untouched."""
        out = transcript.copy()
        self.strategy(mode).translate(out, lang)
        return out

    # --------------------------------------------------------
    # Subcommands
    # --------------------------------------------------------

    def transcribe_audio(
        self,
        audio: Path,
        out_srt: Path,
        language: Optional[str] = None,
        *,
        json_out: Optional[Path] = None,
    ) -> Transcript:
        """Transcribe an audio (or video) file to SRT."""
        result = self.transcribe(audio, language)
        write_srt(result.best_transcript, out_srt)
        log(f"   Wrote {out_srt}", quiet=self.quiet)
        if json_out is not None:
            write_transcript_json(
                json_out, result.best_transcript, input_file=str(audio),
                extra={"tuning": {k: v for k, v in result.to_dict().items() if k != "best_transcript"}},
            )
        return result.best_transcript

    def translate_subtitles(
        self,
        srt: Path,
        out_srt: Path,
        lang: str,
        *,
        mode: Optional[str] = None,
        source_language: str = "",
    ) -> Transcript:
        """Translate an existing SRT file into another SRT file."""
        self.check_ollama()
        translated = self.translate_transcript(read_srt(srt, language=source_language), lang, mode)
        write_srt(translated, out_srt)
        log(f"   Wrote {out_srt}", quiet=self.quiet)
        return translated

    def embed_subtitles(self, video: Path, srt: Path, out: Path) -> None:
        media.embed_subtitles(
            video, srt, out,
            extra_options=self.config.media.subtitle_options, ffmpeg_bin=self.ffmpeg_bin,
        )
        log(f"   Wrote {out}", quiet=self.quiet)

    def process_file(
        self,
        video: Path,
        langs: List[str],
        output_dir: Optional[Path] = None,
        *,
        language: Optional[str] = None,
        mode: Optional[str] = None,
    ) -> List[Tuple[Path, Path]]:
        """Extract, transcribe, translate and embed one video.

        Args:
            video: Source video
            langs: Target language codes
            output_dir: Output directory (defaults to the video's directory)
            language: Optional source language hint
            mode: Translation mode override

        Returns:
            (srt, video) output pairs, one per language

        Raises:
            ValueError: If no target language is given
            TranslationError: If Ollama is unavailable
            TranscriptionError: If the final transcription fails
            subprocess.CalledProcessError: If ffmpeg fails
        """
        if not langs:
            raise ValueError("At least one target language is required.")
        video = Path(video)
        log(f"Processing {video}", quiet=self.quiet)

        log("1/4 Extracting audio...", quiet=self.quiet)
        audio = self.extract_audio(video)

        log("2/4 Transcribing...", quiet=self.quiet)
        transcript = self.transcribe(audio, language).best_transcript

        outputs: List[Tuple[Path, Path]] = []
        for lang in langs:
            log(f"3/4 Translating to {lang}...", quiet=self.quiet)
            self.check_ollama()
            translated = self.translate_transcript(transcript, lang, mode)
            srt_path, video_out = outputs_for(video, output_dir, lang)
            write_srt(translated, srt_path)
            log(f"   Wrote {srt_path}", quiet=self.quiet)

            log(f"4/4 Embedding {lang} subtitles...", quiet=self.quiet)
            self.embed_subtitles(video, srt_path, video_out)
            outputs.append((srt_path, video_out))
        return outputs

    def process_many(
        self,
        videos: List[Path],
        langs: List[str],
        output_dir: Optional[Path] = None,
        *,
        language: Optional[str] = None,
        mode: Optional[str] = None,
    ) -> List[Tuple[Path, str]]:
        """Process videos one by one, continuing past failures.

        Returns:
            (video, error message) for every video that failed
        """
        failures: List[Tuple[Path, str]] = []
        for i, video in enumerate(videos, start=1):
            log(f"[{i}/{len(videos)}] {video}", quiet=self.quiet)
            try:
                self.process_file(video, langs, output_dir, language=language, mode=mode)
            except FILE_ERRORS as e:
                warn(f"Failed to process {video}: {e}", quiet=self.quiet)
                failures.append((video, str(e)))
        return failures

    def process_directory(
        self,
        directory: Path,
        langs: List[str],
        output_dir: Optional[Path] = None,
        *,
        language: Optional[str] = None,
        mode: Optional[str] = None,
    ) -> List[Tuple[Path, str]]:
        """Process every video found (recursively) under directory."""
        videos = expand_inputs([str(directory)])
        log(f"Found {len(videos)} video(s) in {directory}", quiet=self.quiet)
        return self.process_many(videos, langs, output_dir, language=language, mode=mode)
