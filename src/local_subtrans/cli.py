#!/usr/bin/env python3
"""Command-line interface for Local SubTrans.

This is the main entry point for the subtrans command-line tool.
"""
from __future__ import annotations

import argparse
import subprocess
import time
import traceback
from pathlib import Path
from typing import Any, Dict, List, Optional

from .batch import VIDEO_EXTS, expand_inputs, outputs_for, parse_langs, preflight_one
from .cache import CACHE_KINDS, CacheStore
from .config import apply_overrides, default_config_path, load_config_file, normalize_translation_mode, resolve_config
from .errors import SubtransError
from .logging_utils import die, format_age, format_duration, log
from .media import ffmpeg_ok
from .model_management import delete_model_cli, diagnose, download_model_cli, model_status_rows
from .models import TOOL_VERSION, AppConfig, TranscriberMode
from .workflow import Workflow


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

MB = 1024 * 1024


# ============================================================
# Configuration
# ============================================================

def _pick(args: argparse.Namespace, mapping: Dict[str, str]) -> Dict[str, Any]:
    """Collect CLI values that were given, keyed by config field name."""
    out: Dict[str, Any] = {}
    for attr, field_name in mapping.items():
        value = getattr(args, attr, None)
        if value is not None:
            out[field_name] = value
    return out


def build_config(args: argparse.Namespace) -> AppConfig:
    """Resolve defaults, then the config file, then CLI flags.

    Raises:
        FileNotFoundError: If an explicit config file is missing
        ValueError: On invalid config content or option values
    """
    cfg = resolve_config(load_config_file(args.config or default_config_path()))

    cfg.transcriber = apply_overrides(cfg.transcriber, _pick(args, {
        "model": "transcribe_model",
        "explore_model": "explore_model",
        "device": "device",
    }))
    if getattr(args, "no_tune", False):
        cfg.transcriber.mode = TranscriberMode.SIMPLE

    cfg.translate = apply_overrides(cfg.translate, _pick(args, {
        "translation_mode": "mode",
        "ollama_model": "model",
        "ollama_endpoint": "endpoint",
        "max_retries": "max_retries",
    }))
    cfg.translate.mode = normalize_translation_mode(cfg.translate.mode)

    cfg.media = apply_overrides(cfg.media, _pick(args, {"ffmpeg": "ffmpeg_binary"}))
    cfg.cache = apply_overrides(cfg.cache, _pick(args, {"cache_dir": "root"}))
    return cfg


def make_workflow(args: argparse.Namespace, cfg: AppConfig) -> Workflow:
    return Workflow(cfg, quiet=args.quiet, verbose=args.verbose, show_progress=not args.no_progress)


# ============================================================
# Subcommands
# ============================================================

def cmd_process(args: argparse.Namespace, cfg: AppConfig) -> int:
    langs = parse_langs(args.target_langs)
    if not langs:
        return die("--target-langs must name at least one language.", EXIT_USAGE)
    if not ffmpeg_ok(cfg.media.ffmpeg_binary):
        return die("ffmpeg not found on PATH. Install it or add it to PATH.", EXIT_USAGE)

    src = Path(args.input)
    outdir = Path(args.output_dir) if args.output_dir else None
    wf = make_workflow(args, cfg)

    if src.is_dir():
        failures = wf.process_directory(src, langs, outdir, language=args.language)
        return report_failures(failures, args.quiet)

    for lang in langs:
        _, video_out = outputs_for(src, outdir, lang)
        ok, reason = preflight_one(src, video_out, args.overwrite)
        if not ok:
            return die(reason, EXIT_USAGE)

    started = time.time()
    outputs = wf.process_file(src, langs, outdir, language=args.language)
    for srt_path, video_out in outputs:
        log(f"Done: {srt_path}, {video_out}", quiet=args.quiet)
    log(f"Total time {format_duration(time.time() - started)}", quiet=args.quiet)
    return EXIT_OK


def cmd_batch(args: argparse.Namespace, cfg: AppConfig) -> int:
    langs = parse_langs(args.target_langs)
    if not langs:
        return die("--target-langs must name at least one language.", EXIT_USAGE)
    if not ffmpeg_ok(cfg.media.ffmpeg_binary):
        return die("ffmpeg not found on PATH. Install it or add it to PATH.", EXIT_USAGE)

    files = [p for p in expand_inputs(args.inputs, args.glob) if p.is_file() and p.suffix.lower() in VIDEO_EXTS]
    if not files:
        return die("No video files found after expansion.", EXIT_USAGE)

    outdir = Path(args.output_dir) if args.output_dir else None
    failures = make_workflow(args, cfg).process_many(files, langs, outdir, language=args.language)
    return report_failures(failures, args.quiet)


def cmd_extract(args: argparse.Namespace, cfg: AppConfig) -> int:
    src = Path(args.input)
    out = Path(args.output) if args.output else src.with_suffix(".wav")
    ok, reason = preflight_one(src, out, args.overwrite)
    if not ok:
        return die(reason, EXIT_USAGE)
    if not ffmpeg_ok(cfg.media.ffmpeg_binary):
        return die("ffmpeg not found on PATH. Install it or add it to PATH.", EXIT_USAGE)
    make_workflow(args, cfg).extract_audio(src, out)
    log(f"Done: {out}", quiet=args.quiet)
    return EXIT_OK


def cmd_transcribe(args: argparse.Namespace, cfg: AppConfig) -> int:
    src = Path(args.input)
    out = Path(args.output) if args.output else src.with_suffix(".srt")
    ok, reason = preflight_one(src, out, args.overwrite)
    if not ok:
        return die(reason, EXIT_USAGE)
    if not ffmpeg_ok(cfg.media.ffmpeg_binary):
        return die("ffmpeg not found on PATH. Install it or add it to PATH.", EXIT_USAGE)

    wf = make_workflow(args, cfg)
    audio = wf.extract_audio(src) if src.suffix.lower() in VIDEO_EXTS else src
    wf.transcribe_audio(audio, out, args.language, json_out=Path(args.json) if args.json else None)
    log(f"Done: {out}", quiet=args.quiet)
    return EXIT_OK


def cmd_translate(args: argparse.Namespace, cfg: AppConfig) -> int:
    langs = parse_langs(args.target_langs)
    if not langs:
        return die("--target-langs must name at least one language.", EXIT_USAGE)
    src = Path(args.input)
    if not src.is_file():
        return die(f"Input file not found: {src}", EXIT_USAGE)

    outdir = Path(args.output_dir) if args.output_dir else None
    wf = make_workflow(args, cfg)
    for lang in langs:
        out, _ = outputs_for(src, outdir, lang)
        ok, reason = preflight_one(src, out, args.overwrite)
        if not ok:
            return die(reason, EXIT_USAGE)
        log(f"Translating {src} to {lang}...", quiet=args.quiet)
        wf.translate_subtitles(src, out, lang, source_language=args.source_language or "")
    return EXIT_OK


def cmd_embed(args: argparse.Namespace, cfg: AppConfig) -> int:
    video = Path(args.video)
    srt = Path(args.srt)
    out = Path(args.output) if args.output else video.with_name(f"{video.stem}_subtitled.mp4")
    ok, reason = preflight_one(video, out, args.overwrite)
    if not ok:
        return die(reason, EXIT_USAGE)
    if not srt.is_file():
        return die(f"Subtitle file not found: {srt}", EXIT_USAGE)
    if not ffmpeg_ok(cfg.media.ffmpeg_binary):
        return die("ffmpeg not found on PATH. Install it or add it to PATH.", EXIT_USAGE)
    make_workflow(args, cfg).embed_subtitles(video, srt, out)
    return EXIT_OK


def cmd_models(args: argparse.Namespace, cfg: AppConfig) -> int:
    if args.download:
        return download_model_cli(args.download)
    if args.delete:
        return delete_model_cli(args.delete)
    print("Whisper models:")
    for name, state in model_status_rows():
        print(f"  {name:<20} {state}")
    print(f"Configured: explore={cfg.transcriber.explore_model} transcribe={cfg.transcriber.transcribe_model}")
    return EXIT_OK


def cmd_cache(args: argparse.Namespace, cfg: AppConfig) -> int:
    store = CacheStore(Path(cfg.cache.root), quiet=args.quiet)
    if args.action == "clear":
        store.clear(args.kind)
        return EXIT_OK
    if args.action == "clean":
        store.clean(args.days, args.kind)
        return EXIT_OK
    if args.action == "info":
        print_cache_info(store)
        return EXIT_OK
    print_cache_list(store, args.kind)
    return EXIT_OK


# ============================================================
# Cache Reporting
# ============================================================

def _age(ts: Optional[int], now: int) -> str:
    return format_age(now - ts) if ts else "-"


def print_cache_info(store: CacheStore) -> None:
    info = store.info()
    now = int(time.time())
    print(f"Cache root: {store.root}")
    print(f"  Transcriptions: {info.transcription_files} files, {info.transcription_size / MB:.2f} MB")
    print(f"  Audio:          {info.audio_files} files, {info.audio_size / MB:.2f} MB")
    print(f"  Translations:   {info.translation_files} files, {info.translation_size / MB:.2f} MB")
    print(f"  Tuning:         {info.tuning_files} files, {info.tuning_size / MB:.2f} MB")
    print(f"  Total:          {info.total_size() / MB:.2f} MB")
    print(f"  Oldest entry:   {_age(info.oldest_entry, now)}")
    print(f"  Newest entry:   {_age(info.newest_entry, now)}")
    print(f"  Models used:    {', '.join(info.models_used) if info.models_used else '-'}")


def print_cache_list(store: CacheStore, kind: str) -> None:
    now = int(time.time())
    kinds = list(store.stores(kind))
    if "transcriptions" in kinds:
        entries = store.transcriptions.list_entries()
        print(f"Transcriptions ({len(entries)}):")
        for e in entries:
            print(f"  {_age(e.cached_at, now):>8}  {e.model:<10} {e.language or 'auto':<5} {e.audio_path}")
    if "audio" in kinds:
        audio = store.audio.list_entries()
        print(f"Audio ({len(audio)}):")
        for a in audio:
            print(f"  {_age(a.cached_at, now):>8}  {a.video_path}")
    if "translations" in kinds:
        translations = store.translations.list_entries()
        print(f"Translations ({len(translations)}):")
        for t in translations:
            source = t.source_text if len(t.source_text) <= 50 else t.source_text[:47] + "..."
            print(f"  {_age(t.cached_at, now):>8}  {t.target_language:<5} {t.quality:<8} {source}")
    if "tuning" in kinds:
        tuning = store.tuning.list()
        print(f"Tuning ({len(tuning)}):")
        for d in tuning:
            result = d.get("result") or {}
            print(f"  {_age(d.get('cached_at'), now):>8}  tempo={result.get('best_parameter', '?')}% "
                  f"{d.get('audio_path', '')}")


def report_failures(failures: List[Any], quiet: bool) -> int:
    if not failures:
        return EXIT_OK
    log("\nSummary: failures:", quiet=quiet)
    for f, msg in failures:
        log(f"  - {f}: {msg}", quiet=quiet)
    return EXIT_FAILURE


# ============================================================
# Argument Parsing
# ============================================================

def _add_translation_args(p: argparse.ArgumentParser, *, langs_required: bool = True) -> None:
    p.add_argument("--target-langs", required=langs_required, help="Comma separated target language codes (e.g. ja,fr)")
    p.add_argument("--translation-mode", default=None, help="simple | context | nlp | llm (aliases: ctx, sentence, window)")
    p.add_argument("--output-dir", default=None, help="Output directory (defaults to next to the input)")
    p.add_argument("--ollama-model", default=None, help="Ollama model used for translation")
    p.add_argument("--ollama-endpoint", default=None, help="Ollama base URL")
    p.add_argument("--max-retries", type=int, default=None, help="Translation attempts per segment (context mode)")


def _add_transcribe_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--language", default=None, help="Source language code. If omitted, auto-detect.")
    p.add_argument("--model", default=None, help="Whisper model for the final transcription")
    p.add_argument("--explore-model", default=None, help="Whisper model used while exploring tempos")
    p.add_argument("--device", choices=["auto", "cpu", "cuda"], default=None)
    p.add_argument("--no-tune", action="store_true", help="Transcribe once at normal speed")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="subtrans",
        description="Local video transcription + translation (faster-whisper + Ollama + ffmpeg)",
    )
    ap.add_argument("--config", default=None, help="JSON config file (default: ./subtrans.json if present)")
    ap.add_argument("--cache-dir", default=None, help="Cache root directory")
    ap.add_argument("--ffmpeg", default=None, help="ffmpeg executable")
    ap.add_argument("--quiet", action="store_true")
    ap.add_argument("--verbose", action="store_true", help="Print raw model responses")
    ap.add_argument("--no-progress", action="store_true")
    ap.add_argument("--debug", action="store_true", help="Print tracebacks on failure")
    ap.add_argument("--version", action="store_true")
    ap.add_argument("--diagnose", action="store_true")

    sub = ap.add_subparsers(dest="command")

    p = sub.add_parser("process", help="Transcribe, translate and embed subtitles for a video or directory")
    p.add_argument("input", help="Video file or directory")
    _add_translation_args(p)
    _add_transcribe_args(p)
    p.add_argument("--overwrite", action="store_true", help="Overwrite outputs if they exist")
    p.set_defaults(func=cmd_process)

    p = sub.add_parser("batch", help="Process several videos, continuing past failures")
    p.add_argument("inputs", nargs="+", help="Video file(s), directory, or glob pattern(s)")
    p.add_argument("--glob", default=None, help="Additional glob pattern to include")
    _add_translation_args(p)
    _add_transcribe_args(p)
    p.set_defaults(func=cmd_batch)

    p = sub.add_parser("extract", help="Extract 16kHz mono audio from a video")
    p.add_argument("input")
    p.add_argument("-o", "--output", default=None, help="Output WAV path")
    p.add_argument("--overwrite", action="store_true")
    p.set_defaults(func=cmd_extract)

    p = sub.add_parser("transcribe", help="Transcribe audio or video to SRT")
    p.add_argument("input")
    p.add_argument("-o", "--output", default=None, help="Output SRT path")
    p.add_argument("--json", default=None, help="Also write a JSON bundle to this path")
    p.add_argument("--overwrite", action="store_true")
    _add_transcribe_args(p)
    p.set_defaults(func=cmd_transcribe)

    p = sub.add_parser("translate", help="Translate an SRT file")
    p.add_argument("input", help="SRT file")
    p.add_argument("--source-language", default=None, help="Language of the SRT file (for the judge prompt)")
    p.add_argument("--overwrite", action="store_true")
    _add_translation_args(p)
    p.set_defaults(func=cmd_translate)

    p = sub.add_parser("embed", help="Burn an SRT file into a video")
    p.add_argument("video")
    p.add_argument("srt")
    p.add_argument("-o", "--output", default=None, help="Output video path")
    p.add_argument("--overwrite", action="store_true")
    p.set_defaults(func=cmd_embed)

    p = sub.add_parser("models", help="List, download or delete Whisper models")
    p.add_argument("--download", default=None, metavar="NAME")
    p.add_argument("--delete", default=None, metavar="NAME")
    p.set_defaults(func=cmd_models)

    p = sub.add_parser("cache", help="Inspect or prune the cache")
    p.add_argument("action", choices=["list", "clear", "info", "clean"])
    p.add_argument("--kind", choices=["all", *CACHE_KINDS], default="all")
    p.add_argument("--days", type=int, default=30, help="clean: remove entries older than this many days")
    p.set_defaults(func=cmd_cache)

    return ap


# ============================================================
# CLI
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the subtrans command-line tool.

    Returns:
        Exit code (0 for success, 1 for processing failures, 2 for usage errors)
    """
    ap = build_parser()
    args = ap.parse_args(argv)

    if args.version:
        print(TOOL_VERSION)
        return EXIT_OK

    try:
        cfg = build_config(args)
    except (FileNotFoundError, ValueError) as e:
        return die(str(e), EXIT_USAGE)

    if args.diagnose:
        diagnose(cfg)
        return EXIT_OK

    if not getattr(args, "func", None):
        ap.print_help()
        return EXIT_USAGE

    try:
        return args.func(args, cfg)
    except KeyboardInterrupt:
        return die("Interrupted by user.", 130)
    except subprocess.CalledProcessError as e:
        if args.debug:
            traceback.print_exc()
        detail = f"\n{e.stderr}" if e.stderr else ""
        return die(f"ffmpeg failed (exit {e.returncode}){detail}", EXIT_FAILURE)
    except (SubtransError, OSError) as e:
        if args.debug:
            traceback.print_exc()
        return die(str(e), EXIT_FAILURE)
    except ValueError as e:
        if args.debug:
            traceback.print_exc()
        return die(str(e), EXIT_USAGE)


if __name__ == "__main__":
    raise SystemExit(main())
