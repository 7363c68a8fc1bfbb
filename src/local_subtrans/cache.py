#!/usr/bin/env python3
"""Content-addressed on-disk cache for Local SubTrans.

Each cache kind lives in its own directory with one ``<hexkey>.json`` file
per entry (audio entries add a ``<hexkey>.wav`` payload next to the JSON
sidecar). Keys are 64-bit digests rendered as 16 hex characters. File
identities are hashed from path and modification time, never from content,
so touching a file invalidates its entries.

Writes go through a temporary file in the same directory followed by
``os.replace``; readers never observe a partially written entry. Corrupt
or unreadable entries are treated as cache misses.
"""
from __future__ import annotations

import hashlib
import json
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import CacheError
from .logging_utils import log
from .models import (
    AudioCacheEntry,
    CacheInfo,
    TranscriberConfig,
    Transcript,
    TranscriptionCacheEntry,
    TranslationCacheEntry,
    TuneResult,
)
from .system import file_mtime_seconds


SECONDS_PER_DAY = 24 * 60 * 60


# ============================================================
# Key Derivation
# ============================================================

def stable_digest(*parts: Any) -> str:
    """Hash parts into a 64-bit hex digest that is stable across runs.

    Args:
        *parts: Values to hash; each is converted with str()

    Returns:
        16 lowercase hex characters
    """
    h = hashlib.sha256()
    for part in parts:
        h.update(str(part).encode("utf-8"))
        h.update(b"\x1f")
    return h.hexdigest()[:16]


def file_identity_key(path: Path, *extra: Any) -> str:
    """Derive a cache key from a file's path, mtime and extra parameters.

    Args:
        path: Source file
        *extra: Generating parameters (model name, temperature, ...)

    Returns:
        Hex cache key

    Raises:
        CacheError: If the file's metadata cannot be read
    """
    mtime = file_mtime_seconds(Path(path))
    if mtime is None:
        raise CacheError(f"Failed to read file metadata: {path}")
    return stable_digest(str(path), mtime, *extra)


def text_key(*parts: Any) -> str:
    return stable_digest(*parts)


def now_ts() -> int:
    return int(time.time())


# ============================================================
# Generic Store
# ============================================================

class ContentCache:
    """One JSON file per key inside a single directory."""

    suffix = ".json"

    def __init__(self, directory: Path, *, quiet: bool = False):
        self.directory = Path(directory)
        self.quiet = quiet

    def ensure_dir(self) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"Failed to create cache directory {self.directory}: {e}") from e

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}{self.suffix}"

    # --------------------------------------------------------
    # Read / write
    # --------------------------------------------------------

    def _read(self, path: Path) -> Optional[Dict[str, Any]]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            return None
        return data if isinstance(data, dict) else None

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the payload stored under key, or None on miss or corruption."""
        path = self.path_for(key)
        if not path.exists():
            return None
        return self._read(path)

    def put(self, key: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Store a payload atomically, stamping ``cached_at`` when it is unset.

        Args:
            key: Cache key
            payload: JSON-serializable mapping

        Returns:
            The stored payload
        """
        self.ensure_dir()
        data = dict(payload)
        if not data.get("cached_at"):
            data["cached_at"] = now_ts()
        fd, tmp = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=self.directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path_for(key))
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise
        return data

    def delete(self, key: str) -> bool:
        try:
            self.path_for(key).unlink()
            return True
        except FileNotFoundError:
            return False

    # --------------------------------------------------------
    # Enumeration / maintenance
    # --------------------------------------------------------

    def iter_entries(self) -> Iterator[Tuple[Path, Optional[Dict[str, Any]]]]:
        """Yield (path, payload) for every entry file; payload is None when corrupt."""
        if not self.directory.is_dir():
            return
        for p in sorted(self.directory.glob(f"*{self.suffix}")):
            yield p, self._read(p)

    def list(self) -> List[Dict[str, Any]]:
        """Return every readable payload, newest ``cached_at`` first."""
        items = [data for _, data in self.iter_entries() if data is not None]
        items.sort(key=lambda d: d.get("cached_at", 0), reverse=True)
        return items

    def _remove_entry(self, path: Path) -> bool:
        try:
            path.unlink()
            return True
        except OSError:
            return False

    def clear(self) -> int:
        """Delete every entry.

        Returns:
            Number of entries removed
        """
        count = 0
        for path, _ in list(self.iter_entries()):
            if self._remove_entry(path):
                count += 1
        return count

    def clean(self, max_age_days: int, *, now: Optional[int] = None) -> int:
        """Delete entries cached more than max_age_days ago.

        The entry's ``cached_at`` is used when readable, otherwise the file's
        modification time.

        Returns:
            Number of entries removed
        """
        cutoff = (now if now is not None else now_ts()) - max_age_days * SECONDS_PER_DAY
        count = 0
        for path, data in list(self.iter_entries()):
            stamp = data.get("cached_at") if data else None
            if not isinstance(stamp, (int, float)):
                stamp = file_mtime_seconds(path) or 0
            if stamp < cutoff and self._remove_entry(path):
                count += 1
        return count

    def stats(self) -> Tuple[int, int, Optional[int], Optional[int]]:
        """Return (entry_count, total_bytes, oldest_cached_at, newest_cached_at)."""
        files = 0
        size = 0
        stamps: List[int] = []
        for path, data in self.iter_entries():
            files += 1
            size += self._entry_size(path)
            if data and isinstance(data.get("cached_at"), (int, float)):
                stamps.append(int(data["cached_at"]))
        return files, size, (min(stamps) if stamps else None), (max(stamps) if stamps else None)

    def _entry_size(self, path: Path) -> int:
        try:
            return path.stat().st_size
        except OSError:
            return 0


# ============================================================
# Typed Stores
# ============================================================

class TranscriptionCache(ContentCache):
    """Transcripts keyed by audio identity, model, temperature and language."""

    def key_for(self, audio_path: Path, model: str, temperature: float, language: Optional[str]) -> str:
        return file_identity_key(audio_path, model, repr(float(temperature)), language or "")

    def load(self, key: str) -> Optional[Transcript]:
        data = self.get(key)
        if data is None:
            return None
        try:
            return TranscriptionCacheEntry.from_dict(data).transcript
        except (KeyError, TypeError, ValueError):
            return None

    def save(
        self,
        key: str,
        transcript: Transcript,
        *,
        audio_path: Path,
        model: str,
        temperature: float,
        language: Optional[str],
    ) -> None:
        entry = TranscriptionCacheEntry(
            transcript=transcript,
            model=model,
            temperature=temperature,
            language=language,
            audio_path=str(audio_path),
            audio_modified=file_mtime_seconds(Path(audio_path)),
            cached_at=now_ts(),
        )
        self.put(key, entry.to_dict())

    def list_entries(self) -> List[TranscriptionCacheEntry]:
        out: List[TranscriptionCacheEntry] = []
        for data in self.list():
            try:
                out.append(TranscriptionCacheEntry.from_dict(data))
            except (KeyError, TypeError, ValueError):
                continue
        return out


class AudioCache(ContentCache):
    """Extracted WAV files with a JSON metadata sidecar per key."""

    audio_suffix = ".wav"

    def key_for(self, video_path: Path) -> str:
        return "audio_" + file_identity_key(video_path, "audio_extraction")

    def tempo_key_for(self, source_path: Path, tempo: int) -> str:
        return "tempo_" + file_identity_key(source_path, "tempo", int(tempo))

    def audio_path_for(self, key: str) -> Path:
        return self.directory / f"{key}{self.audio_suffix}"

    def lookup(self, key: str) -> Optional[Path]:
        """Return the cached WAV for key when both the WAV and a valid sidecar exist."""
        wav = self.audio_path_for(key)
        if not wav.exists():
            return None
        data = self.get(key)
        if data is None:
            return None
        try:
            AudioCacheEntry.from_dict(data)
        except TypeError:
            return None
        return wav

    def register(self, key: str, source_path: Path) -> Path:
        """Write the sidecar for a WAV already placed at audio_path_for(key).

        Args:
            key: Cache key
            source_path: Media file the audio was produced from

        Returns:
            Path to the cached WAV
        """
        wav = self.audio_path_for(key)
        entry = AudioCacheEntry(
            audio_path=str(wav),
            video_path=str(source_path),
            video_modified=file_mtime_seconds(Path(source_path)),
            cached_at=now_ts(),
        )
        self.put(key, entry.to_dict())
        return wav

    def store_file(self, key: str, wav_file: Path, source_path: Path) -> Path:
        """Copy an existing WAV into the cache and register it."""
        self.ensure_dir()
        shutil.copyfile(wav_file, self.audio_path_for(key))
        return self.register(key, source_path)

    def list_entries(self) -> List[AudioCacheEntry]:
        out: List[AudioCacheEntry] = []
        for data in self.list():
            try:
                out.append(AudioCacheEntry.from_dict(data))
            except TypeError:
                continue
        return out

    def _remove_entry(self, path: Path) -> bool:
        removed = super()._remove_entry(path)
        wav = path.with_suffix(self.audio_suffix)
        if wav.exists():
            try:
                wav.unlink()
            except OSError:
                return False
        return removed

    def clear(self) -> int:
        count = super().clear()
        # payloads whose sidecar went missing
        if self.directory.is_dir():
            for wav in self.directory.glob(f"*{self.audio_suffix}"):
                try:
                    wav.unlink()
                except OSError:
                    pass
        return count

    def _entry_size(self, path: Path) -> int:
        size = super()._entry_size(path)
        wav = path.with_suffix(self.audio_suffix)
        if wav.exists():
            size += wav.stat().st_size
        return size


class TranslationCache(ContentCache):
    """Quality-accepted translations keyed by source, target, context and model."""

    def key_for(self, source_text: str, target_language: str, context: str, model: str) -> str:
        return text_key(source_text, target_language, context, model)

    def load(self, key: str) -> Optional[str]:
        data = self.get(key)
        if data is None:
            return None
        translation = data.get("translation")
        return translation if isinstance(translation, str) else None

    def save(self, key: str, entry: TranslationCacheEntry) -> None:
        self.put(key, entry.to_dict())

    def list_entries(self) -> List[TranslationCacheEntry]:
        out: List[TranslationCacheEntry] = []
        for data in self.list():
            try:
                out.append(TranslationCacheEntry.from_dict(data))
            except TypeError:
                continue
        return out


class TuneCache(ContentCache):
    """Whole tuning results keyed by audio identity and every tunable knob."""

    def key_for(self, audio_path: Path, cfg: TranscriberConfig, language: Optional[str] = None) -> str:
        return file_identity_key(
            audio_path,
            "tune",
            cfg.mode,
            cfg.explore_model,
            cfg.transcribe_model,
            repr(float(cfg.temperature)),
            cfg.min_tempo,
            cfg.max_tempo,
            cfg.explore_steps,
            language or "",
            ",".join(cfg.acceptable_languages),
            cfg.fallback_language,
        )

    def load(self, key: str) -> Optional[TuneResult]:
        data = self.get(key)
        if data is None:
            return None
        try:
            return TuneResult.from_dict(data["result"])
        except (KeyError, TypeError, ValueError):
            return None

    def save(self, key: str, result: TuneResult, *, audio_path: Path) -> None:
        self.put(key, {"result": result.to_dict(), "audio_path": str(audio_path), "cached_at": now_ts()})


# ============================================================
# Cache Root
# ============================================================

CACHE_KINDS = ("transcriptions", "audio", "translations", "tuning")


class CacheStore:
    """All cache kinds under a single root directory."""

    def __init__(self, root: Path, *, quiet: bool = False):
        self.root = Path(root)
        self.quiet = quiet
        self.transcriptions = TranscriptionCache(self.root / "transcriptions", quiet=quiet)
        self.audio = AudioCache(self.root / "audio", quiet=quiet)
        self.translations = TranslationCache(self.root / "translations", quiet=quiet)
        self.tuning = TuneCache(self.root / "tuning", quiet=quiet)

    def stores(self, kind: str = "all") -> Dict[str, ContentCache]:
        """Select stores by kind name ("all" selects every kind).

        Raises:
            ValueError: If kind is not "all" or one of CACHE_KINDS
        """
        every: Dict[str, ContentCache] = {
            "transcriptions": self.transcriptions,
            "audio": self.audio,
            "translations": self.translations,
            "tuning": self.tuning,
        }
        if kind == "all":
            return every
        if kind not in every:
            raise ValueError(f"Unknown cache kind '{kind}'. Valid kinds: all, {', '.join(CACHE_KINDS)}")
        return {kind: every[kind]}

    def clear(self, kind: str = "all") -> Dict[str, int]:
        counts = {name: store.clear() for name, store in self.stores(kind).items()}
        log(f"Cleared cache: {', '.join(f'{n}={c}' for n, c in counts.items())}", quiet=self.quiet)
        return counts

    def clean(self, max_age_days: int, kind: str = "all") -> Dict[str, int]:
        counts = {name: store.clean(max_age_days) for name, store in self.stores(kind).items()}
        log(
            f"Cleaned cache entries older than {max_age_days} days: "
            f"{', '.join(f'{n}={c}' for n, c in counts.items())}",
            quiet=self.quiet,
        )
        return counts

    def info(self) -> CacheInfo:
        """Collect file counts, sizes, age range and models across every kind."""
        info = CacheInfo()
        stamps: List[int] = []

        for name, store in self.stores().items():
            files, size, oldest, newest = store.stats()
            setattr(info, f"{_INFO_PREFIX[name]}_files", files)
            setattr(info, f"{_INFO_PREFIX[name]}_size", size)
            stamps.extend(s for s in (oldest, newest) if s is not None)

        models = {e.model for e in self.transcriptions.list_entries()}
        info.models_used = sorted(models)
        if stamps:
            info.oldest_entry = min(stamps)
            info.newest_entry = max(stamps)
        return info


_INFO_PREFIX = {
    "transcriptions": "transcription",
    "audio": "audio",
    "translations": "translation",
    "tuning": "tuning",
}

