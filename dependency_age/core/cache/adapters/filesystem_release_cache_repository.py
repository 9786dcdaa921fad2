from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
import json
from logging import getLogger
import os
from pathlib import Path
import tempfile
from typing import Any

from dependency_age.core.cache.ports.release_cache_repository import (
    CacheStats,
    CacheUnavailableError,
    ReleaseCacheRepository,
    is_fresh,
)
from dependency_age.core.models import CacheEntry, ReleaseInfo

logger = getLogger("dependency_age")

CACHE_FORMAT_VERSION = "2"


class FileSystemReleaseCacheRepository(ReleaseCacheRepository):
    """Whole-file JSON store, loaded once and rewritten atomically on change."""

    def __init__(self, cache_file: Path | str) -> None:
        self._cache_file = Path(cache_file)
        self._entries: dict[str, CacheEntry] = self._load()

    @property
    def cache_file(self) -> Path:
        return self._cache_file

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, name: str) -> CacheEntry | None:
        return self._entries.get(name)

    def put(self, name: str, info: ReleaseInfo, now: int) -> None:
        self._entries[name] = CacheEntry(package_name=name, payload=info, fetched_at=now)
        self._save()

    def clear(self) -> None:
        self._entries = {}
        try:
            self._cache_file.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to delete cache file %s: %s", self._cache_file, exc)

    def prune(self, ttl: int, now: int) -> int:
        stale = [
            name for name, entry in self._entries.items() if not is_fresh(entry, ttl, now)
        ]
        for name in stale:
            del self._entries[name]
        if stale:
            self._save()
        return len(stale)

    def stats(self, ttl: int, now: int) -> CacheStats:
        try:
            size = self._cache_file.stat().st_size
            exists = True
        except OSError:
            size = 0
            exists = False
        return CacheStats(
            exists=exists,
            size_bytes=size,
            entries=len(self._entries),
            fresh_entries=sum(
                1 for entry in self._entries.values() if is_fresh(entry, ttl, now)
            ),
        )

    def _read(self) -> str:
        try:
            return self._cache_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""
        except (OSError, UnicodeDecodeError) as exc:
            raise CacheUnavailableError(
                f"Failed to read cache file {self._cache_file}: {exc}"
            ) from exc

    def _write(self, payload: str) -> None:
        tmp_path: str | None = None
        try:
            self._cache_file.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self._cache_file.parent,
                prefix=f".{self._cache_file.name}.",
                suffix=".tmp",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(payload)
            os.replace(tmp_path, self._cache_file)
            tmp_path = None
        except OSError as exc:
            raise CacheUnavailableError(
                f"Failed to write cache file {self._cache_file}: {exc}"
            ) from exc
        finally:
            if tmp_path is not None:
                Path(tmp_path).unlink(missing_ok=True)

    def _load(self) -> dict[str, CacheEntry]:
        try:
            content = self._read()
        except CacheUnavailableError as exc:
            logger.warning("Continuing without cached data: %s", exc)
            return {}

        if not content.strip():
            return {}

        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt cache file %s", self._cache_file)
            return {}

        if not isinstance(data, dict) or data.get("version") != CACHE_FORMAT_VERSION:
            logger.info("Ignoring cache file %s with unknown format", self._cache_file)
            return {}

        raw_entries = data.get("entries")
        if not isinstance(raw_entries, dict):
            return {}

        entries: dict[str, CacheEntry] = {}
        for name, raw_entry in raw_entries.items():
            if (entry := _decode_entry(name, raw_entry)) is not None:
                entries[name] = entry
            else:
                logger.debug("Skipping malformed cache entry for %s", name)
        return entries

    def _save(self) -> None:
        payload = json.dumps(
            {
                "version": CACHE_FORMAT_VERSION,
                "entries": {
                    name: _encode_entry(entry) for name, entry in self._entries.items()
                },
            },
            indent=2,
            sort_keys=True,
        )
        try:
            self._write(payload)
        except CacheUnavailableError as exc:
            logger.warning("Cache not updated: %s", exc)


def _format_date(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_date(value: object) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("date must be a string")
    return datetime.fromisoformat(value)


def _optional_str(value: object) -> str | None:
    if value is None or isinstance(value, str):
        return value
    raise ValueError("expected a string")


def _encode_entry(entry: CacheEntry) -> dict[str, Any]:
    info = entry.payload
    return {
        "fetched_at": entry.fetched_at,
        "payload": {
            "package_name": info.package_name,
            "version": info.version,
            "release_date": _format_date(info.release_date),
            "latest_version": info.latest_version,
            "latest_release_date": _format_date(info.latest_release_date),
        },
    }


def _decode_entry(name: str, raw: object) -> CacheEntry | None:
    if not isinstance(raw, Mapping):
        return None
    fetched_at = raw.get("fetched_at")
    payload = raw.get("payload")
    if not isinstance(fetched_at, int) or isinstance(fetched_at, bool):
        return None
    if not isinstance(payload, Mapping):
        return None
    try:
        info = ReleaseInfo(
            package_name=name,
            version=_optional_str(payload.get("version")),
            release_date=_parse_date(payload.get("release_date")),
            latest_version=_optional_str(payload.get("latest_version")),
            latest_release_date=_parse_date(payload.get("latest_release_date")),
        )
    except ValueError:
        return None
    return CacheEntry(package_name=name, payload=info, fetched_at=fetched_at)
