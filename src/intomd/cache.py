"""File-based cache for fetch results.

One JSON file per cache key under the cache directory. The key covers the URL
and every option that changes the converted output, so two requests only share
an entry when they would produce the same markdown.

Entries are never deleted. Staleness is judged at read time from the file's
modification time, and anything that cannot be used (missing, expired, wrong
schema version, corrupt, URL collision, unknown strategy) is a plain miss.

Example usage:
    from intomd.cache import CacheKeyOptions, FetchCache

    cache = FetchCache(Path("~/.cache/into-md").expanduser())
    entry = cache.read(url, CacheKeyOptions(raw=False))
    if entry is None:
        cache.write(url, html, final_url, Strategy.STATIC, CacheKeyOptions())
"""

from __future__ import annotations

import codecs
import hashlib
import json
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from intomd.constants import CACHE_SCHEMA_VERSION, DEFAULT_CACHE_TTL_SECONDS
from intomd.types import Strategy
from intomd.utils.files import atomic_write_json


def _normalize_encoding(encoding: str | None) -> str | None:
    if encoding is None:
        return None
    normalized = encoding.strip().lower()
    if not normalized:
        return None
    try:
        return codecs.lookup(normalized).name
    except LookupError:
        return normalized


@dataclass(frozen=True)
class CacheKeyOptions:
    """Options that affect the cached payload.

    Timeout, verbosity, cookies and user agent are not part of the key.
    """

    raw: bool = False
    exclude_selectors: tuple[str, ...] = ()
    strip_links: bool = False
    encoding: str | None = None

    @classmethod
    def create(
        cls,
        *,
        raw: bool = False,
        exclude_selectors: Iterable[str] = (),
        strip_links: bool = False,
        encoding: str | None = None,
    ) -> CacheKeyOptions:
        """Build normalized options (selectors deduplicated and sorted)."""
        selectors = sorted({s.strip() for s in exclude_selectors if s and s.strip()})
        return cls(
            raw=raw,
            exclude_selectors=tuple(selectors),
            strip_links=strip_links,
            encoding=_normalize_encoding(encoding),
        )

    def canonical(self) -> dict[str, Any]:
        return {
            "raw": bool(self.raw),
            "exclude": sorted({s.strip() for s in self.exclude_selectors if s.strip()}),
            "strip_links": bool(self.strip_links),
            "encoding": _normalize_encoding(self.encoding),
        }


def compute_cache_key(url: str, options: CacheKeyOptions) -> str:
    """Compute a deterministic cache key for a URL and its output options.

    Args:
        url: Requested URL (not the redirect target)
        options: Output-affecting options

    Returns:
        SHA-256 hex digest of the canonical JSON document
    """
    document = {"url": url, **options.canonical()}
    canonical = json.dumps(document, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass
class CacheEntry:
    """A readable cache entry."""

    url: str
    final_url: str
    html: str
    fetched_at: int
    strategy: Strategy
    schema_version: int = CACHE_SCHEMA_VERSION
    metadata: dict[str, Any] = field(default_factory=dict)


class FetchCache:
    """JSON-file cache keyed by URL plus output options.

    Concurrent writers targeting the same key race; the last rename wins.
    """

    def __init__(
        self, cache_dir: Path, ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    ) -> None:
        self._cache_dir = Path(cache_dir).expanduser()
        self._ttl_seconds = ttl_seconds

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def path_for(self, url: str, options: CacheKeyOptions) -> Path:
        """Return the file path holding the entry for this URL and options."""
        return self._cache_dir / f"{compute_cache_key(url, options)}.json"

    def read(self, url: str, options: CacheKeyOptions) -> CacheEntry | None:
        """Read a usable entry, or None on any kind of miss.

        Never raises.
        """
        path = self.path_for(url, options)
        try:
            mtime = path.stat().st_mtime
        except OSError:
            logger.debug(f"[FetchCache] Miss: {url}")
            return None

        if mtime + self._ttl_seconds <= time.time():
            logger.debug(f"[FetchCache] Expired entry: {url}")
            return None

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.debug(f"[FetchCache] Unreadable entry for {url}: {e}")
            return None

        if not isinstance(data, dict):
            logger.debug(f"[FetchCache] Malformed entry for {url}")
            return None

        version = data.get("schemaVersion")
        if version != CACHE_SCHEMA_VERSION:
            logger.debug(
                f"[FetchCache] Schema version {version!r} != "
                f"{CACHE_SCHEMA_VERSION}, ignoring entry for {url}"
            )
            return None

        if data.get("url") != url:
            logger.debug(f"[FetchCache] URL mismatch for {url}")
            return None

        strategy = Strategy.parse(data.get("strategy"))
        if strategy is None:
            logger.debug(
                f"[FetchCache] Unknown strategy {data.get('strategy')!r} for {url}"
            )
            return None

        payload = data.get("payload")
        if not isinstance(payload, str):
            logger.debug(f"[FetchCache] Missing payload for {url}")
            return None

        final_url = data.get("finalUrl")
        fetched_at = data.get("fetchedAt")
        metadata = data.get("metadata")
        return CacheEntry(
            url=url,
            final_url=final_url if isinstance(final_url, str) else url,
            html=payload,
            fetched_at=fetched_at if isinstance(fetched_at, int) else 0,
            strategy=strategy,
            schema_version=CACHE_SCHEMA_VERSION,
            metadata=metadata if isinstance(metadata, dict) else {},
        )

    def write(
        self,
        url: str,
        html: str,
        final_url: str,
        strategy: Strategy,
        options: CacheKeyOptions,
        metadata: dict[str, Any] | None = None,
    ) -> Path | None:
        """Persist an entry, replacing any previous one for the same key.

        Returns:
            Path written, or None if the write failed (logged, not raised)
        """
        path = self.path_for(url, options)
        document = {
            "url": url,
            "finalUrl": final_url,
            "fetchedAt": int(time.time() * 1000),
            "schemaVersion": CACHE_SCHEMA_VERSION,
            "strategy": strategy.value,
            "payload": html,
            "metadata": metadata or {},
        }
        try:
            atomic_write_json(path, document)
        except OSError as e:
            logger.warning(f"[FetchCache] Failed to write cache entry for {url}: {e}")
            return None
        logger.debug(f"[FetchCache] Stored {strategy.value} result for {url}")
        return path
