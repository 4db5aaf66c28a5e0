"""URL fetch orchestration for into-md.

This module decides how a page is obtained:

- STATIC: a plain httpx request
- RENDER: headless Chromium through Playwright
- AUTO: static first, then render only when detection says the static markup
  is an empty shell or too sparse to be useful

Every call makes at most one fetch sequence and writes at most one cache entry,
always for the final result (a superseded static probe is never stored).

Example usage:
    from intomd.fetch import FetchMode, FetchOptions, fetch_page

    outcome = await fetch_page(url, FetchMode.AUTO, FetchOptions(), cache=cache)
    print(outcome.strategy, outcome.from_cache)
"""

from __future__ import annotations

import asyncio
import codecs
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
from loguru import logger

from intomd.cache import CacheKeyOptions, FetchCache
from intomd.constants import DEFAULT_TIMEOUT_MS, DEFAULT_USER_AGENT, HTML_CONTENT_TYPES
from intomd.cookies import load_cookies
from intomd.detect import DetectionStage, detect_need_for_browser
from intomd.exceptions import ConfigurationError, FetchError, FetchTimeoutError
from intomd.extract import ExtractedContent, extract_content
from intomd.fetch_playwright import (
    InstallPrompt,
    PlaywrightRenderer,
    Renderer,
    RenderResult,
    ensure_render_capability,
)
from intomd.types import MODE_STRATEGY, FetchMode, Strategy

Extractor = Callable[..., ExtractedContent]


@dataclass
class FetchOptions:
    """Per-request configuration.

    Only ``raw``, ``exclude_selectors``, ``strip_links`` and ``encoding``
    change the output and therefore the cache key.
    """

    cookies_path: str | None = None
    user_agent: str | None = None
    encoding: str | None = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    use_cache: bool = True
    raw: bool = False
    exclude_selectors: list[str] = field(default_factory=list)
    strip_links: bool = False

    def cache_key_options(self) -> CacheKeyOptions:
        return CacheKeyOptions.create(
            raw=self.raw,
            exclude_selectors=self.exclude_selectors,
            strip_links=self.strip_links,
            encoding=self.encoding,
        )


@dataclass
class StaticFetchResult:
    """Result of a plain HTTP request."""

    html: str
    final_url: str
    content_type: str | None = None


@dataclass
class FetchOutcome:
    """Final result of an orchestrated fetch.

    Attributes:
        html: Page markup (or text for non-HTML responses)
        final_url: URL after redirects
        strategy: Mechanism that produced ``html``, never "auto"
        from_cache: True if served from the cache without network access
        content_type: Declared media type of a static response, if known
        reason: Detector reason when AUTO fell back to rendering
        extracted: Extraction of ``html`` computed during detection, if any
        metadata: Extra data persisted alongside the cache entry
    """

    html: str
    final_url: str
    strategy: Strategy
    from_cache: bool = False
    content_type: str | None = None
    reason: str | None = None
    extracted: ExtractedContent | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def resolve_mode(force_static: bool = False, force_render: bool = False) -> FetchMode:
    """Map the --no-js / --js flags onto a fetch mode.

    Raises:
        ConfigurationError: If both flags are set
    """
    if force_static and force_render:
        raise ConfigurationError("Cannot use --js and --no-js together")
    if force_render:
        return FetchMode.RENDER
    if force_static:
        return FetchMode.STATIC
    return FetchMode.AUTO


def _media_type(header: str | None) -> str | None:
    if not header:
        return None
    media_type = header.split(";", 1)[0].strip().lower()
    return media_type or None


def is_html_content_type(content_type: str | None) -> bool:
    """True for HTML-family media types. A missing type is assumed to be HTML."""
    if content_type is None:
        return True
    return _media_type(content_type) in HTML_CONTENT_TYPES


def _validate_encoding(encoding: str | None) -> str | None:
    if not encoding or not encoding.strip():
        return None
    name = encoding.strip()
    try:
        codecs.lookup(name)
    except LookupError as e:
        raise ConfigurationError(f"Unknown encoding: {name}") from e
    return name


async def fetch_with_static(url: str, options: FetchOptions) -> StaticFetchResult:
    """Fetch URL with a single HTTP GET (redirects followed, no retries).

    Args:
        url: URL to fetch
        options: Request options (user agent, cookies, timeout, encoding)

    Returns:
        StaticFetchResult with decoded markup

    Raises:
        ConfigurationError: Unknown encoding or unreadable cookie file
        FetchTimeoutError: The request timed out
        FetchError: Non-2xx status or any other transport failure
    """
    encoding = _validate_encoding(options.encoding)
    jar = load_cookies(options.cookies_path)

    headers = {"User-Agent": options.user_agent or DEFAULT_USER_AGENT}
    if jar.header:
        headers["Cookie"] = jar.header

    timeout = (options.timeout_ms or DEFAULT_TIMEOUT_MS) / 1000
    logger.debug(f"[Static] GET {url} (timeout={timeout}s)")

    try:
        async with httpx.AsyncClient(follow_redirects=True, timeout=timeout) as client:
            response = await client.get(url, headers=headers)
    except httpx.TimeoutException as e:
        raise FetchTimeoutError(f"Request timed out: {url}") from e
    except httpx.HTTPError as e:
        raise FetchError(f"Request failed: {e}") from e

    if not response.is_success:
        raise FetchError(
            f"Request failed with status {response.status_code}. "
            "If blocked, try --user-agent."
        )

    if encoding:
        html = response.content.decode(encoding, errors="replace")
    else:
        html = response.text

    return StaticFetchResult(
        html=html,
        final_url=str(response.url),
        content_type=_media_type(response.headers.get("content-type")),
    )


async def _render(
    url: str,
    options: FetchOptions,
    renderer: Renderer | None,
    confirm_install: InstallPrompt | None,
) -> RenderResult:
    await ensure_render_capability(confirm_install)
    if renderer is not None:
        return await renderer.render(url, options)
    async with PlaywrightRenderer() as playwright_renderer:
        return await playwright_renderer.render(url, options)


def _cache_metadata(outcome: FetchOutcome) -> dict[str, Any]:
    metadata: dict[str, Any] = {}
    if outcome.content_type:
        metadata["contentType"] = outcome.content_type
    if outcome.reason:
        metadata["reason"] = outcome.reason
    if outcome.extracted is not None:
        metadata["page"] = outcome.extracted.metadata.to_dict()
    return metadata


async def _dispatch(
    url: str,
    mode: FetchMode,
    options: FetchOptions,
    renderer: Renderer | None,
    confirm_install: InstallPrompt | None,
    extractor: Extractor,
) -> FetchOutcome:
    if mode is FetchMode.RENDER:
        rendered = await _render(url, options, renderer, confirm_install)
        return FetchOutcome(
            html=rendered.html, final_url=rendered.final_url, strategy=Strategy.RENDER
        )

    static = await fetch_with_static(url, options)
    static_outcome = FetchOutcome(
        html=static.html,
        final_url=static.final_url,
        strategy=Strategy.STATIC,
        content_type=static.content_type,
    )
    if mode is FetchMode.STATIC:
        return static_outcome

    if not is_html_content_type(static.content_type):
        logger.debug(
            f"[Fetch] Non-HTML content ({static.content_type}), skipping detection"
        )
        return static_outcome

    verdict = detect_need_for_browser(static.html, stage=DetectionStage.STAGE1)
    extracted: ExtractedContent | None = None
    if not verdict.should_fallback and not options.raw:
        extracted = extractor(
            static.html,
            static.final_url,
            raw=False,
            exclude_selectors=options.exclude_selectors,
        )
        verdict = detect_need_for_browser(
            static.html, extracted.html, stage=DetectionStage.STAGE2
        )

    if not verdict.should_fallback:
        static_outcome.extracted = extracted
        return static_outcome

    logger.info(f"Falling back to headless browser: {verdict.reason}")
    rendered = await _render(url, options, renderer, confirm_install)
    return FetchOutcome(
        html=rendered.html,
        final_url=rendered.final_url,
        strategy=Strategy.RENDER,
        reason=verdict.reason,
    )


async def fetch_page(
    url: str,
    mode: FetchMode,
    options: FetchOptions,
    *,
    cache: FetchCache | None = None,
    renderer: Renderer | None = None,
    confirm_install: InstallPrompt | None = None,
    extractor: Extractor = extract_content,
) -> FetchOutcome:
    """Fetch a page, consulting and updating the cache.

    Args:
        url: URL to fetch
        mode: AUTO, or a forced STATIC / RENDER mode
        options: Request options
        cache: Cache store (caching is off when None or ``options.use_cache`` is False)
        renderer: Renderer to use instead of a fresh PlaywrightRenderer
        confirm_install: Prompt used when Chromium is missing (interactive only)
        extractor: Main-content extractor used for Stage 2 detection

    Returns:
        FetchOutcome whose strategy is always STATIC or RENDER

    Raises:
        ConfigurationError: Invalid options
        FetchError: The static request or a required render failed
    """
    use_cache = cache is not None and options.use_cache
    key_options = options.cache_key_options()

    if use_cache:
        assert cache is not None
        entry = await asyncio.to_thread(cache.read, url, key_options)
        if entry is not None:
            required = MODE_STRATEGY.get(mode)
            if required is None or required is entry.strategy:
                logger.info(f"Using cached result ({entry.strategy.value})")
                return FetchOutcome(
                    html=entry.html,
                    final_url=entry.final_url,
                    strategy=entry.strategy,
                    from_cache=True,
                    content_type=entry.metadata.get("contentType"),
                    reason=entry.metadata.get("reason"),
                    metadata=entry.metadata,
                )
            logger.debug(
                f"[Fetch] Cached {entry.strategy.value} result does not satisfy "
                f"{mode.value} mode, refetching"
            )

    outcome = await _dispatch(url, mode, options, renderer, confirm_install, extractor)
    outcome.metadata = _cache_metadata(outcome)

    if use_cache:
        assert cache is not None
        await asyncio.to_thread(
            cache.write,
            url,
            outcome.html,
            outcome.final_url,
            outcome.strategy,
            key_options,
            outcome.metadata,
        )

    return outcome
