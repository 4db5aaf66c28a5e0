"""Tests for fetch orchestration (mode handling, fallback and caching)."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from intomd.cache import FetchCache
from intomd.detect import REASON_EMPTY_ROOT, REASON_TOO_SPARSE, DetectionVerdict
from intomd.exceptions import (
    BrowserNotInstalledError,
    ConfigurationError,
    FetchError,
    PlaywrightNotInstalledError,
)
from intomd.extract import ExtractedContent, PageMetadata
from intomd.fetch import (
    FetchOptions,
    StaticFetchResult,
    fetch_page,
    resolve_mode,
)
from intomd.types import FetchMode, Strategy

URL = "https://example.com/page"


@pytest.fixture
def capability():
    """Pretend headless rendering is available."""
    with patch("intomd.fetch.ensure_render_capability", new=AsyncMock()) as mock:
        yield mock


def static_fetch(html: str, content_type: str | None = "text/html") -> AsyncMock:
    return AsyncMock(
        return_value=StaticFetchResult(html=html, final_url=URL, content_type=content_type)
    )


def sparse_extractor(html, base_url, **kwargs) -> ExtractedContent:
    return ExtractedContent(html="<div>tiny</div>", metadata=PageMetadata(source=base_url))


class TestResolveMode:
    def test_default_is_auto(self):
        assert resolve_mode() is FetchMode.AUTO

    def test_forced_modes(self):
        assert resolve_mode(force_static=True) is FetchMode.STATIC
        assert resolve_mode(force_render=True) is FetchMode.RENDER

    def test_conflicting_flags(self):
        with pytest.raises(ConfigurationError, match="--js and --no-js"):
            resolve_mode(force_static=True, force_render=True)


class TestAutoMode:
    """Static first, render only on detection."""

    @pytest.mark.asyncio
    async def test_static_page_stays_static(self, article_html, stub_renderer, capability):
        renderer = stub_renderer()
        with patch("intomd.fetch.fetch_with_static", static_fetch(article_html)):
            outcome = await fetch_page(URL, FetchMode.AUTO, FetchOptions(), renderer=renderer)

        assert outcome.strategy is Strategy.STATIC
        assert outcome.html == article_html
        assert outcome.from_cache is False
        assert outcome.reason is None
        assert outcome.extracted is not None
        assert renderer.calls == []
        capability.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_spa_shell_falls_back_to_render(
        self, spa_html, rendered_html, stub_renderer, capability
    ):
        renderer = stub_renderer(html=rendered_html)
        with patch("intomd.fetch.fetch_with_static", static_fetch(spa_html)):
            outcome = await fetch_page(URL, FetchMode.AUTO, FetchOptions(), renderer=renderer)

        assert outcome.strategy is Strategy.RENDER
        assert outcome.html == rendered_html
        assert outcome.reason == REASON_EMPTY_ROOT
        assert renderer.calls == [URL]

    @pytest.mark.asyncio
    async def test_stage_one_hit_skips_extraction(self, spa_html, stub_renderer, capability):
        extractor = MagicMock()
        with patch("intomd.fetch.fetch_with_static", static_fetch(spa_html)):
            await fetch_page(
                URL,
                FetchMode.AUTO,
                FetchOptions(),
                renderer=stub_renderer(),
                extractor=extractor,
            )

        extractor.assert_not_called()

    @pytest.mark.asyncio
    async def test_sparse_extraction_falls_back(self, stub_renderer, capability):
        renderer = stub_renderer()
        html = "<html><body><div>tiny</div></body></html>"
        with patch("intomd.fetch.fetch_with_static", static_fetch(html)):
            outcome = await fetch_page(
                URL,
                FetchMode.AUTO,
                FetchOptions(),
                renderer=renderer,
                extractor=sparse_extractor,
            )

        assert outcome.strategy is Strategy.RENDER
        assert outcome.reason == REASON_TOO_SPARSE

    @pytest.mark.asyncio
    async def test_raw_skips_stage_two(self, stub_renderer, capability):
        renderer = stub_renderer()
        extractor = MagicMock(side_effect=sparse_extractor)
        html = "<html><body><div>tiny</div></body></html>"
        with patch("intomd.fetch.fetch_with_static", static_fetch(html)):
            outcome = await fetch_page(
                URL,
                FetchMode.AUTO,
                FetchOptions(raw=True),
                renderer=renderer,
                extractor=extractor,
            )

        assert outcome.strategy is Strategy.STATIC
        extractor.assert_not_called()
        assert renderer.calls == []

    @pytest.mark.asyncio
    async def test_non_html_skips_detection(self, stub_renderer, capability):
        renderer = stub_renderer()
        with (
            patch("intomd.fetch.fetch_with_static", static_fetch('{"a": 1}', "application/json")),
            patch("intomd.fetch.detect_need_for_browser") as detect,
        ):
            outcome = await fetch_page(URL, FetchMode.AUTO, FetchOptions(), renderer=renderer)

        detect.assert_not_called()
        assert outcome.strategy is Strategy.STATIC
        assert outcome.content_type == "application/json"
        assert renderer.calls == []

    @pytest.mark.asyncio
    async def test_fallback_render_failure_propagates(self, spa_html, stub_renderer, capability):
        renderer = stub_renderer(error=FetchError("Render failed: boom"))
        with patch("intomd.fetch.fetch_with_static", static_fetch(spa_html)):
            with pytest.raises(FetchError, match="boom"):
                await fetch_page(URL, FetchMode.AUTO, FetchOptions(), renderer=renderer)

    @pytest.mark.asyncio
    async def test_static_failure_does_not_render(self, stub_renderer, capability):
        renderer = stub_renderer()
        failing = AsyncMock(side_effect=FetchError("Request failed with status 500."))
        with patch("intomd.fetch.fetch_with_static", failing):
            with pytest.raises(FetchError, match="500"):
                await fetch_page(URL, FetchMode.AUTO, FetchOptions(), renderer=renderer)

        assert renderer.calls == []


class TestForcedModes:
    """--no-js and --js never switch mechanism."""

    @pytest.mark.asyncio
    async def test_forced_static_ignores_detection(self, spa_html, stub_renderer, capability):
        renderer = stub_renderer()
        with (
            patch("intomd.fetch.fetch_with_static", static_fetch(spa_html)),
            patch("intomd.fetch.detect_need_for_browser") as detect,
        ):
            outcome = await fetch_page(URL, FetchMode.STATIC, FetchOptions(), renderer=renderer)

        detect.assert_not_called()
        assert outcome.strategy is Strategy.STATIC
        assert outcome.html == spa_html
        assert renderer.calls == []

    @pytest.mark.asyncio
    async def test_forced_render_skips_static_request(self, stub_renderer, capability):
        renderer = stub_renderer(final_url="https://example.com/final")
        static = static_fetch("unused")
        with patch("intomd.fetch.fetch_with_static", static):
            outcome = await fetch_page(URL, FetchMode.RENDER, FetchOptions(), renderer=renderer)

        static.assert_not_awaited()
        capability.assert_awaited_once()
        assert outcome.strategy is Strategy.RENDER
        assert outcome.final_url == "https://example.com/final"

    @pytest.mark.asyncio
    async def test_forced_render_failure_is_hard(
        self, fetch_cache: FetchCache, stub_renderer, capability
    ):
        renderer = stub_renderer(error=FetchError("Render failed: crashed"))
        static = static_fetch("unused")
        with patch("intomd.fetch.fetch_with_static", static):
            with pytest.raises(FetchError, match="crashed"):
                await fetch_page(
                    URL, FetchMode.RENDER, FetchOptions(), cache=fetch_cache, renderer=renderer
                )

        static.assert_not_awaited()
        assert not fetch_cache.cache_dir.exists() or not any(fetch_cache.cache_dir.iterdir())

    @pytest.mark.asyncio
    async def test_capability_error_is_raised(self, stub_renderer):
        renderer = stub_renderer()
        with patch(
            "intomd.fetch.ensure_render_capability",
            new=AsyncMock(side_effect=PlaywrightNotInstalledError()),
        ):
            with pytest.raises(PlaywrightNotInstalledError):
                await fetch_page(URL, FetchMode.RENDER, FetchOptions(), renderer=renderer)

        assert renderer.calls == []

    @pytest.mark.asyncio
    async def test_auto_fallback_capability_error(self, spa_html, stub_renderer):
        with (
            patch("intomd.fetch.fetch_with_static", static_fetch(spa_html)),
            patch(
                "intomd.fetch.ensure_render_capability",
                new=AsyncMock(side_effect=BrowserNotInstalledError()),
            ),
        ):
            with pytest.raises(BrowserNotInstalledError):
                await fetch_page(URL, FetchMode.AUTO, FetchOptions(), renderer=stub_renderer())


class TestCaching:
    """Cache reads, writes and strategy compatibility."""

    @pytest.mark.asyncio
    async def test_second_call_is_served_from_cache(
        self, article_html, fetch_cache: FetchCache, stub_renderer, capability
    ):
        static = static_fetch(article_html)
        with patch("intomd.fetch.fetch_with_static", static):
            first = await fetch_page(URL, FetchMode.AUTO, FetchOptions(), cache=fetch_cache)
            second = await fetch_page(URL, FetchMode.AUTO, FetchOptions(), cache=fetch_cache)

        assert static.await_count == 1
        assert first.from_cache is False
        assert second.from_cache is True
        assert second.html == first.html
        assert second.strategy is Strategy.STATIC
        assert second.content_type == "text/html"

    @pytest.mark.asyncio
    async def test_fallback_writes_only_rendered_payload(
        self, spa_html, rendered_html, fetch_cache: FetchCache, stub_renderer, capability
    ):
        renderer = stub_renderer(html=rendered_html)
        with (
            patch("intomd.fetch.fetch_with_static", static_fetch(spa_html)),
            patch.object(fetch_cache, "write", wraps=fetch_cache.write) as write,
        ):
            await fetch_page(
                URL, FetchMode.AUTO, FetchOptions(), cache=fetch_cache, renderer=renderer
            )

        write.assert_called_once()
        args = write.call_args.args
        assert args[1] == rendered_html
        assert args[3] is Strategy.RENDER
        entry = fetch_cache.read(URL, FetchOptions().cache_key_options())
        assert entry.strategy is Strategy.RENDER
        assert entry.metadata["reason"] == REASON_EMPTY_ROOT

    @pytest.mark.asyncio
    async def test_cached_render_is_reused_in_auto_mode(
        self, spa_html, rendered_html, fetch_cache: FetchCache, stub_renderer, capability
    ):
        renderer = stub_renderer(html=rendered_html)
        static = static_fetch(spa_html)
        with patch("intomd.fetch.fetch_with_static", static):
            await fetch_page(
                URL, FetchMode.AUTO, FetchOptions(), cache=fetch_cache, renderer=renderer
            )
            again = await fetch_page(
                URL, FetchMode.AUTO, FetchOptions(), cache=fetch_cache, renderer=renderer
            )

        assert again.from_cache is True
        assert again.strategy is Strategy.RENDER
        assert again.reason == REASON_EMPTY_ROOT
        assert static.await_count == 1
        assert len(renderer.calls) == 1

    @pytest.mark.asyncio
    async def test_forced_static_bypasses_cached_render(
        self, spa_html, fetch_cache: FetchCache, stub_renderer, capability
    ):
        options = FetchOptions()
        fetch_cache.write(
            URL, "<p>rendered</p>", URL, Strategy.RENDER, options.cache_key_options()
        )
        static = static_fetch(spa_html)
        with patch("intomd.fetch.fetch_with_static", static):
            outcome = await fetch_page(URL, FetchMode.STATIC, options, cache=fetch_cache)

        static.assert_awaited_once()
        assert outcome.from_cache is False
        assert outcome.html == spa_html
        entry = fetch_cache.read(URL, options.cache_key_options())
        assert entry.strategy is Strategy.STATIC

    @pytest.mark.asyncio
    async def test_forced_render_bypasses_cached_static(
        self, fetch_cache: FetchCache, stub_renderer, capability
    ):
        options = FetchOptions()
        fetch_cache.write(URL, "<p>static</p>", URL, Strategy.STATIC, options.cache_key_options())
        renderer = stub_renderer(html="<p>fresh render</p>")

        outcome = await fetch_page(
            URL, FetchMode.RENDER, options, cache=fetch_cache, renderer=renderer
        )

        assert outcome.from_cache is False
        assert outcome.html == "<p>fresh render</p>"
        assert renderer.calls == [URL]

    @pytest.mark.asyncio
    async def test_forced_render_uses_cached_render(
        self, fetch_cache: FetchCache, stub_renderer, capability
    ):
        options = FetchOptions()
        fetch_cache.write(URL, "<p>cached</p>", URL, Strategy.RENDER, options.cache_key_options())
        renderer = stub_renderer()

        outcome = await fetch_page(
            URL, FetchMode.RENDER, options, cache=fetch_cache, renderer=renderer
        )

        assert outcome.from_cache is True
        assert outcome.html == "<p>cached</p>"
        assert renderer.calls == []
        capability.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_use_cache_false_neither_reads_nor_writes(
        self, article_html, fetch_cache: FetchCache, capability
    ):
        options = FetchOptions(use_cache=False)
        fetch_cache.write(URL, "<p>stale</p>", URL, Strategy.STATIC, options.cache_key_options())
        with (
            patch("intomd.fetch.fetch_with_static", static_fetch(article_html)),
            patch.object(fetch_cache, "write") as write,
        ):
            outcome = await fetch_page(URL, FetchMode.AUTO, options, cache=fetch_cache)

        assert outcome.from_cache is False
        assert outcome.html == article_html
        write.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_fetch_writes_nothing(self, fetch_cache: FetchCache, capability):
        failing = AsyncMock(side_effect=FetchError("Request failed: refused"))
        with (
            patch("intomd.fetch.fetch_with_static", failing),
            patch.object(fetch_cache, "write") as write,
        ):
            with pytest.raises(FetchError):
                await fetch_page(URL, FetchMode.AUTO, FetchOptions(), cache=fetch_cache)

        write.assert_not_called()

    @pytest.mark.asyncio
    async def test_detection_runs_once_per_stage(
        self, spa_html, fetch_cache: FetchCache, stub_renderer, capability
    ):
        verdict = DetectionVerdict(True, REASON_EMPTY_ROOT)
        with (
            patch("intomd.fetch.fetch_with_static", static_fetch(spa_html)),
            patch("intomd.fetch.detect_need_for_browser", return_value=verdict) as detect,
        ):
            await fetch_page(
                URL, FetchMode.AUTO, FetchOptions(), cache=fetch_cache, renderer=stub_renderer()
            )

        detect.assert_called_once()

    @pytest.mark.asyncio
    async def test_options_partition_the_cache(
        self, article_html, fetch_cache: FetchCache, capability
    ):
        static = static_fetch(article_html)
        with patch("intomd.fetch.fetch_with_static", static):
            await fetch_page(URL, FetchMode.AUTO, FetchOptions(), cache=fetch_cache)
            outcome = await fetch_page(
                URL, FetchMode.AUTO, FetchOptions(strip_links=True), cache=fetch_cache
            )

        assert outcome.from_cache is False
        assert static.await_count == 2


class TestConcurrentCalls:
    @pytest.mark.asyncio
    async def test_independent_urls_in_parallel(
        self, article_html, fetch_cache: FetchCache, capability
    ):
        urls = [f"https://example.com/{i}" for i in range(4)]

        async def fake_static(url, options):
            return StaticFetchResult(html=article_html, final_url=url, content_type="text/html")

        with patch("intomd.fetch.fetch_with_static", side_effect=fake_static):
            outcomes = await asyncio.gather(
                *(fetch_page(url, FetchMode.AUTO, FetchOptions(), cache=fetch_cache) for url in urls)
            )

        assert [o.final_url for o in outcomes] == urls
        assert len(list(fetch_cache.cache_dir.glob("*.json"))) == 4
