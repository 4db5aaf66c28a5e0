"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from intomd.cache import FetchCache
from intomd.fetch_playwright import RenderResult

# =============================================================================
# Sample Markup Fixtures
# =============================================================================

ARTICLE_PARAGRAPH = (
    "Static site generators render every page ahead of time, so the markup a "
    "plain HTTP client receives already contains the full article text. "
    "Nothing needs to run in a browser before the content becomes visible."
)


@pytest.fixture
def article_html() -> str:
    """A server-rendered article page with plenty of text."""
    paragraphs = "\n".join(f"<p>{ARTICLE_PARAGRAPH}</p>" for _ in range(6))
    return f"""<html>
<head>
  <title>Static Rendering Explained</title>
  <meta name="description" content="Why some pages need no browser">
  <meta name="author" content="Jordan Example">
</head>
<body>
  <nav><a href="/">Home</a> <a href="/blog">Blog</a></nav>
  <article>
    <h1>Static Rendering Explained</h1>
    {paragraphs}
  </article>
  <footer>Copyright</footer>
</body>
</html>"""


@pytest.fixture
def spa_html() -> str:
    """An empty single-page-application shell."""
    return """<html>
<head><title>App</title><script src="/bundle.js"></script></head>
<body><div id="root"></div></body>
</html>"""


@pytest.fixture
def rendered_html() -> str:
    """What a browser produces for the SPA shell."""
    return f"""<html>
<head><title>App</title></head>
<body><div id="root"><main><h1>Dashboard</h1><p>{ARTICLE_PARAGRAPH}</p></main></div></body>
</html>"""


# =============================================================================
# Cache / Renderer Fixtures
# =============================================================================


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def fetch_cache(cache_dir: Path) -> FetchCache:
    """A cache store rooted in a temporary directory."""
    return FetchCache(cache_dir, ttl_seconds=3600)


class StubRenderer:
    """Renderer double that records calls and returns fixed markup."""

    def __init__(
        self,
        html: str = "<html><body><p>rendered</p></body></html>",
        final_url: str | None = None,
        error: Exception | None = None,
    ) -> None:
        self.html = html
        self.final_url = final_url
        self.error = error
        self.calls: list[str] = []

    async def render(self, url, options) -> RenderResult:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return RenderResult(html=self.html, final_url=self.final_url or url)


@pytest.fixture
def stub_renderer() -> Callable[..., StubRenderer]:
    """Factory for StubRenderer instances."""
    return StubRenderer


# =============================================================================
# HTTP Fixtures
# =============================================================================


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], Iterator]:
    """Route every httpx.AsyncClient created by intomd.fetch through a handler.

    Usage:
        with mock_http(handler):
            await fetch_with_static(url, options)
    """
    real_client = httpx.AsyncClient

    @contextmanager
    def _mock(handler: Callable[[httpx.Request], httpx.Response]) -> Iterator[None]:
        def factory(**kwargs):
            return real_client(transport=httpx.MockTransport(handler), **kwargs)

        with patch("intomd.fetch.httpx.AsyncClient", side_effect=factory):
            yield

    return _mock
