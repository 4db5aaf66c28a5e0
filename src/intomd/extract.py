"""Main-content extraction and page metadata.

Wraps readability-lxml: the full document goes in, the main article fragment
and a small metadata record come out. Extraction is pure (no network) and
never raises; when readability cannot make sense of a page the body's inner
markup is returned instead.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass

from bs4 import BeautifulSoup, Tag
from loguru import logger
from readability import Document
from soupsieve import SelectorSyntaxError


@dataclass
class PageMetadata:
    """Metadata carried into the frontmatter."""

    source: str
    title: str | None = None
    description: str | None = None
    author: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return asdict(self)


@dataclass
class ExtractedContent:
    """Main-content fragment plus metadata."""

    html: str
    metadata: PageMetadata


def _meta_content(
    soup: BeautifulSoup, *, name: str | None = None, prop: str | None = None
) -> str | None:
    attrs = {"name": name} if name else {"property": prop}
    tag = soup.find("meta", attrs=attrs)
    if isinstance(tag, Tag):
        content = tag.get("content")
        if isinstance(content, str) and content.strip():
            return content.strip()
    return None


def _page_title(soup: BeautifulSoup) -> str | None:
    if soup.title and soup.title.string and soup.title.string.strip():
        return soup.title.string.strip()
    return _meta_content(soup, prop="og:title")


def extract_metadata(soup: BeautifulSoup, source: str) -> PageMetadata:
    """Read title, description and author from the document head."""
    return PageMetadata(
        source=source,
        title=_page_title(soup),
        description=_meta_content(soup, name="description")
        or _meta_content(soup, prop="og:description"),
        author=_meta_content(soup, name="author")
        or _meta_content(soup, prop="article:author"),
    )


def remove_excluded(soup: BeautifulSoup, selectors: Iterable[str]) -> None:
    """Remove every element matching one of the CSS selectors, in place."""
    for selector in selectors:
        selector = selector.strip()
        if not selector:
            continue
        try:
            matches = soup.select(selector)
        except SelectorSyntaxError as e:
            logger.warning(f"[Extract] Ignoring invalid selector {selector!r}: {e}")
            continue
        for element in matches:
            element.decompose()


def _body_inner_html(soup: BeautifulSoup) -> str:
    body = soup.body
    if body is None:
        return str(soup)
    return body.decode_contents()


def extract_content(
    html: str,
    base_url: str,
    *,
    raw: bool = False,
    exclude_selectors: Iterable[str] = (),
) -> ExtractedContent:
    """Extract the main content of a page.

    Args:
        html: Full page markup
        base_url: URL the markup was loaded from (recorded as the source)
        raw: Skip readability and keep the whole document
        exclude_selectors: CSS selectors removed before extraction

    Returns:
        ExtractedContent with the content fragment and page metadata
    """
    soup = BeautifulSoup(html or "", "html.parser")
    remove_excluded(soup, exclude_selectors)
    metadata = extract_metadata(soup, base_url)

    for element in soup.find_all(["script", "style", "noscript"]):
        element.decompose()

    if raw:
        return ExtractedContent(html=str(soup), metadata=metadata)

    cleaned = str(soup)
    try:
        doc = Document(cleaned, url=base_url)
        content = doc.summary(html_partial=True)
        if not metadata.title:
            title = doc.short_title()
            if title and title != "[no-title]":
                metadata.title = title
    except Exception as e:
        logger.debug(f"[Extract] Readability failed for {base_url}: {e}")
        content = _body_inner_html(soup)

    return ExtractedContent(html=content, metadata=metadata)
