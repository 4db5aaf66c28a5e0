"""HTML to markdown conversion built on markdownify.

The markup reaching this module has already passed through table and image
annotation, so the converter only has to honour the markers those steps leave
behind (``data-into-md-table`` and ``data-into-md-caption``).
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Tag
from markdownify import ATX, MarkdownConverter

from intomd.images import CAPTION_ATTR, to_absolute_url
from intomd.tables import TABLE_MARKER_ATTR

_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")


class IntoMdMarkdownConverter(MarkdownConverter):
    """markdownify converter with into-md specific rules."""

    def __init__(self, *, strip_links: bool = False, **options) -> None:
        self.strip_links = strip_links
        options.setdefault("heading_style", ATX)
        options.setdefault("bullets", "-")
        options.setdefault("code_language", "")
        super().__init__(**options)

    def convert_a(self, el, text, parent_tags):
        if self.strip_links or not el.get("href"):
            return text
        return super().convert_a(el, text, parent_tags)

    def convert_img(self, el, text, parent_tags):
        src = el.get("src") or ""
        alt = el.get("alt") or ""
        caption = el.get(CAPTION_ATTR)
        image_line = f"![{alt}]({src})"
        if caption:
            return f"{image_line}\n*{caption}*"
        return image_line

    def convert_pre(self, el, text, parent_tags):
        if el.get(TABLE_MARKER_ATTR) == "true":
            return f"\n\n```json\n{el.get_text().strip()}\n```\n\n"
        return super().convert_pre(el, text, parent_tags)

    def _convert_embed(self, el):
        src = el.get("src")
        if not src:
            source = el.find("source")
            src = source.get("src") if isinstance(source, Tag) else None
        if not src:
            return ""
        return f"\n\n[Embedded content: {src}]\n\n"

    def convert_iframe(self, el, text, parent_tags):
        return self._convert_embed(el)

    def convert_embed(self, el, text, parent_tags):
        return self._convert_embed(el)

    def convert_video(self, el, text, parent_tags):
        return self._convert_embed(el)


def prepare_html(html: str, base_url: str) -> str:
    """Make link and image URLs absolute and drop script/style elements."""
    soup = BeautifulSoup(html or "", "html.parser")
    for anchor in soup.find_all("a", href=True):
        absolute = to_absolute_url(anchor["href"], base_url)
        if absolute:
            anchor["href"] = absolute
    for img in soup.find_all("img", src=True):
        absolute = to_absolute_url(img["src"], base_url)
        if absolute:
            img["src"] = absolute
    for element in soup.find_all(["script", "style"]):
        element.decompose()

    if soup.body is not None:
        return soup.body.decode_contents()
    return soup.decode_contents()


def convert_html_to_markdown(
    html: str, base_url: str, *, strip_links: bool = False
) -> str:
    """Convert an HTML fragment to markdown.

    Args:
        html: Content fragment (tables and images already annotated)
        base_url: URL used to resolve relative links
        strip_links: Keep anchor text only, dropping hyperlinks

    Returns:
        Markdown text without leading/trailing blank lines
    """
    prepared = prepare_html(html, base_url)
    markdown = IntoMdMarkdownConverter(strip_links=strip_links).convert(prepared)
    return _EXCESS_BLANK_LINES.sub("\n\n", markdown).strip()
