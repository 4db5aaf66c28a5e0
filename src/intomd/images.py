"""Image annotation: absolute sources and captions."""

from __future__ import annotations

from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

CAPTION_ATTR = "data-into-md-caption"


def to_absolute_url(url: str | None, base_url: str) -> str | None:
    """Resolve ``url`` against ``base_url``; unparseable URLs are returned as-is."""
    if not url:
        return None
    try:
        return urljoin(base_url, url)
    except ValueError:
        return url


def _image_caption(img: Tag) -> str | None:
    figure = img.find_parent("figure")
    if figure is not None:
        figcaption = figure.find("figcaption")
        if isinstance(figcaption, Tag):
            text = figcaption.get_text().strip()
            if text:
                return text
    title = img.get("title")
    if isinstance(title, str) and title.strip():
        return title.strip()
    return None


def annotate_images(html: str, base_url: str) -> str:
    """Make image sources absolute and record captions on each ``<img>``.

    The caption comes from the enclosing ``<figure>``'s ``<figcaption>`` or,
    failing that, the image's ``title`` attribute.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    for img in soup.find_all("img"):
        src = img.get("src")
        absolute = to_absolute_url(src if isinstance(src, str) else None, base_url)
        if absolute:
            img["src"] = absolute

        caption = _image_caption(img)
        if caption:
            img[CAPTION_ATTR] = caption

    if soup.body is not None:
        return soup.body.decode_contents()
    return soup.decode_contents()
