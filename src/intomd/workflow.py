"""URL to markdown conversion flow.

Ties the orchestrated fetch to the markdown pipeline:
fetch -> extract -> tables -> images -> markdown -> frontmatter.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from intomd.cache import FetchCache
from intomd.converter import convert_html_to_markdown
from intomd.extract import ExtractedContent, PageMetadata, extract_content
from intomd.fetch import FetchOptions, FetchOutcome, fetch_page, is_html_content_type
from intomd.fetch_playwright import InstallPrompt, Renderer
from intomd.frontmatter import build_frontmatter_dict, render_frontmatter
from intomd.images import annotate_images
from intomd.tables import convert_tables_to_json
from intomd.types import FetchMode


@dataclass
class ConversionResult:
    """Converted document plus the fetch outcome that produced it."""

    markdown: str
    outcome: FetchOutcome
    strategy_label: str
    metadata: PageMetadata

    @property
    def size_bytes(self) -> int:
        return len(self.markdown.encode("utf-8"))


def strategy_label(mode: FetchMode, outcome: FetchOutcome) -> str:
    """Label shown to the user: ``auto > static`` in auto mode, else the strategy."""
    if mode is FetchMode.AUTO:
        return f"auto > {outcome.strategy.value}"
    return outcome.strategy.value


def _extract(outcome: FetchOutcome, options: FetchOptions) -> ExtractedContent:
    # Reuse the extraction computed during detection when it matches the request
    if outcome.extracted is not None and not options.raw:
        return outcome.extracted
    return extract_content(
        outcome.html,
        outcome.final_url,
        raw=options.raw,
        exclude_selectors=options.exclude_selectors,
    )


def render_markdown(
    outcome: FetchOutcome, options: FetchOptions
) -> tuple[str, PageMetadata]:
    """Convert a fetch outcome into a markdown body and its page metadata."""
    if not is_html_content_type(outcome.content_type):
        logger.debug(f"[Workflow] Passing through {outcome.content_type} content")
        return outcome.html.strip(), PageMetadata(source=outcome.final_url)

    extracted = _extract(outcome, options)
    html = convert_tables_to_json(extracted.html)
    html = annotate_images(html, outcome.final_url)
    body = convert_html_to_markdown(
        html, outcome.final_url, strip_links=options.strip_links
    )
    return body, extracted.metadata


async def convert_url(
    url: str,
    mode: FetchMode,
    options: FetchOptions,
    *,
    cache: FetchCache | None = None,
    renderer: Renderer | None = None,
    confirm_install: InstallPrompt | None = None,
) -> ConversionResult:
    """Fetch ``url`` and convert it to markdown with YAML frontmatter.

    Args:
        url: URL to convert
        mode: Requested fetch mode
        options: Request options
        cache: Optional cache store
        renderer: Optional renderer override
        confirm_install: Browser install prompt (interactive sessions only)

    Returns:
        ConversionResult with the final document
    """
    outcome = await fetch_page(
        url,
        mode,
        options,
        cache=cache,
        renderer=renderer,
        confirm_install=confirm_install,
    )
    label = strategy_label(mode, outcome)

    body, metadata = render_markdown(outcome, options)
    frontmatter = build_frontmatter_dict(
        source=outcome.final_url,
        title=metadata.title,
        description=metadata.description,
        author=metadata.author,
        strategy=label,
    )
    markdown = f"{render_frontmatter(frontmatter)}\n\n{body}".strip()

    return ConversionResult(
        markdown=markdown,
        outcome=outcome,
        strategy_label=label,
        metadata=metadata,
    )
