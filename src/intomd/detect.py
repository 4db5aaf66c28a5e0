"""Heuristics that decide whether a statically fetched page needs rendering.

Detection runs in two independent stages so callers can short-circuit to the
headless browser before paying for main-content extraction:

- Stage 1 inspects the raw markup (empty SPA mount points, noscript warnings
  on an otherwise empty page).
- Stage 2 inspects the extracted main content (too little text and no
  structural tags).

Nothing here touches the network, and every function accepts arbitrary
markup without raising.

Example usage:
    from intomd.detect import DetectionStage, detect_need_for_browser

    verdict = detect_need_for_browser(raw_html, stage=DetectionStage.STAGE1)
    if verdict.should_fallback:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from bs4 import BeautifulSoup, Tag
from loguru import logger

from intomd.constants import (
    COOKIE_BANNER_MARKERS,
    LOADING_INDICATORS,
    SPA_ROOT_IDS,
    STAGE_1_BODY_TEXT_MIN,
    STAGE_2_CONTENT_MIN,
    STAGE_2_STRUCTURAL_TAGS,
)

REASON_EMPTY_ROOT = "Empty SPA root div detected"
REASON_NOSCRIPT = "Noscript with javascript and sparse body"
REASON_TOO_SPARSE = "Extracted content is too sparse"


class DetectionStage(Enum):
    """Which detection stage(s) to run."""

    STAGE1 = "stage1"
    STAGE2 = "stage2"
    BOTH = "both"


@dataclass(frozen=True)
class DetectionVerdict:
    """Outcome of a detection pass.

    Attributes:
        should_fallback: True if the page should be fetched with a headless browser
        reason: Human-readable cause, only set when should_fallback is True
    """

    should_fallback: bool
    reason: str | None = None


def _parse(html: str | None) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _strip_scripts(node: Tag) -> Tag:
    for element in node.find_all(["script", "style"]):
        element.decompose()
    return node


def _collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def _is_loading_indicator(text: str) -> bool:
    return text.strip().lower() in LOADING_INDICATORS


def _body_text_length(soup: BeautifulSoup) -> int:
    body = soup.body
    if body is None:
        # html.parser adds no implicit <body>; keep <head> text out of the count
        for name in ("head", "title"):
            for element in soup.find_all(name):
                element.decompose()
        body = soup
    return len(_collapse_whitespace(body.get_text()))



def get_body_text_length(html: str) -> int:
    """Count visible body characters (script/style removed, whitespace collapsed)."""
    return _body_text_length(_strip_scripts(_parse(html)))


def _has_meaningful_children(element: Tag) -> bool:
    for child in element.find_all(recursive=False):
        if child.name in ("script", "style"):
            continue
        child_text = child.get_text().strip()
        if child_text and not _is_loading_indicator(child_text):
            return True
    return False


def _find_empty_root(soup: BeautifulSoup) -> str | None:
    for root_id in SPA_ROOT_IDS:
        root = soup.find(id=root_id)
        if not isinstance(root, Tag):
            continue
        if _has_meaningful_children(root):
            continue
        text = root.get_text().strip()
        if not text or _is_loading_indicator(text):
            return root_id
    return None


def is_empty_root_div(html: str) -> bool:
    """Check for a known SPA mount point with no real content inside it."""
    return _find_empty_root(_strip_scripts(_parse(html))) is not None


def _inside_cookie_banner(element: Tag) -> bool:
    """Walk every ancestor looking for cookie/consent/banner containers."""
    for parent in element.parents:
        classes = parent.get("class") or []
        if isinstance(classes, str):
            classes = [classes]
        class_name = " ".join(classes).lower()
        element_id = str(parent.get("id") or "").lower()
        for marker in COOKIE_BANNER_MARKERS:
            if marker in class_name or marker in element_id:
                return True
    return False


def _has_noscript_and_sparse_body(soup: BeautifulSoup) -> bool:
    qualifying = False
    for noscript in soup.find_all("noscript"):
        if "javascript" not in noscript.get_text().lower():
            continue
        if _inside_cookie_banner(noscript):
            continue
        qualifying = True
        break

    if not qualifying:
        return False

    return _body_text_length(soup) < STAGE_1_BODY_TEXT_MIN


def has_noscript_and_sparse_body(html: str) -> bool:
    """Check for a JavaScript noscript warning on a page with little body text."""
    return _has_noscript_and_sparse_body(_strip_scripts(_parse(html)))


def is_content_too_sparse(extracted_html: str) -> bool:
    """Check if extracted content is short and has no structural tags."""
    soup = _parse(extracted_html)
    if len(soup.get_text().strip()) >= STAGE_2_CONTENT_MIN:
        return False
    return not any(soup.find(tag) for tag in STAGE_2_STRUCTURAL_TAGS)


def detect_need_for_browser(
    raw_html: str,
    extracted_html: str | None = None,
    *,
    raw: bool = False,
    stage: DetectionStage = DetectionStage.BOTH,
) -> DetectionVerdict:
    """Decide whether static markup is good enough or needs browser rendering.

    Args:
        raw_html: Markup exactly as returned by the static request
        extracted_html: Main-content fragment produced by extraction (optional)
        raw: Extraction was skipped by the caller, so Stage 2 never runs
        stage: Which stage(s) to evaluate

    Returns:
        DetectionVerdict describing whether to fall back and why
    """
    if stage is not DetectionStage.STAGE2:
        soup = _strip_scripts(_parse(raw_html))

        root_id = _find_empty_root(soup)
        if root_id is not None:
            logger.debug(f"[Detect] Empty SPA mount point: #{root_id}")
            return DetectionVerdict(True, REASON_EMPTY_ROOT)

        if _has_noscript_and_sparse_body(soup):
            return DetectionVerdict(True, REASON_NOSCRIPT)

    if stage is not DetectionStage.STAGE1 and not raw and extracted_html is not None:
        if is_content_too_sparse(extracted_html):
            return DetectionVerdict(True, REASON_TOO_SPARSE)

    return DetectionVerdict(False)
