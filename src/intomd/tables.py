"""Convert HTML tables into JSON blocks.

Markdown tables cannot hold merged cells or multi-paragraph cells, so every
``<table>`` is replaced with a ``<pre data-into-md-table="true">`` element
whose text is a JSON document ``{caption?, headers, rows}``. The converter
turns those blocks into fenced ``json`` code.
"""

from __future__ import annotations

import json
from typing import Any

from bs4 import BeautifulSoup, Tag

TABLE_MARKER_ATTR = "data-into-md-table"


def _column_name(index: int) -> str:
    return f"Column {index + 1}"


def _cell_text(cell: Tag) -> str:
    return cell.get_text().strip()


def extract_headers(table: Tag) -> list[str]:
    """Header names from ``thead th``, else from the first row's cells."""
    explicit = table.select("thead th")
    if explicit:
        return [text for text in (_cell_text(th) for th in explicit) if text]

    first_row = table.find("tr")
    if isinstance(first_row, Tag):
        cells = first_row.find_all(["th", "td"])
        return [_cell_text(cell) or _column_name(i) for i, cell in enumerate(cells)]
    return []


def extract_rows(table: Tag, headers: list[str]) -> list[dict[str, str]]:
    """Data rows keyed by header name (``Column N`` past the known headers)."""
    body_rows = table.select("tbody tr")
    data_rows = body_rows if body_rows else table.find_all("tr")[1:]

    rows: list[dict[str, str]] = []
    for row in data_rows:
        cells = row.find_all(["td", "th"])
        if not cells:
            continue
        record: dict[str, str] = {}
        for index, cell in enumerate(cells):
            key = headers[index] if index < len(headers) else _column_name(index)
            record[key] = _cell_text(cell)
        rows.append(record)
    return rows


def table_to_json(table: Tag) -> dict[str, Any]:
    caption_tag = table.find("caption")
    caption = _cell_text(caption_tag) if isinstance(caption_tag, Tag) else ""
    headers = extract_headers(table)

    document: dict[str, Any] = {}
    if caption:
        document["caption"] = caption
    document["headers"] = headers
    document["rows"] = extract_rows(table, headers)
    return document


def _fragment_html(soup: BeautifulSoup) -> str:
    if soup.body is not None:
        return soup.body.decode_contents()
    return soup.decode_contents()


def convert_tables_to_json(html: str) -> str:
    """Replace every table in the fragment with a JSON ``<pre>`` block."""
    soup = BeautifulSoup(html or "", "html.parser")
    # Innermost first so nested tables are serialized inside their parent
    for table in reversed(soup.find_all("table")):
        pre = soup.new_tag("pre", attrs={TABLE_MARKER_ATTR: "true"})
        pre.string = json.dumps(table_to_json(table), indent=2, ensure_ascii=False)
        table.replace_with(pre)
    return _fragment_html(soup)
