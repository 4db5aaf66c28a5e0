"""YAML frontmatter for converted documents."""

from __future__ import annotations

from typing import Any

import yaml


def build_frontmatter_dict(
    *,
    source: str,
    title: str | None = None,
    description: str | None = None,
    author: str | None = None,
    strategy: str | None = None,
    extra_fields: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the ordered frontmatter fields, omitting empty values.

    Extra fields come first and can never override the known keys.
    """
    known = {
        "title": title,
        "description": description,
        "author": author,
        "strategy": strategy,
        "source": source,
    }
    result: dict[str, Any] = {}
    for key, value in (extra_fields or {}).items():
        if key not in known:
            result[key] = value
    for key, value in known.items():
        if value or key == "source":
            result[key] = value
    return result


def frontmatter_to_yaml(frontmatter: dict[str, Any]) -> str:
    """Convert frontmatter dict to YAML string (without --- markers)."""
    if not frontmatter:
        return ""
    return yaml.safe_dump(
        frontmatter,
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=False,
        width=1000,
    )


def render_frontmatter(frontmatter: dict[str, Any]) -> str:
    """Wrap the YAML block in --- markers."""
    return f"---\n{frontmatter_to_yaml(frontmatter)}---"
