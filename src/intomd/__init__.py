"""into-md: fetch a web page and convert its main content to Markdown."""

from __future__ import annotations

__version__ = "0.2.0"
