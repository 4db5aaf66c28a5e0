"""Netscape cookies.txt support.

A cookie file exported from a browser is turned into a ``Cookie`` header for
plain requests and into Playwright cookie records for headless rendering.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from intomd.exceptions import ConfigurationError

_HTTP_ONLY_PREFIX = "#HttpOnly_"


@dataclass
class CookieRecord:
    """A single cookie line."""

    domain: str
    path: str
    secure: bool
    expires: int
    name: str
    value: str
    http_only: bool = False

    def to_playwright(self) -> dict[str, Any]:
        """Return the dict shape accepted by ``BrowserContext.add_cookies``."""
        cookie: dict[str, Any] = {
            "name": self.name,
            "value": self.value,
            "domain": self.domain,
            "path": self.path or "/",
            "secure": self.secure,
            "httpOnly": self.http_only,
            "sameSite": "Lax",
        }
        # Playwright rejects 0 (session cookies are expressed as -1)
        cookie["expires"] = self.expires if self.expires > 0 else -1
        return cookie


@dataclass
class CookieJar:
    """Cookies parsed from a file."""

    header: str | None = None
    records: list[CookieRecord] = field(default_factory=list)


def parse_cookies_text(content: str) -> CookieJar:
    """Parse Netscape cookie file content.

    Lines are tab separated: domain, include-subdomains, path, secure,
    expires, name, value. Blank lines and comments are skipped; the
    ``#HttpOnly_`` domain prefix marks an HTTP-only cookie.
    """
    records: list[CookieRecord] = []
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped:
            continue

        http_only = False
        if stripped.startswith(_HTTP_ONLY_PREFIX):
            http_only = True
            stripped = stripped[len(_HTTP_ONLY_PREFIX) :]
        elif stripped.startswith("#"):
            continue

        parts = stripped.split("\t")
        if len(parts) < 7:
            continue
        domain, _subdomains, path, secure_flag, expires, name, value = parts[:7]
        try:
            expires_at = int(float(expires))
        except ValueError:
            expires_at = 0
        records.append(
            CookieRecord(
                domain=domain,
                path=path,
                secure=secure_flag.lower() == "true",
                expires=expires_at,
                name=name,
                value=value,
                http_only=http_only,
            )
        )

    header = "; ".join(f"{r.name}={r.value}" for r in records) or None
    return CookieJar(header=header, records=records)


def load_cookies(cookies_path: str | Path | None) -> CookieJar:
    """Load cookies from a file path (empty jar when no path is given).

    Raises:
        ConfigurationError: If the file cannot be read
    """
    if not cookies_path:
        return CookieJar()

    path = Path(cookies_path).expanduser()
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(
            f'Unable to read cookies file "{path.name}": {e}'
        ) from e
    return parse_cookies_text(content)
