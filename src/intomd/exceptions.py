"""Custom exceptions for into-md.

Error Hierarchy:
    IntoMdError (base)
    ├── ConfigurationError (rejected before any I/O, never retried)
    └── FetchError (a fetch sequence failed)
        ├── FetchTimeoutError (static request or navigation timed out)
        └── RenderUnavailableError (headless rendering cannot run)
            ├── PlaywrightNotInstalledError (fatal, no prompt)
            └── BrowserNotInstalledError (recoverable by installing Chromium)

Cache read problems are never raised; they are treated as cache misses.
"""

from __future__ import annotations

from intomd.constants import (
    PLAYWRIGHT_INSTALL_COMMAND,
    PLAYWRIGHT_PACKAGE_INSTALL_COMMAND,
)


class IntoMdError(Exception):
    """Base exception class for into-md."""

    pass


class ConfigurationError(IntoMdError):
    """Invalid or conflicting options."""

    pass


class FetchError(IntoMdError):
    """Base exception for fetch errors."""

    pass


class FetchTimeoutError(FetchError):
    """Raised when a request or a browser navigation times out."""

    pass


class RenderUnavailableError(FetchError):
    """Headless rendering is required but cannot be performed."""

    def __init__(self, message: str, install_hint: str) -> None:
        self.message = message
        self.install_hint = install_hint
        super().__init__(f"{message} {install_hint}")


class PlaywrightNotInstalledError(RenderUnavailableError):
    """The playwright package itself cannot be imported."""

    def __init__(self) -> None:
        super().__init__(
            "Headless rendering requires playwright, which is not installed.",
            f"Install it with: {PLAYWRIGHT_PACKAGE_INSTALL_COMMAND} "
            f"&& {PLAYWRIGHT_INSTALL_COMMAND}",
        )


class BrowserNotInstalledError(RenderUnavailableError):
    """playwright is importable but no Chromium build is present."""

    def __init__(self, detail: str | None = None) -> None:
        message = "Chromium for playwright is not installed."
        if detail:
            message = f"{message} ({detail})"
        super().__init__(
            message,
            f"Install it with: {PLAYWRIGHT_INSTALL_COMMAND} "
            "(Linux: also run 'python -m playwright install-deps chromium')",
        )
