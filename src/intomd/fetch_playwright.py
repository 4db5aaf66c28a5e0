"""Playwright-based headless rendering backend.

Rendering is delegated entirely to Playwright's Chromium. This module owns the
capability check (package importable, browser binary on disk), the optional
interactive install, and the navigation sequence itself.

Usage:
    from intomd.fetch_playwright import PlaywrightRenderer, ensure_render_capability

    await ensure_render_capability(confirm_install=None)
    async with PlaywrightRenderer() as renderer:
        result = await renderer.render(url, options)
"""

from __future__ import annotations

import asyncio
import os
import subprocess
import sys
from collections.abc import Callable
from dataclasses import dataclass
from importlib.util import find_spec
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from loguru import logger

from intomd.constants import (
    CI_ENV_VARS,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_USER_AGENT,
    MIN_NETWORK_IDLE_TIMEOUT_MS,
    PLAYWRIGHT_INSTALL_COMMAND,
)
from intomd.cookies import load_cookies
from intomd.exceptions import (
    BrowserNotInstalledError,
    FetchError,
    FetchTimeoutError,
    PlaywrightNotInstalledError,
)

if TYPE_CHECKING:
    from intomd.fetch import FetchOptions

# Receives the question text, returns True to install Chromium
InstallPrompt = Callable[[str], bool]


def auto_deny(message: str) -> bool:
    """Install prompt for batch contexts: always declines."""
    logger.debug(f"[Playwright] Auto-declined install prompt: {message}")
    return False


def is_playwright_available() -> bool:
    """Check if playwright is installed.

    Returns:
        True if playwright can be imported
    """
    return find_spec("playwright") is not None


def is_playwright_browser_installed() -> bool:
    """Check if Playwright's Chromium is installed.

    Looks for the executable on disk without launching it. Not cached, so a
    browser installed mid-session is picked up by the next call.
    """
    if not is_playwright_available():
        return False
    return _check_chromium_paths()


def _browser_base_paths() -> list[Path]:
    override = os.environ.get("PLAYWRIGHT_BROWSERS_PATH")
    if override and override != "0":
        return [Path(override).expanduser()]

    if sys.platform == "win32":
        return [
            Path(os.environ.get("LOCALAPPDATA", "")) / "ms-playwright",
            Path.home() / "AppData" / "Local" / "ms-playwright",
        ]
    if sys.platform == "darwin":
        return [Path.home() / "Library" / "Caches" / "ms-playwright"]
    return [Path.home() / ".cache" / "ms-playwright"]


def _executable_candidates(browser_dir: Path) -> list[Path]:
    if sys.platform == "win32":
        return [
            browser_dir / "chrome-win64" / "chrome.exe",
            browser_dir / "chrome-win" / "chrome.exe",
            browser_dir / "chrome-win" / "headless_shell.exe",
            browser_dir / "chrome-headless-shell-win64" / "chrome-headless-shell.exe",
        ]
    if sys.platform == "darwin":
        app = Path("Chromium.app") / "Contents" / "MacOS" / "Chromium"
        return [
            browser_dir / "chrome-mac" / app,
            browser_dir / "chrome-mac-arm64" / app,
            browser_dir / "chrome-mac" / "headless_shell",
            browser_dir / "chrome-headless-shell-mac-arm64" / "chrome-headless-shell",
            browser_dir / "chrome-headless-shell-mac-x64" / "chrome-headless-shell",
        ]
    return [
        browser_dir / "chrome-linux64" / "chrome",
        browser_dir / "chrome-linux" / "chrome",
        browser_dir / "chrome-linux" / "headless_shell",
        browser_dir / "chrome-headless-shell-linux64" / "chrome-headless-shell",
    ]


def _check_chromium_paths() -> bool:
    for base in _browser_base_paths():
        if not base.exists():
            continue
        browser_dirs = [
            *base.glob("chromium-*"),
            *base.glob("chromium_headless_shell-*"),
        ]
        for browser_dir in browser_dirs:
            for exe in _executable_candidates(browser_dir):
                if exe.exists():
                    logger.debug(f"[Playwright] Found Chromium at: {exe}")
                    return True
    return False


def is_ci_environment() -> bool:
    """Check for environment variables set by common CI providers."""
    for name in CI_ENV_VARS:
        value = os.environ.get(name)
        if value and value.lower() not in ("0", "false"):
            return True
    return False


def is_interactive_session() -> bool:
    """True when attached to a terminal outside CI, so prompting cannot hang."""
    try:
        interactive = sys.stdin.isatty() and sys.stderr.isatty()
    except (AttributeError, ValueError):
        return False
    return interactive and not is_ci_environment()


def install_browser() -> bool:
    """Install Playwright's Chromium with the running interpreter.

    Returns:
        True if the install command succeeded
    """
    cmd = [sys.executable, "-m", "playwright", "install", "chromium"]
    logger.info(f"[Playwright] Running: {' '.join(cmd)}")
    try:
        proc = subprocess.run(cmd, check=False)
    except OSError as e:
        logger.warning(f"[Playwright] Install failed to start: {e}")
        return False
    if proc.returncode != 0:
        logger.warning(f"[Playwright] Install exited with status {proc.returncode}")
        return False
    return True


async def ensure_render_capability(
    confirm_install: InstallPrompt | None = None,
) -> None:
    """Verify headless rendering can run, installing Chromium if allowed.

    Args:
        confirm_install: Prompt used when the browser binary is missing. Only
            consulted in an interactive, non-CI session.

    Raises:
        PlaywrightNotInstalledError: playwright cannot be imported (never prompts)
        BrowserNotInstalledError: Chromium is missing and was not installed
    """
    if not is_playwright_available():
        raise PlaywrightNotInstalledError()

    if is_playwright_browser_installed():
        return

    if confirm_install is None or not is_interactive_session():
        raise BrowserNotInstalledError()

    question = (
        "Headless rendering needs Chromium for playwright, which is not installed. "
        f"Install it now ({PLAYWRIGHT_INSTALL_COMMAND})?"
    )
    confirmed = await asyncio.to_thread(confirm_install, question)
    if not confirmed:
        raise BrowserNotInstalledError("installation declined")

    installed = await asyncio.to_thread(install_browser)
    if not installed or not is_playwright_browser_installed():
        raise BrowserNotInstalledError("automatic installation failed")


@dataclass
class RenderResult:
    """Result from a headless render."""

    html: str
    final_url: str


class Renderer(Protocol):
    """Anything that can render a URL to markup."""

    async def render(self, url: str, options: FetchOptions) -> RenderResult: ...


class PlaywrightRenderer:
    """Headless Chromium renderer.

    The browser is launched lazily on first render and closed by ``close()``
    or on leaving the ``async with`` block.
    """

    def __init__(self) -> None:
        self._playwright: Any = None
        self._browser: Any = None
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> PlaywrightRenderer:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_browser(self) -> Any:
        if self._browser is not None:
            return self._browser

        from playwright.async_api import Error as PlaywrightError
        from playwright.async_api import async_playwright

        async with self._lock:
            if self._browser is not None:
                return self._browser

            try:
                self._playwright = await async_playwright().start()
            except PlaywrightError as e:
                raise FetchError(f"failed to start Playwright: {e}") from e
            try:
                self._browser = await self._playwright.chromium.launch(headless=True)
            except PlaywrightError as e:
                await self._playwright.stop()
                self._playwright = None
                raise BrowserNotInstalledError(f"failed to launch Chromium: {e}") from e
            return self._browser

    async def render(self, url: str, options: FetchOptions) -> RenderResult:
        """Navigate to ``url`` and return the rendered markup.

        Waits for the load event, then makes a best-effort wait for network
        idle with a shorter timeout; if that second wait times out, whatever
        is present after load is used.

        Raises:
            FetchTimeoutError: Navigation did not reach the load event in time
            FetchError: Any other browser failure
        """
        from playwright.async_api import Error as PlaywrightError
        from playwright.async_api import TimeoutError as PlaywrightTimeoutError

        timeout_ms = options.timeout_ms or DEFAULT_TIMEOUT_MS
        idle_timeout_ms = max(timeout_ms // 2, MIN_NETWORK_IDLE_TIMEOUT_MS)
        jar = load_cookies(options.cookies_path)

        browser = await self._ensure_browser()
        try:
            context = await browser.new_context(
                user_agent=options.user_agent or DEFAULT_USER_AGENT
            )
        except PlaywrightError as e:
            raise FetchError(f"Render failed: {e}") from e
        try:
            if jar.records:
                await context.add_cookies([r.to_playwright() for r in jar.records])
            page = await context.new_page()

            try:
                await page.goto(url, wait_until="load", timeout=timeout_ms)
            except PlaywrightTimeoutError as e:
                raise FetchTimeoutError(f"Navigation timed out: {url}") from e

            try:
                await page.wait_for_load_state("networkidle", timeout=idle_timeout_ms)
            except PlaywrightTimeoutError:
                logger.debug(
                    f"[Playwright] networkidle not reached within {idle_timeout_ms}ms, "
                    "using content after load"
                )

            html = await page.content()
            return RenderResult(html=html, final_url=page.url or url)
        except PlaywrightError as e:
            raise FetchError(f"Render failed: {e}") from e
        finally:
            await context.close()

    async def close(self) -> None:
        """Close browser and playwright instances."""
        async with self._lock:
            if self._browser:
                await self._browser.close()
                self._browser = None
            if self._playwright:
                await self._playwright.stop()
                self._playwright = None
