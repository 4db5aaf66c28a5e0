"""Command-line interface for into-md."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

# Load .env file from current directory and parent directories
load_dotenv()

from loguru import logger  # noqa: E402

from intomd.cache import FetchCache  # noqa: E402
from intomd.cli import ui  # noqa: E402
from intomd.cli.logging_config import print_version, setup_logging  # noqa: E402
from intomd.config import ConfigManager  # noqa: E402
from intomd.constants import LARGE_OUTPUT_WARNING_BYTES  # noqa: E402
from intomd.exceptions import IntoMdError, RenderUnavailableError  # noqa: E402
from intomd.fetch import FetchOptions, resolve_mode  # noqa: E402
from intomd.fetch_playwright import auto_deny, is_interactive_session  # noqa: E402
from intomd.utils.files import atomic_write_text  # noqa: E402
from intomd.workflow import convert_url  # noqa: E402


def confirm_browser_install(message: str) -> bool:
    """Interactive install prompt backed by click.confirm (asks on stderr)."""
    return click.confirm(message, default=True, err=True)


def parse_selectors(exclude: str | None) -> list[str]:
    """Split a comma-separated selector list, dropping blanks."""
    if not exclude:
        return []
    return [selector.strip() for selector in exclude.split(",") if selector.strip()]


def _fail(message: str, detail: str | None = None) -> None:
    ui.error(message, detail=detail)
    raise SystemExit(1)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("url")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write output to file instead of stdout.",
)
@click.option(
    "--js", "force_render", is_flag=True, help="Force headless browser rendering."
)
@click.option(
    "--no-js",
    "force_static",
    is_flag=True,
    help="Force static HTTP fetch (no browser).",
)
@click.option(
    "--raw", is_flag=True, help="Skip content extraction, convert entire HTML."
)
@click.option(
    "--cookies",
    "cookies_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to cookies file (Netscape format) for authenticated requests.",
)
@click.option("--user-agent", default=None, help="Custom User-Agent header.")
@click.option(
    "--encoding",
    default=None,
    help="Force character encoding (auto-detected by default).",
)
@click.option(
    "--strip-links", is_flag=True, help="Remove hyperlinks, keep only anchor text."
)
@click.option(
    "--exclude",
    default=None,
    help="CSS selectors to exclude (comma-separated).",
)
@click.option(
    "--timeout",
    "timeout_ms",
    type=click.IntRange(min=1),
    default=None,
    help="Request timeout in milliseconds.",
)
@click.option("--no-cache", is_flag=True, help="Bypass response cache.")
@click.option(
    "--verbose", "-v", is_flag=True, help="Show detailed progress information."
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to configuration file.",
)
@click.option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
def app(
    url: str,
    output: Path | None,
    force_render: bool,
    force_static: bool,
    raw: bool,
    cookies_path: str | None,
    user_agent: str | None,
    encoding: str | None,
    strip_links: bool,
    exclude: str | None,
    timeout_ms: int | None,
    no_cache: bool,
    verbose: bool,
    config_path: Path | None,
) -> None:
    """Fetch a web page and convert its content to markdown."""
    try:
        mode = resolve_mode(force_static=force_static, force_render=force_render)
        cfg = ConfigManager().load(config_path)
    except IntoMdError as e:
        _fail(str(e))
        return

    setup_logging(
        verbose=verbose,
        log_dir=cfg.log.dir,
        log_level=cfg.log.level,
        rotation=cfg.log.rotation,
        retention=cfg.log.retention,
    )

    options = FetchOptions(
        cookies_path=cookies_path,
        user_agent=user_agent or cfg.fetch.user_agent,
        encoding=encoding,
        timeout_ms=timeout_ms or cfg.fetch.timeout_ms,
        use_cache=cfg.cache.enabled and not no_cache,
        raw=raw,
        exclude_selectors=parse_selectors(exclude),
        strip_links=strip_links,
    )
    cache = (
        FetchCache(cfg.cache.path, cfg.cache.ttl_seconds) if options.use_cache else None
    )
    confirm_install = (
        confirm_browser_install if is_interactive_session() else auto_deny
    )

    logger.info(f"Starting into-md ({mode.value} mode): {url}")
    try:
        result = asyncio.run(
            convert_url(
                url,
                mode,
                options,
                cache=cache,
                confirm_install=confirm_install,
            )
        )
    except RenderUnavailableError as e:
        _fail(e.message, detail=e.install_hint)
        return
    except IntoMdError as e:
        _fail(str(e))
        return
    except Exception as e:
        logger.opt(exception=True).debug("Unexpected failure")
        _fail(f"Unexpected error: {e}")
        return

    ui.strategy(result.strategy_label)

    if output is not None:
        try:
            atomic_write_text(output, result.markdown)
        except OSError as e:
            _fail(f"Unable to write {output}: {e}")
            return
        logger.info(f"Saved to {output}")
    else:
        click.echo(result.markdown)

    if result.size_bytes > LARGE_OUTPUT_WARNING_BYTES:
        ui.warning(
            f"Output is {round(result.size_bytes / 1024)}KB. "
            "Large documents may exceed LLM context limits."
        )


def main() -> None:
    """Console script entry point."""
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")
    app()


if __name__ == "__main__":
    main()
