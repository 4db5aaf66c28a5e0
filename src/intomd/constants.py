"""Centralized constants for into-md.

This module contains all hardcoded constants used throughout the codebase.
Grouping them here makes it easier to:
- Find and modify default values
- Understand detection thresholds at a glance
- Keep the cache schema version in one place
"""

from __future__ import annotations

# =============================================================================
# Render Detection
# =============================================================================

# Stage 1: body text below this (chars) counts as sparse when a JS noscript exists
STAGE_1_BODY_TEXT_MIN = 100

# Stage 2: extracted content below this (chars) without structure is too sparse
STAGE_2_CONTENT_MIN = 200

STAGE_2_STRUCTURAL_TAGS: tuple[str, ...] = (
    "article",
    "p",
    "pre",
    "li",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
)

# Mount points used by common SPA frameworks (React, Vue, Next, Nuxt, Svelte)
SPA_ROOT_IDS: tuple[str, ...] = ("root", "app", "__next", "__nuxt", "__svelte")

# Exact (case-insensitive) texts that still count as an empty mount point
LOADING_INDICATORS: tuple[str, ...] = ("loading", "loading...")

# Ancestors whose class/id contain these hold cookie notices, not page content
COOKIE_BANNER_MARKERS: tuple[str, ...] = ("cookie", "consent", "banner")

# Content types that are treated as markup and therefore auto-detected
HTML_CONTENT_TYPES: tuple[str, ...] = ("text/html", "application/xhtml+xml")

# =============================================================================
# Fetch Settings
# =============================================================================

DEFAULT_TIMEOUT_MS = 30000
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/119.0 Safari/537.36"
)

# Floor for the best-effort networkidle wait after the load event (ms)
MIN_NETWORK_IDLE_TIMEOUT_MS = 5000

PLAYWRIGHT_INSTALL_COMMAND = "python -m playwright install chromium"
PLAYWRIGHT_PACKAGE_INSTALL_COMMAND = "pip install playwright"

# Environment variables set by common CI providers
CI_ENV_VARS: tuple[str, ...] = (
    "CI",
    "GITHUB_ACTIONS",
    "GITLAB_CI",
    "BUILDKITE",
    "CIRCLECI",
    "JENKINS_URL",
    "TF_BUILD",
    "TEAMCITY_VERSION",
)

# =============================================================================
# Cache Settings
# =============================================================================

# Bump whenever the persisted entry shape changes; other versions read as misses
CACHE_SCHEMA_VERSION = 2
DEFAULT_CACHE_TTL_SECONDS = 60 * 60  # 1 hour
DEFAULT_CACHE_DIR = "~/.cache/into-md"

# =============================================================================
# Configuration & Logging
# =============================================================================

CONFIG_FILENAME = "intomd.json"
DEFAULT_USER_CONFIG_DIR = "~/.config/into-md"
DEFAULT_LOG_LEVEL = "DEBUG"
DEFAULT_LOG_DIR: str | None = None  # File logging disabled unless configured
DEFAULT_LOG_ROTATION = "10 MB"
DEFAULT_LOG_RETENTION = "7 days"

# =============================================================================
# Output
# =============================================================================

LARGE_OUTPUT_WARNING_BYTES = 100_000
