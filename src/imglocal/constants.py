"""Centralized constants for imglocal.

This module contains all hardcoded defaults used throughout the codebase.
Grouping them here makes it easier to:
- Find and modify default values
- Understand system limits at a glance
- Keep the config models and the CLI in agreement
"""

from __future__ import annotations

# =============================================================================
# Download Engine
# =============================================================================

DEFAULT_DOWNLOAD_TIMEOUT = 30.0  # seconds, per request
DEFAULT_MAX_REDIRECTS = 10
DEFAULT_CHUNK_SIZE = 64 * 1024  # bytes per streamed chunk
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; imglocal/0.3.0)"

# Statuses answered by re-issuing the request against the Location header
REDIRECT_STATUS_CODES: frozenset[int] = frozenset({301, 302, 303, 307, 308})

# Extension used when the URL path carries none
DEFAULT_IMAGE_EXTENSION = ".jpg"
DEFAULT_IMAGE_STEM = "image"

# Characters replaced by "_" in downloaded filenames (whitespace is handled too)
FILENAME_HOSTILE_CHARS = '<>:"/\\|?*'

# =============================================================================
# Binding Names
# =============================================================================

DEFAULT_BINDING_NAME = "image"
BINDING_DIGIT_PREFIX = "img"

# Identifiers that cannot be used as an import binding in the prologue language
RESERVED_BINDING_NAMES: frozenset[str] = frozenset(
    {
        "await",
        "break",
        "case",
        "catch",
        "class",
        "const",
        "continue",
        "debugger",
        "default",
        "delete",
        "do",
        "else",
        "enum",
        "export",
        "extends",
        "false",
        "finally",
        "for",
        "function",
        "if",
        "implements",
        "import",
        "in",
        "instanceof",
        "interface",
        "let",
        "new",
        "null",
        "package",
        "private",
        "protected",
        "public",
        "return",
        "static",
        "super",
        "switch",
        "this",
        "throw",
        "true",
        "try",
        "typeof",
        "var",
        "void",
        "while",
        "with",
        "yield",
    }
)

# =============================================================================
# Scanning
# =============================================================================

DEFAULT_SCAN_MAX_FILES = 10000
DEFAULT_SCAN_EXCLUDE: tuple[str, ...] = ("node_modules", ".git", "dist")
CONTEXT_LINES = 1  # Lines of context above/below a reference for previews

# Document patterns per project type
DOCUMENT_PATTERNS: dict[str, tuple[str, ...]] = {
    "astro": ("*.html", "*.astro"),
    "eleventy": ("*.html", "*.njk", "*.nunjucks"),
    "unknown": ("*.html",),
}

# =============================================================================
# Dialects
# =============================================================================

DEFAULT_ASSETS_DIR = "src/assets/images"
DEFAULT_ASSETS_MODULE = "astro:assets"
DEFAULT_IMPORT_SUFFIXES: tuple[str, ...] = (".astro",)

ASTRO_CONFIG_FILES: tuple[str, ...] = (
    "astro.config.js",
    "astro.config.mjs",
    "astro.config.ts",
    "astro.config.cjs",
)
ELEVENTY_CONFIG_FILES: tuple[str, ...] = (
    ".eleventy.js",
    "eleventy.config.js",
    "eleventy.config.cjs",
)
ELEVENTY_PACKAGES: tuple[str, ...] = (
    "@11ty/eleventy",
    "eleventy",
    "@codestitchofficial/eleventy-plugin-sharp-images",
)

# =============================================================================
# Logging
# =============================================================================

DEFAULT_LOG_LEVEL = "DEBUG"
DEFAULT_LOG_DIR = "~/.imglocal/logs"
DEFAULT_LOG_ROTATION = "10 MB"
DEFAULT_LOG_RETENTION = "7 days"

# =============================================================================
# UI / Display
# =============================================================================

DEFAULT_URL_PREVIEW_CHARS = 50
DEFAULT_JSON_INDENT = 2

# =============================================================================
# Paths and Filenames
# =============================================================================

CONFIG_FILENAME = "imglocal.json"
DEFAULT_USER_CONFIG_DIR = "~/.imglocal"
