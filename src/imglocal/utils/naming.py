"""Filename and binding-name derivation for downloaded assets."""

from __future__ import annotations

import re
from pathlib import PurePosixPath, PurePath
from urllib.parse import unquote, urlsplit

from imglocal.constants import (
    BINDING_DIGIT_PREFIX,
    DEFAULT_BINDING_NAME,
    DEFAULT_IMAGE_EXTENSION,
    DEFAULT_IMAGE_STEM,
    FILENAME_HOSTILE_CHARS,
    RESERVED_BINDING_NAMES,
)

_HOSTILE_PATTERN = re.compile(
    "[" + re.escape(FILENAME_HOSTILE_CHARS) + r"\s" + "]"
)
_NON_BINDING_CHARS = re.compile(r"[^A-Za-z0-9_-]")
_SEPARATOR_RUN = re.compile(r"[-_]+")


def sanitize_filename(name: str) -> str:
    """Replace path-hostile characters and whitespace with underscores.

    Sanitizing an already sanitized name returns it unchanged.

    Examples:
        >>> sanitize_filename("hero image?.png")
        'hero_image_.png'
    """
    name = "".join(c for c in name if ord(c) >= 32)
    return _HOSTILE_PATTERN.sub("_", name)


def candidate_filename(url: str) -> str:
    """Derive the local filename for a remote URL.

    Uses the last path segment (percent-decoded). A segment without an
    extension gets the default image extension; an empty segment becomes
    ``image.jpg``.

    Examples:
        >>> candidate_filename("https://cdn.example.com/a/b/hero.png?w=800")
        'hero.png'
        >>> candidate_filename("https://cdn.example.com/photo")
        'photo.jpg'
    """
    path = urlsplit(url).path
    segment = unquote(path.rsplit("/", 1)[-1])
    if not segment or segment in (".", ".."):
        segment = DEFAULT_IMAGE_STEM
    extension = PurePosixPath(segment).suffix
    stem = segment[: -len(extension)] if extension else segment
    return sanitize_filename(f"{stem}{extension or DEFAULT_IMAGE_EXTENSION}")


def binding_name(asset_path: PurePath | str) -> str:
    """Derive the import binding for an asset from its filename.

    Pure function of the path: the rewriter and the prologue inserter can each
    derive the same name without passing it around.

    Examples:
        >>> binding_name("/site/assets/Hero-Image.JPG")
        'heroImage'
        >>> binding_name("hero_image.jpg")
        'heroImage'
        >>> binding_name("123abc.png")
        'img123abc'
    """
    stem = PurePath(str(asset_path).replace("\\", "/")).stem
    cleaned = _NON_BINDING_CHARS.sub("", stem)
    parts = [part for part in _SEPARATOR_RUN.split(cleaned) if part]
    if not parts:
        return DEFAULT_BINDING_NAME

    head = parts[0][0].lower() + parts[0][1:]
    name = head + "".join(part[0].upper() + part[1:] for part in parts[1:])

    if name[0].isdigit() or name in RESERVED_BINDING_NAMES:
        name = BINDING_DIGIT_PREFIX + name[0].upper() + name[1:]
    return name
