"""Discovery of remote image references in markup documents."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from urllib.parse import urlsplit

from loguru import logger

from imglocal.constants import CONTEXT_LINES
from imglocal.exceptions import InvalidReferenceError
from imglocal.models import DocumentId, RemoteReference, TagKind

_REMOTE_SCHEMES = ("http", "https")


def normalize_url(url: str) -> str:
    """Return the dedup key for a remote URL.

    The key keeps scheme, host, path and query and drops the fragment. Scheme
    and host are lower-cased; path and query are kept as written.

    Raises:
        InvalidReferenceError: If url is not an absolute http(s) URL

    Examples:
        >>> normalize_url("HTTPS://CDN.Example.com/a/Hero.png?w=2#top")
        'https://cdn.example.com/a/Hero.png?w=2'
    """
    value = url.strip()
    try:
        parts = urlsplit(value)
    except ValueError as e:
        raise InvalidReferenceError(url, str(e)) from e

    scheme = parts.scheme.lower()
    if scheme not in _REMOTE_SCHEMES:
        raise InvalidReferenceError(url)
    if not parts.netloc or not parts.hostname:
        raise InvalidReferenceError(url, "missing host")
    if any(c.isspace() for c in value):
        raise InvalidReferenceError(url, "contains whitespace")

    key = f"{scheme}://{parts.netloc.lower()}{parts.path or '/'}"
    if parts.query:
        key = f"{key}?{parts.query}"
    return key


class ReferenceScanner:
    """Finds remote image references in one document's text.

    Three element classes are recognized, in priority order:

    - gallery elements (``<picture>``): every ``src``/``srcset`` URL inside,
      including each candidate of a multi-candidate ``srcset``
    - plain images (``<img>`` outside a gallery): ``src`` and ``srcset`` URLs
    - vectors: any absolute ``.svg`` URL anywhere in the text

    A URL occurrence is reported once, under the first class that claims it.
    """

    GALLERY_PATTERN = re.compile(r"<picture\b[^>]*>.*?</picture\s*>", re.IGNORECASE | re.DOTALL)
    IMG_TAG_PATTERN = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
    # Lookbehind keeps data-src / data-srcset out
    SOURCE_ATTR_PATTERN = re.compile(
        r"(?<![\w-])(src|srcset)\s*=\s*([\"'])(.*?)\2", re.IGNORECASE | re.DOTALL
    )
    SRCSET_CANDIDATE_PATTERN = re.compile(r"(?:^|,)\s*([^\s,]+)")
    # Query is kept; trailing sentence punctuation is not
    VECTOR_PATTERN = re.compile(
        r"https?://[^'\"\s<>()]+?\.svg\b(?:\?[^'\"\s<>()#]*[^'\"\s<>()#.,;:!])?",
        re.IGNORECASE,
    )

    def __init__(self, kinds: Iterable[TagKind] | None = None) -> None:
        """Initialize with the element kinds to report (default: all)."""
        self.kinds = frozenset(kinds) if kinds is not None else frozenset(TagKind)

    def scan(self, text: str, document_id: DocumentId) -> list[RemoteReference]:
        """Extract all remote references from text in document order.

        Invalid candidates (relative paths, data URIs, malformed URLs) are
        excluded without error.
        """
        found: list[tuple[int, int, str, TagKind]] = []
        claimed: list[tuple[int, int]] = []

        gallery_ranges = [m.span() for m in self.GALLERY_PATTERN.finditer(text)]

        for start, end in gallery_ranges:
            for span, url in self._source_urls(text, start, end):
                found.append((span[0], span[1], url, TagKind.GALLERY_ELEMENT))
                claimed.append(span)

        for match in self.IMG_TAG_PATTERN.finditer(text):
            if any(g_start <= match.start() < g_end for g_start, g_end in gallery_ranges):
                continue
            for span, url in self._source_urls(text, match.start(), match.end()):
                found.append((span[0], span[1], url, TagKind.PLAIN_IMAGE))
                claimed.append(span)

        for match in self.VECTOR_PATTERN.finditer(text):
            span = match.span()
            if any(span[0] < c_end and c_start < span[1] for c_start, c_end in claimed):
                continue
            found.append((span[0], span[1], match.group(0), TagKind.VECTOR))

        references: list[RemoteReference] = []
        for start, end, url, kind in sorted(found, key=lambda item: item[0]):
            if kind not in self.kinds:
                continue
            try:
                key = normalize_url(url)
            except InvalidReferenceError:
                continue
            references.append(
                RemoteReference(
                    url=url,
                    key=key,
                    span=(start, end),
                    tag_kind=kind,
                    document_id=document_id,
                    context=_context_for(text, start, end),
                )
            )

        if references:
            logger.debug(f"[Scan] {document_id}: {len(references)} remote reference(s)")
        return references

    def _source_urls(
        self, text: str, start: int, end: int
    ) -> Iterator[tuple[tuple[int, int], str]]:
        """Yield (span, url) for every src/srcset candidate in text[start:end]."""
        element = text[start:end]
        for attr in self.SOURCE_ATTR_PATTERN.finditer(element):
            value = attr.group(3)
            value_start = start + attr.start(3)
            if attr.group(1).lower() == "srcset":
                for candidate in self.SRCSET_CANDIDATE_PATTERN.finditer(value):
                    url_start = value_start + candidate.start(1)
                    yield (url_start, url_start + len(candidate.group(1))), candidate.group(1)
            else:
                stripped = value.strip()
                if not stripped:
                    continue
                url_start = value_start + value.index(stripped)
                yield (url_start, url_start + len(stripped)), stripped


def _context_for(text: str, start: int, end: int) -> str:
    """Return the lines around [start, end) for previews."""
    lines = text.split("\n")
    first = max(0, text.count("\n", 0, start) - CONTEXT_LINES)
    last = min(len(lines), text.count("\n", 0, end) + CONTEXT_LINES + 1)
    return "\n".join(lines[first:last]).strip()
