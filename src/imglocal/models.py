"""Data model shared by the localization pipeline."""

from __future__ import annotations

from collections.abc import Hashable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from imglocal.exceptions import BindingCollisionError

# Documents are identified by whatever the document store hands out
# (the filesystem store uses resolved Paths).
DocumentId = Hashable


class TagKind(str, Enum):
    """Kind of markup element a remote reference was found in."""

    PLAIN_IMAGE = "plain-image"
    VECTOR = "vector"
    GALLERY_ELEMENT = "gallery-element"


class DownloadStatus(str, Enum):
    """Outcome of a single fetch."""

    DOWNLOADED = "downloaded"
    SKIPPED_EXISTING = "skipped-existing"
    FAILED = "failed"


class FailureKind(str, Enum):
    """Which part of a fetch failed."""

    NETWORK = "network"
    FILESYSTEM = "filesystem"


class RewriteStrategy(str, Enum):
    """How resolved assets are referenced from rewritten markup."""

    PATH = "path"
    IMPORT = "import"


class RunPhase(str, Enum):
    """State of a localization run.

    State transitions:
        SCANNING -> AWAITING_SELECTION -> DOWNLOADING -> REWRITING -> DONE
                                       -> CANCELLED
    """

    SCANNING = "scanning"
    AWAITING_SELECTION = "awaiting_selection"
    DOWNLOADING = "downloading"
    REWRITING = "rewriting"
    DONE = "done"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RemoteReference:
    """One occurrence of a remote URL inside a document.

    Attributes:
        url: The URL exactly as written in the document
        key: Normalized URL (scheme+host+path+query, no fragment) used for dedup
        span: (start, end) string offsets of the URL in the document text
        tag_kind: Element kind the URL was found in
        document_id: Document the reference belongs to
        context: Surrounding lines, for previews
    """

    url: str
    key: str
    span: tuple[int, int]
    tag_kind: TagKind
    document_id: DocumentId
    context: str = ""


@dataclass(frozen=True)
class DownloadOutcome:
    """Result of fetching one unique URL."""

    url: str
    status: DownloadStatus
    local_path: Path | None = None
    error: str | None = None
    failure: FailureKind | None = None
    status_code: int | None = None

    @property
    def ok(self) -> bool:
        """True when a local file is available for the URL."""
        return self.status != DownloadStatus.FAILED and self.local_path is not None


@dataclass(frozen=True)
class LocalBinding:
    """How one document refers to one downloaded asset."""

    url: str
    binding_name: str
    document_relative_path: str


@dataclass(frozen=True)
class PrologueEntry:
    """A single import queued for a prologue.

    Default entries produce ``import binding from "module";``; named entries
    merge ``binding`` into the braces of an existing ``module`` import.
    """

    binding_name: str
    module_path: str
    named: bool = False


class PrologueEdit:
    """Ordered, append-only set of imports queued for one document's prologue."""

    def __init__(self) -> None:
        self._entries: list[PrologueEntry] = []
        self._seen: set[tuple[str, str, bool]] = set()

    def add(self, binding_name: str, module_path: str) -> None:
        """Queue a default import; duplicates are ignored."""
        self._append(PrologueEntry(binding_name, module_path))

    def add_named(self, name: str, module_path: str) -> None:
        """Queue a named import merged into ``module_path``'s braces."""
        self._append(PrologueEntry(name, module_path, named=True))

    def _append(self, entry: PrologueEntry) -> None:
        marker = (entry.binding_name, entry.module_path, entry.named)
        if marker in self._seen:
            return
        self._seen.add(marker)
        self._entries.append(entry)

    def __iter__(self) -> Iterator[PrologueEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)


@dataclass(frozen=True)
class BindingCollision:
    """A binding name already bound to a different module in a prologue."""

    binding_name: str
    existing_module: str
    requested_module: str
    document_id: DocumentId | None = None

    def as_error(self) -> BindingCollisionError:
        return BindingCollisionError(
            self.binding_name, self.existing_module, self.requested_module
        )


@dataclass(frozen=True)
class Replacement:
    """A replacement span against a document's original text."""

    start: int
    end: int
    text: str


@dataclass
class Document:
    """A document's original text plus the replacements to apply to it.

    Replacements are always expressed against ``original``; ``materialize``
    applies them in a single pass so no replacement can shift another's offsets.
    """

    document_id: DocumentId
    original: str
    replacements: list[Replacement] = field(default_factory=list)

    def add(self, start: int, end: int, text: str) -> bool:
        """Queue a replacement unless it overlaps one already queued.

        Returns:
            True if the replacement was accepted
        """
        if start < 0 or end > len(self.original) or start >= end:
            raise ValueError(f"Invalid replacement span ({start}, {end})")
        for existing in self.replacements:
            if start < existing.end and existing.start < end:
                return False
        self.replacements.append(Replacement(start, end, text))
        return True

    def materialize(self) -> str:
        """Build the final text from the original and the queued replacements."""
        if not self.replacements:
            return self.original
        parts: list[str] = []
        cursor = 0
        for rep in sorted(self.replacements, key=lambda r: r.start):
            parts.append(self.original[cursor : rep.start])
            parts.append(rep.text)
            cursor = rep.end
        parts.append(self.original[cursor:])
        return "".join(parts)


@dataclass
class RunSummary:
    """Aggregate counts for presentation."""

    succeeded: int = 0
    skipped_existing: int = 0
    failed: int = 0
    documents_updated: int = 0


@dataclass
class RunReport:
    """Everything a run produced, for display and diagnostics.

    Attributes:
        summary: Aggregate counts
        failures: (url or document id, reason) pairs
        collisions: Binding collisions surfaced while rewriting
        outcomes: DownloadOutcome per normalized URL
        updated_documents: Documents whose text was replaced
        phase: Last phase reached
    """

    summary: RunSummary = field(default_factory=RunSummary)
    failures: list[tuple[str, str]] = field(default_factory=list)
    collisions: list[BindingCollision] = field(default_factory=list)
    outcomes: dict[str, DownloadOutcome] = field(default_factory=dict)
    updated_documents: list[Any] = field(default_factory=list)
    phase: RunPhase = RunPhase.SCANNING

    @property
    def cancelled(self) -> bool:
        return self.phase == RunPhase.CANCELLED
