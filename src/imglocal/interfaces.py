"""Collaborators the orchestrator depends on.

Default implementations live in ``documents.py`` (DocumentStore),
``cli/interactive.py`` (Prompter), ``tree.py`` (TreeCodec) and ``dialect.py``
(DialectSelector). Tests substitute in-memory versions.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Literal, Protocol

from imglocal.models import DocumentId, RewriteStrategy

if TYPE_CHECKING:
    from imglocal.orchestrator import UrlEntry
    from imglocal.tree import MarkupTree, PrologueNode


class _Cancelled(Enum):
    CANCELLED = "cancelled"

    def __repr__(self) -> str:
        return "CANCELLED"


# Returned by a Prompter when the user aborts
CANCELLED = _Cancelled.CANCELLED
Cancelled = Literal[_Cancelled.CANCELLED]


class DocumentStore(Protocol):
    async def read_text(self, document_id: DocumentId) -> str: ...

    async def apply_edit(self, document_id: DocumentId, text: str) -> None: ...

    def directory_of(self, document_id: DocumentId) -> Path: ...


class Prompter(Protocol):
    async def select_references(
        self, candidates: Sequence[UrlEntry]
    ) -> list[UrlEntry] | Cancelled: ...

    async def choose_directory(self, default: Path) -> Path | Cancelled: ...


class TreeCodec(Protocol):
    def parse_to_tree(self, text: str) -> MarkupTree: ...

    def serialize_from_tree(self, tree: MarkupTree) -> str: ...

    def find_prologue_node(self, tree: MarkupTree) -> PrologueNode | None: ...


class DialectSelector(Protocol):
    """Chooses the rewrite strategy per document."""

    assets_module: str
    component_imports: tuple[str, ...]

    def strategy_for(self, document_id: DocumentId) -> RewriteStrategy: ...
