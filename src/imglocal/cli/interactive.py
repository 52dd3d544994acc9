"""Interactive prompts for URL selection and the save directory."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import questionary

from imglocal.cli.ui import truncate
from imglocal.constants import DEFAULT_URL_PREVIEW_CHARS
from imglocal.interfaces import CANCELLED, Cancelled
from imglocal.orchestrator import UrlEntry

_STYLE = questionary.Style(
    [
        ("highlighted", "bold"),
        ("selected", "fg:cyan"),
    ]
)


def describe_entry(entry: UrlEntry) -> str:
    """Picker label: truncated URL plus the first referencing document."""
    documents = entry.documents
    where = Path(str(documents[0])).name if documents else "?"
    if len(documents) > 1:
        where = f"{where} (+{len(documents) - 1} more)"
    return f"{truncate(entry.url, DEFAULT_URL_PREVIEW_CHARS)}  in {where}"


class QuestionaryPrompter:
    """Prompter backed by questionary; with assume_yes every prompt takes its default."""

    def __init__(self, assume_yes: bool = False) -> None:
        self.assume_yes = assume_yes

    async def select_references(
        self, candidates: Sequence[UrlEntry]
    ) -> list[UrlEntry] | Cancelled:
        if self.assume_yes:
            return list(candidates)

        result = await questionary.checkbox(
            f"Found {len(candidates)} remote image(s). Select images to download:",
            choices=[
                questionary.Choice(describe_entry(entry), value=entry, checked=True)
                for entry in candidates
            ],
            style=_STYLE,
        ).ask_async()
        if result is None:
            return CANCELLED
        return list(result)

    async def choose_directory(self, default: Path) -> Path | Cancelled:
        if self.assume_yes:
            return default

        result = await questionary.path(
            "Save images to:",
            default=str(default),
            only_directories=True,
            style=_STYLE,
        ).ask_async()
        if result is None:
            return CANCELLED
        if not result.strip():
            return default
        return Path(result).expanduser().resolve()
