"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path

import httpx
import pytest

from imglocal.config import ConfigManager
from imglocal.interfaces import CANCELLED

# Minimal valid PNG header plus padding, enough to look like an image on disk
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 256

Route = tuple[int, dict[str, str], bytes]


# =============================================================================
# Environment Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep user config files and log directories out of tests."""
    monkeypatch.delenv("IMGLOCAL_CONFIG", raising=False)
    monkeypatch.setenv("IMGLOCAL_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setattr(ConfigManager, "DEFAULT_USER_CONFIG_DIR", tmp_path / "user-config")


# =============================================================================
# HTTP Fixtures
# =============================================================================


def make_transport(
    routes: dict[str, Route], calls: list[str] | None = None
) -> httpx.MockTransport:
    """Build a MockTransport answering from a url -> (status, headers, body) map.

    Unknown URLs answer 404. Every requested URL is appended to calls.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if calls is not None:
            calls.append(url)
        status, headers, body = routes.get(url, (404, {}, b"not found"))
        return httpx.Response(status, headers=headers, content=body)

    return httpx.MockTransport(handler)


# =============================================================================
# Collaborator Fakes
# =============================================================================


class InMemoryStore:
    """DocumentStore over a dict of path -> text."""

    def __init__(self, documents: dict[Path, str]) -> None:
        self.documents = dict(documents)
        self.writes: list[Path] = []

    async def read_text(self, document_id: Path) -> str:
        try:
            return self.documents[document_id]
        except KeyError:
            raise FileNotFoundError(document_id) from None

    async def apply_edit(self, document_id: Path, text: str) -> None:
        self.writes.append(document_id)
        self.documents[document_id] = text

    def directory_of(self, document_id: Path) -> Path:
        return document_id.parent


class StaticPrompter:
    """Prompter that answers without asking.

    Args:
        select: Predicate on URLs to keep; None keeps everything
        cancel_at: "selection" or "directory" to cancel at that prompt
        directory: Directory answered instead of the default
    """

    def __init__(
        self,
        select: Callable[[str], bool] | None = None,
        cancel_at: str | None = None,
        directory: Path | None = None,
    ) -> None:
        self.select = select
        self.cancel_at = cancel_at
        self.directory = directory
        self.offered: list[str] = []

    async def select_references(self, candidates: Sequence):
        self.offered = [entry.url for entry in candidates]
        if self.cancel_at == "selection":
            return CANCELLED
        return [e for e in candidates if self.select is None or self.select(e.url)]

    async def choose_directory(self, default: Path):
        if self.cancel_at == "directory":
            return CANCELLED
        return self.directory or default


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """An Astro project with an empty pages directory."""
    root = tmp_path / "site"
    (root / "src" / "pages").mkdir(parents=True)
    (root / "package.json").write_text('{"dependencies": {"astro": "^4.0.0"}}', encoding="utf-8")
    return root
