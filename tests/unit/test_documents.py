"""Unit tests for document discovery and the filesystem store."""

from __future__ import annotations

from pathlib import Path

import pytest

from imglocal.documents import FileDocumentStore, atomic_write_text_async, discover_documents


def touch(path: Path, text: str = "<p/>") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class TestDiscoverDocuments:
    """Tests for discover_documents."""

    def test_matches_patterns_recursively(self, tmp_path: Path) -> None:
        touch(tmp_path / "index.html")
        touch(tmp_path / "src" / "pages" / "about.astro")
        touch(tmp_path / "src" / "styles.css")

        found = discover_documents(tmp_path, ["*.html", "*.astro"])

        assert found == sorted(
            [(tmp_path / "index.html").resolve(), (tmp_path / "src/pages/about.astro").resolve()]
        )

    def test_excluded_directories(self, tmp_path: Path) -> None:
        touch(tmp_path / "index.html")
        touch(tmp_path / "node_modules" / "pkg" / "readme.html")
        touch(tmp_path / "dist" / "index.html")

        found = discover_documents(tmp_path, ["*.html"])

        assert found == [(tmp_path / "index.html").resolve()]

    def test_max_files(self, tmp_path: Path) -> None:
        for i in range(5):
            touch(tmp_path / f"page{i}.html")

        assert len(discover_documents(tmp_path, ["*.html"], max_files=3)) == 3

    def test_single_file(self, tmp_path: Path) -> None:
        page = touch(tmp_path / "notes.txt")
        assert discover_documents(page, ["*.html"]) == [page.resolve()]


class TestFileDocumentStore:
    """Tests for FileDocumentStore."""

    @pytest.mark.asyncio
    async def test_crlf_preserved(self, tmp_path: Path) -> None:
        page = tmp_path / "index.html"
        page.write_bytes(b"<p>one</p>\r\n<p>two</p>\r\n")
        store = FileDocumentStore()

        text = await store.read_text(page)
        assert "\r\n" in text

        await store.apply_edit(page, text.replace("one", "1"))
        assert page.read_bytes() == b"<p>1</p>\r\n<p>two</p>\r\n"

    @pytest.mark.asyncio
    async def test_no_temp_files_left(self, tmp_path: Path) -> None:
        page = touch(tmp_path / "index.html")
        await FileDocumentStore().apply_edit(page, "<p>updated</p>")

        assert [p.name for p in tmp_path.iterdir()] == ["index.html"]
        assert page.read_text(encoding="utf-8") == "<p>updated</p>"

    def test_directory_of(self, tmp_path: Path) -> None:
        page = tmp_path / "src" / "index.html"
        assert FileDocumentStore().directory_of(page) == (tmp_path / "src").resolve()

    @pytest.mark.asyncio
    async def test_missing_document_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            await FileDocumentStore().read_text(tmp_path / "missing.html")

    @pytest.mark.asyncio
    async def test_atomic_write_creates_parent(self, tmp_path: Path) -> None:
        target = tmp_path / "new" / "dir" / "page.astro"
        await atomic_write_text_async(target, "---\n---\n")
        assert target.read_text(encoding="utf-8") == "---\n---\n"
