"""Document discovery and the filesystem document store."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

import aiofiles
import aiofiles.os
from loguru import logger

from imglocal.constants import DEFAULT_SCAN_EXCLUDE, DEFAULT_SCAN_MAX_FILES
from imglocal.models import DocumentId


def discover_documents(
    input_path: Path,
    patterns: Iterable[str],
    exclude: Iterable[str] = DEFAULT_SCAN_EXCLUDE,
    max_files: int = DEFAULT_SCAN_MAX_FILES,
) -> list[Path]:
    """
    Discover documents to localize.

    Args:
        input_path: A single document or a directory to search recursively
        patterns: Glob patterns of document names (e.g., "*.astro")
        exclude: Directory names skipped anywhere in the tree
        max_files: Stop after this many documents

    Returns:
        Sorted list of resolved document paths
    """
    if input_path.is_file():
        return [input_path.resolve()]

    root = input_path.resolve()
    excluded = set(exclude)
    files: set[Path] = set()

    for pattern in patterns:
        # Linux glob is case-sensitive
        for variant in {pattern, pattern.upper()}:
            for candidate in root.rglob(variant):
                relative = candidate.relative_to(root)
                if excluded.intersection(relative.parts[:-1]) or not candidate.is_file():
                    continue
                if len(files) >= max_files:
                    logger.warning(
                        f"Reached scan max_files={max_files}, stopping document discovery"
                    )
                    return sorted(files)
                files.add(candidate)

    return sorted(files)


async def atomic_write_text_async(
    path: Path,
    content: str,
    encoding: str = "utf-8",
) -> None:
    """Write text to file atomically using temp file + rename.

    Args:
        path: Target file path
        content: Text content to write
        encoding: Text encoding (default: utf-8)
    """
    path = Path(path)
    parent = path.parent
    parent.mkdir(parents=True, exist_ok=True)

    # Same directory as the target so the rename stays on one filesystem
    fd, tmp_path = tempfile.mkstemp(
        suffix=".tmp",
        prefix=f".{path.name}.",
        dir=parent,
    )
    try:
        os.close(fd)
        # newline="" keeps the document's own line endings
        async with aiofiles.open(tmp_path, "w", encoding=encoding, newline="") as f:
            await f.write(content)
        await aiofiles.os.replace(tmp_path, path)
    except BaseException:
        try:
            await aiofiles.os.remove(tmp_path)
        except OSError:
            pass
        raise


class FileDocumentStore:
    """DocumentStore over the local filesystem; document ids are Paths."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    async def read_text(self, document_id: DocumentId) -> str:
        async with aiofiles.open(
            Path(str(document_id)), encoding=self.encoding, newline=""
        ) as f:
            return await f.read()

    async def apply_edit(self, document_id: DocumentId, text: str) -> None:
        await atomic_write_text_async(Path(str(document_id)), text, self.encoding)
        logger.debug(f"[Documents] Wrote {document_id}")

    def directory_of(self, document_id: DocumentId) -> Path:
        return Path(str(document_id)).resolve().parent
