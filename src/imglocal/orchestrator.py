"""Batch orchestration: scan, select, download and rewrite across documents.

State transitions of one run:
    SCANNING -> AWAITING_SELECTION -> DOWNLOADING -> REWRITING -> DONE
                                   -> CANCELLED (user aborted, nothing written)

Fetches are sequential in scanner discovery order. A failed URL never stops
the run; it is left out of every document's bindings so documents that only
reference failed URLs stay byte-identical.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from imglocal.downloader import DownloadEngine, ProgressCallback
from imglocal.exceptions import FilesystemFailure
from imglocal.interfaces import (
    CANCELLED,
    DialectSelector,
    DocumentStore,
    Prompter,
    TreeCodec,
)
from imglocal.models import (
    DocumentId,
    DownloadOutcome,
    DownloadStatus,
    LocalBinding,
    RemoteReference,
    RunPhase,
    RunReport,
    TagKind,
)
from imglocal.rewriter import ReferenceRewriter
from imglocal.scanner import ReferenceScanner
from imglocal.tree import FrontmatterCodec
from imglocal.utils.naming import binding_name
from imglocal.utils.paths import local_relative_path


@dataclass
class UrlEntry:
    """One unique remote URL and every place it is referenced."""

    key: str
    url: str
    references: list[RemoteReference] = field(default_factory=list)

    @property
    def documents(self) -> list[DocumentId]:
        """Referencing documents in first-seen order."""
        return list(dict.fromkeys(ref.document_id for ref in self.references))

    @property
    def tag_kinds(self) -> list[TagKind]:
        return list(dict.fromkeys(ref.tag_kind for ref in self.references))

    def raw_urls_in(self, document_id: DocumentId) -> list[str]:
        """Spellings of this URL as written in one document."""
        return list(
            dict.fromkeys(ref.url for ref in self.references if ref.document_id == document_id)
        )


def merge_references(references: Sequence[RemoteReference]) -> dict[str, UrlEntry]:
    """Group references by normalized URL, keeping first-occurrence order."""
    entries: dict[str, UrlEntry] = {}
    for ref in references:
        entry = entries.get(ref.key)
        if entry is None:
            entry = entries[ref.key] = UrlEntry(key=ref.key, url=ref.url)
        entry.references.append(ref)
    return entries


ItemCallback = Callable[[int, int, UrlEntry], None]
OutcomeCallback = Callable[[UrlEntry, DownloadOutcome], None]


class LocalizationRun:
    """Runs the localization pipeline once over a set of documents.

    Usage:
        async with DownloadEngine(config.download) as engine:
            run = LocalizationRun(store, prompter, engine, dialect, default_dir=assets)
            report = await run.run(document_ids)
    """

    def __init__(
        self,
        store: DocumentStore,
        prompter: Prompter,
        engine: DownloadEngine,
        dialect: DialectSelector,
        *,
        default_dir: Path,
        scanner: ReferenceScanner | None = None,
        codec: TreeCodec | None = None,
        overwrite: bool | None = None,
        on_item: ItemCallback | None = None,
        on_bytes: ProgressCallback | None = None,
        on_outcome: OutcomeCallback | None = None,
    ) -> None:
        self.store = store
        self.prompter = prompter
        self.engine = engine
        self.dialect = dialect
        self.default_dir = default_dir
        self.scanner = scanner or ReferenceScanner()
        self.rewriter = ReferenceRewriter(
            codec or FrontmatterCodec(),
            assets_module=dialect.assets_module,
            component_imports=dialect.component_imports,
        )
        self.overwrite = overwrite
        self.on_item = on_item
        self.on_bytes = on_bytes
        self.on_outcome = on_outcome
        self.report = RunReport()
        self._texts: dict[DocumentId, str] = {}

    @property
    def phase(self) -> RunPhase:
        return self.report.phase

    def _enter(self, phase: RunPhase) -> None:
        logger.debug(f"[Run] {self.report.phase.value} -> {phase.value}")
        self.report.phase = phase

    def _record_document_failure(self, document_id: DocumentId, error: Exception) -> None:
        failure = (
            error
            if isinstance(error, FilesystemFailure)
            else FilesystemFailure(Path(str(document_id)), str(error))
        )
        logger.warning(f"[Run] {document_id}: {failure}")
        self.report.failures.append((str(document_id), str(failure)))

    async def scan(self, document_ids: Sequence[DocumentId]) -> dict[str, UrlEntry]:
        """Read every document and merge its references by normalized URL."""
        self._enter(RunPhase.SCANNING)
        references: list[RemoteReference] = []
        for document_id in document_ids:
            try:
                text = await self.store.read_text(document_id)
            except (OSError, UnicodeDecodeError, FilesystemFailure) as e:
                self._record_document_failure(document_id, e)
                continue
            self._texts[document_id] = text
            references.extend(self.scanner.scan(text, document_id))

        entries = merge_references(references)
        logger.info(
            f"[Scan] {len(references)} reference(s), {len(entries)} unique URL(s) "
            f"in {len(self._texts)} document(s)"
        )
        return entries

    async def run(self, document_ids: Sequence[DocumentId]) -> RunReport:
        """Execute the full pipeline and return the report."""
        entries = await self.scan(document_ids)
        if not entries:
            self._enter(RunPhase.DONE)
            return self.report

        self._enter(RunPhase.AWAITING_SELECTION)
        chosen = await self.prompter.select_references(list(entries.values()))
        if chosen is CANCELLED:
            logger.info("[Run] Cancelled during selection")
            self._enter(RunPhase.CANCELLED)
            return self.report
        if not chosen:
            logger.info("[Run] No URLs selected")
            self._enter(RunPhase.DONE)
            return self.report

        directory = await self.prompter.choose_directory(self.default_dir)
        if directory is CANCELLED:
            logger.info("[Run] Cancelled during directory selection")
            self._enter(RunPhase.CANCELLED)
            return self.report

        bindings = await self.download(chosen, Path(directory))
        await self.rewrite(bindings)
        self._enter(RunPhase.DONE)
        return self.report

    async def download(
        self, chosen: Sequence[UrlEntry], directory: Path
    ) -> dict[DocumentId, dict[str, LocalBinding]]:
        """Fetch each chosen URL once and derive per-document bindings.

        Returns:
            document id -> (URL as written -> LocalBinding)
        """
        self._enter(RunPhase.DOWNLOADING)
        summary = self.report.summary
        bindings: dict[DocumentId, dict[str, LocalBinding]] = {}

        for index, entry in enumerate(chosen, 1):
            if self.on_item is not None:
                self.on_item(index, len(chosen), entry)

            outcome = await self.engine.fetch(
                entry.url, directory, overwrite=self.overwrite, on_progress=self.on_bytes
            )
            self.report.outcomes[entry.key] = outcome
            if self.on_outcome is not None:
                self.on_outcome(entry, outcome)

            if outcome.status == DownloadStatus.DOWNLOADED:
                summary.succeeded += 1
            elif outcome.status == DownloadStatus.SKIPPED_EXISTING:
                summary.skipped_existing += 1
            else:
                summary.failed += 1
                self.report.failures.append((entry.url, outcome.error or "unknown error"))
                continue

            if not outcome.ok:
                continue
            name = binding_name(outcome.local_path)
            for document_id in entry.documents:
                relative = local_relative_path(
                    outcome.local_path, self.store.directory_of(document_id)
                )
                document_bindings = bindings.setdefault(document_id, {})
                for raw_url in entry.raw_urls_in(document_id):
                    document_bindings[raw_url] = LocalBinding(raw_url, name, relative)

        return bindings

    async def rewrite(self, bindings: dict[DocumentId, dict[str, LocalBinding]]) -> None:
        """Rewrite and persist every document that has at least one binding."""
        self._enter(RunPhase.REWRITING)
        for document_id, document_bindings in bindings.items():
            text = self._texts.get(document_id)
            if text is None or not document_bindings:
                continue

            strategy = self.dialect.strategy_for(document_id)
            result = self.rewriter.rewrite(document_id, text, document_bindings, strategy)
            self.report.collisions.extend(result.collisions)
            if not result.changed:
                continue

            try:
                await self.store.apply_edit(document_id, result.text)
            except (OSError, FilesystemFailure) as e:
                self._record_document_failure(document_id, e)
                continue
            self.report.updated_documents.append(document_id)
            self.report.summary.documents_updated += 1
            logger.info(f"[Rewrite] Updated {document_id}")
