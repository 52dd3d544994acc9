"""Command-line interface for imglocal."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import click
from dotenv import load_dotenv

# Load .env file from current directory and parent directories
load_dotenv()

from loguru import logger
from pydantic import BaseModel
from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.syntax import Syntax
from rich.table import Table

from imglocal.cli import ui
from imglocal.cli.console import get_console, get_stderr_console
from imglocal.cli.interactive import QuestionaryPrompter
from imglocal.cli.logging_config import ConsoleLogPause, print_version, setup_logging
from imglocal.config import ConfigManager, EnvVarNotFoundError, LocalizerConfig
from imglocal.constants import DEFAULT_JSON_INDENT, DEFAULT_URL_PREVIEW_CHARS
from imglocal.dialect import Dialect, find_project_root
from imglocal.documents import FileDocumentStore, discover_documents
from imglocal.downloader import DownloadEngine
from imglocal.exceptions import ConfigurationError
from imglocal.models import DownloadOutcome, DownloadStatus, RunReport, TagKind
from imglocal.orchestrator import LocalizationRun, UrlEntry, merge_references
from imglocal.scanner import ReferenceScanner
from imglocal.utils.naming import candidate_filename
from imglocal.utils.paths import default_assets_dir


class _DownloadDisplay:
    """Rich progress for sequential downloads, started at the first fetch.

    Started lazily so it never overlaps the interactive prompts.
    """

    def __init__(self, console: Console) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        )
        self._task: Any = None
        self._started = False

    def on_item(self, index: int, total: int, entry: UrlEntry) -> None:
        if not self._started:
            self.progress.start()
            self._started = True
        if self._task is not None:
            self.progress.remove_task(self._task)
        name = ui.truncate(candidate_filename(entry.url), 40)
        self._task = self.progress.add_task(f"[cyan]{index}/{total}[/] {name}", total=None)

    def on_bytes(self, downloaded: int, total: int) -> None:
        if self._task is not None:
            self.progress.update(self._task, completed=downloaded, total=total or None)

    def on_outcome(self, entry: UrlEntry, outcome: DownloadOutcome) -> None:
        console = self.progress.console
        name = outcome.local_path.name if outcome.local_path else entry.url
        if outcome.status == DownloadStatus.DOWNLOADED:
            ui.success(name, console=console)
        elif outcome.status == DownloadStatus.SKIPPED_EXISTING:
            ui.skipped(f"{name} (already exists)", console=console)
        else:
            ui.error(ui.truncate(entry.url, DEFAULT_URL_PREVIEW_CHARS), detail=outcome.error, console=console)

    def close(self) -> None:
        if self._started:
            self.progress.stop()


def _resolve_root(path: Path, root: Path | None) -> Path:
    return root.resolve() if root else find_project_root(path)


def _make_scanner(cfg: LocalizerConfig) -> ReferenceScanner:
    if cfg.scan.include_vectors:
        return ReferenceScanner()
    return ReferenceScanner(kinds=[TagKind.GALLERY_ELEMENT, TagKind.PLAIN_IMAGE])


def _discover(path: Path, cfg: LocalizerConfig, dialect: Dialect) -> list[Path]:
    documents = discover_documents(
        path, dialect.document_patterns, cfg.scan.exclude, cfg.scan.max_files
    )
    logger.debug(f"[CLI] {len(documents)} document(s) under {path}")
    return documents


# =============================================================================
# Main CLI app
# =============================================================================


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to configuration file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Show every progress message.")
@click.option("--quiet", "-q", is_flag=True, help="Disable console logging.")
@click.option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@click.pass_context
def app(ctx: click.Context, config_path: Path | None, verbose: bool, quiet: bool) -> None:
    """Download remote images referenced by site documents and point the documents at the local copies."""
    manager = ConfigManager()
    try:
        cfg = manager.load(config_path)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    console_handler_id, _ = setup_logging(
        verbose=verbose,
        log_dir=cfg.log.dir,
        log_level=cfg.log.level,
        rotation=cfg.log.rotation,
        retention=cfg.log.retention,
        quiet=quiet,
    )
    if manager.config_path:
        logger.debug(f"[CLI] Loaded config from {manager.config_path}")
    ctx.obj = {"manager": manager, "log_handler": console_handler_id, "verbose": verbose}


@app.command()
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: nearest directory with package.json).",
)
@click.option("--no-vectors", is_flag=True, help="Ignore standalone .svg URLs.")
@click.pass_context
def scan(ctx: click.Context, path: Path, root: Path | None, no_vectors: bool) -> None:
    """List the remote image references found under PATH."""
    manager: ConfigManager = ctx.obj["manager"]
    if no_vectors:
        manager.set("scan.include_vectors", False)
    cfg = manager.config

    dialect = Dialect.from_config(_resolve_root(path, root), cfg.dialect)
    documents = _discover(path, cfg, dialect)
    store = FileDocumentStore()
    scanner = _make_scanner(cfg)

    async def _scan() -> dict[str, UrlEntry]:
        references = []
        for document in documents:
            try:
                text = await store.read_text(document)
            except (OSError, UnicodeDecodeError) as e:
                ui.warning(f"Cannot read {document}", detail=str(e))
                continue
            references.extend(scanner.scan(text, document))
        return merge_references(references)

    entries = asyncio.run(_scan())
    console = get_console()
    if not entries:
        ui.info("No remote images found.")
        return

    table = Table(title=f"Remote images ({len(entries)})", show_header=True)
    table.add_column("URL", style="cyan", overflow="fold")
    table.add_column("Kind", style="green")
    table.add_column("Documents", style="white")
    for entry in entries.values():
        table.add_row(
            entry.url,
            ", ".join(kind.value for kind in entry.tag_kinds),
            "\n".join(Path(str(d)).name for d in entry.documents),
        )
    console.print(table)


@app.command()
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--assets-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory to save images to (default: assets.dir under the project root).",
)
@click.option(
    "--strategy",
    type=click.Choice(["auto", "path", "import"], case_sensitive=False),
    default=None,
    help="Rewrite strategy (auto: import for component documents, path otherwise).",
)
@click.option("--yes", "-y", is_flag=True, help="Localize every URL without prompting.")
@click.option(
    "--overwrite/--no-overwrite",
    default=None,
    help="Replace files that already exist in the assets directory.",
)
@click.option("--no-vectors", is_flag=True, help="Ignore standalone .svg URLs.")
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: nearest directory with package.json).",
)
@click.pass_context
def localize(
    ctx: click.Context,
    path: Path,
    assets_dir: Path | None,
    strategy: str | None,
    yes: bool,
    overwrite: bool | None,
    no_vectors: bool,
    root: Path | None,
) -> None:
    """Download remote images under PATH and rewrite references to local files."""
    manager: ConfigManager = ctx.obj["manager"]
    manager.merge_cli_args(
        **{
            "dialect.strategy": strategy.lower() if strategy else None,
            "download.overwrite": overwrite,
            "scan.include_vectors": False if no_vectors else None,
        }
    )
    cfg = manager.config

    project_root = _resolve_root(path, root)
    dialect = Dialect.from_config(project_root, cfg.dialect)
    default_dir = (
        assets_dir.expanduser().resolve()
        if assets_dir
        else default_assets_dir(project_root, cfg.assets.dir)
    )
    documents = _discover(path, cfg, dialect)
    if not documents:
        ui.info("No matching documents found.")
        return

    ui.title(f"Localizing images in {len(documents)} document(s)")
    display = _DownloadDisplay(get_stderr_console())

    async def _run() -> RunReport:
        try:
            async with DownloadEngine(cfg.download) as engine:
                run = LocalizationRun(
                    FileDocumentStore(),
                    QuestionaryPrompter(assume_yes=yes),
                    engine,
                    dialect,
                    default_dir=default_dir,
                    scanner=_make_scanner(cfg),
                    on_item=display.on_item,
                    on_bytes=display.on_bytes,
                    on_outcome=display.on_outcome,
                )
                return await run.run(documents)
        finally:
            display.close()

    try:
        with ConsoleLogPause(ctx.obj["log_handler"], ctx.obj["verbose"]) as pause:
            report = asyncio.run(_run())
        ctx.obj["log_handler"] = pause.handler_id
    except EnvVarNotFoundError as e:
        raise click.ClickException(str(e)) from e

    _print_report(report)


def _print_report(report: RunReport) -> None:
    if report.cancelled:
        ui.warning("Cancelled, no files were changed")
        return
    if not report.outcomes and not report.failures:
        ui.info("No remote images to localize.")
        return

    for source, reason in report.failures:
        ui.error(source, detail=reason)
    for collision in report.collisions:
        ui.warning(
            str(collision.as_error()),
            detail=f"{Path(str(collision.document_id)).name} keeps the remote URL",
        )

    ui.summary(ui.format_run_summary(report.summary))
    ui.info(f"{report.summary.documents_updated} document(s) updated")


# =============================================================================
# Config commands
# =============================================================================


@app.group()
def config() -> None:
    """Configuration commands."""


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show the effective configuration as JSON."""
    manager: ConfigManager = ctx.obj["manager"]
    config_json = json.dumps(
        manager.config.model_dump(mode="json"), indent=DEFAULT_JSON_INDENT, ensure_ascii=False
    )
    get_console().print(Syntax(config_json, "json", theme="monokai", line_numbers=False))


@config.command("get")
@click.argument("key")
@click.pass_context
def config_get(ctx: click.Context, key: str) -> None:
    """Get a configuration value by dot-separated key."""
    manager: ConfigManager = ctx.obj["manager"]
    value = manager.get(key)
    if value is None:
        get_console().print(f"[yellow]Key not found:[/yellow] {key}")
        raise SystemExit(1)

    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")

    if isinstance(value, (dict, list)):
        output = json.dumps(value, indent=DEFAULT_JSON_INDENT, ensure_ascii=False)
        get_console().print(Syntax(output, "json", theme="monokai", line_numbers=False))
    else:
        get_console().print(str(value))
