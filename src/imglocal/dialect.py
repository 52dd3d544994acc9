"""Project-type detection and per-document rewrite strategy selection."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from loguru import logger

from imglocal.config import DialectConfig
from imglocal.constants import (
    ASTRO_CONFIG_FILES,
    DOCUMENT_PATTERNS,
    ELEVENTY_CONFIG_FILES,
    ELEVENTY_PACKAGES,
)
from imglocal.models import DocumentId, RewriteStrategy

ProjectType = Literal["astro", "eleventy", "unknown"]


def find_project_root(start: Path) -> Path:
    """Walk up from start to the nearest directory with package.json or a site config.

    Falls back to start itself (its parent, for a file).
    """
    start = start.resolve()
    if start.is_file():
        start = start.parent
    markers = ("package.json", *ASTRO_CONFIG_FILES, *ELEVENTY_CONFIG_FILES)
    for directory in (start, *start.parents):
        if any((directory / marker).exists() for marker in markers):
            return directory
    return start


def detect_project_type(root: Path) -> ProjectType:
    """Detect the site framework of a project.

    Config files win over package.json: Astro config files are checked
    first, then Eleventy config files, then dependencies and
    devDependencies.
    """
    for name in ASTRO_CONFIG_FILES:
        if (root / name).exists():
            return "astro"
    for name in ELEVENTY_CONFIG_FILES:
        if (root / name).exists():
            return "eleventy"

    package_json = root / "package.json"
    if package_json.exists():
        try:
            data = json.loads(package_json.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"[Dialect] Cannot read {package_json}: {e}")
            return "unknown"

        deps: dict = {}
        if isinstance(data, dict):
            for section in ("dependencies", "devDependencies"):
                if isinstance(data.get(section), dict):
                    deps.update(data[section])
        if "astro" in deps:
            return "astro"
        if any(name in deps for name in ELEVENTY_PACKAGES):
            return "eleventy"

    return "unknown"


@dataclass(frozen=True)
class Dialect:
    """Strategy selection for one run.

    With ``strategy=None`` the strategy follows the document's suffix:
    component documents (``import_suffixes``) get the import strategy,
    everything else the path strategy.
    """

    project_type: ProjectType = "unknown"
    strategy: RewriteStrategy | None = None
    import_suffixes: tuple[str, ...] = (".astro",)
    assets_module: str = "astro:assets"
    component_imports: tuple[str, ...] = ()

    @classmethod
    def from_config(cls, root: Path, config: DialectConfig) -> Dialect:
        project_type = detect_project_type(root)
        strategy = None if config.strategy == "auto" else RewriteStrategy(config.strategy)
        logger.debug(f"[Dialect] Project type: {project_type}, strategy: {config.strategy}")
        return cls(
            project_type=project_type,
            strategy=strategy,
            import_suffixes=tuple(s.lower() for s in config.import_suffixes),
            assets_module=config.assets_module,
            component_imports=tuple(config.component_imports),
        )

    @property
    def document_patterns(self) -> tuple[str, ...]:
        """Glob patterns of the documents this project type localizes."""
        return DOCUMENT_PATTERNS[self.project_type]

    def strategy_for(self, document_id: DocumentId) -> RewriteStrategy:
        if self.strategy is not None:
            return self.strategy
        suffix = Path(str(document_id)).suffix.lower()
        if suffix in self.import_suffixes:
            return RewriteStrategy.IMPORT
        return RewriteStrategy.PATH
