"""Unit tests for project detection and strategy selection."""

from __future__ import annotations

from pathlib import Path

from imglocal.config import DialectConfig
from imglocal.dialect import Dialect, detect_project_type, find_project_root
from imglocal.models import RewriteStrategy


class TestDetectProjectType:
    """Tests for detect_project_type."""

    def test_astro_config_file(self, tmp_path: Path) -> None:
        (tmp_path / "astro.config.mjs").write_text("export default {}", encoding="utf-8")
        assert detect_project_type(tmp_path) == "astro"

    def test_eleventy_config_file(self, tmp_path: Path) -> None:
        (tmp_path / ".eleventy.js").write_text("module.exports = {}", encoding="utf-8")
        assert detect_project_type(tmp_path) == "eleventy"

    def test_config_file_beats_package_json(self, tmp_path: Path) -> None:
        (tmp_path / "eleventy.config.js").write_text("", encoding="utf-8")
        (tmp_path / "package.json").write_text(
            '{"dependencies": {"astro": "^4.0.0"}}', encoding="utf-8"
        )
        assert detect_project_type(tmp_path) == "eleventy"

    def test_dev_dependency(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text(
            '{"devDependencies": {"@11ty/eleventy": "^2.0.0"}}', encoding="utf-8"
        )
        assert detect_project_type(tmp_path) == "eleventy"

    def test_astro_dependency(self, site: Path) -> None:
        assert detect_project_type(site) == "astro"

    def test_invalid_package_json(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text("{oops", encoding="utf-8")
        assert detect_project_type(tmp_path) == "unknown"

    def test_nothing_found(self, tmp_path: Path) -> None:
        assert detect_project_type(tmp_path) == "unknown"


class TestFindProjectRoot:
    """Tests for find_project_root."""

    def test_walks_up_to_package_json(self, site: Path) -> None:
        page = site / "src" / "pages" / "index.astro"
        page.write_text("<p/>", encoding="utf-8")

        assert find_project_root(page) == site.resolve()
        assert find_project_root(site / "src" / "pages") == site.resolve()

    def test_falls_back_to_start(self, tmp_path: Path) -> None:
        start = tmp_path / "loose"
        start.mkdir()
        assert find_project_root(start) == start.resolve()


class TestDialect:
    """Tests for Dialect strategy selection."""

    def test_auto_strategy_by_suffix(self) -> None:
        dialect = Dialect(project_type="astro")

        assert dialect.strategy_for(Path("/s/src/pages/index.astro")) == RewriteStrategy.IMPORT
        assert dialect.strategy_for(Path("/s/src/pages/INDEX.ASTRO")) == RewriteStrategy.IMPORT
        assert dialect.strategy_for(Path("/s/src/pages/about.html")) == RewriteStrategy.PATH

    def test_forced_strategy(self) -> None:
        dialect = Dialect(strategy=RewriteStrategy.PATH)
        assert dialect.strategy_for(Path("/s/index.astro")) == RewriteStrategy.PATH

    def test_from_config(self, site: Path) -> None:
        config = DialectConfig(
            strategy="import",
            assets_module="astro:assets",
            component_imports=["Image"],
            import_suffixes=[".ASTRO", ".mdx"],
        )
        dialect = Dialect.from_config(site, config)

        assert dialect.project_type == "astro"
        assert dialect.strategy == RewriteStrategy.IMPORT
        assert dialect.import_suffixes == (".astro", ".mdx")
        assert dialect.component_imports == ("Image",)

    def test_from_config_auto(self, tmp_path: Path) -> None:
        dialect = Dialect.from_config(tmp_path, DialectConfig())
        assert dialect.strategy is None
        assert dialect.project_type == "unknown"

    def test_document_patterns(self) -> None:
        assert "*.astro" in Dialect(project_type="astro").document_patterns
        assert "*.njk" in Dialect(project_type="eleventy").document_patterns
        assert Dialect().document_patterns == ("*.html",)
