"""Unit tests for the batch orchestrator."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from conftest import PNG_BYTES, InMemoryStore, StaticPrompter, make_transport
from imglocal.dialect import Dialect
from imglocal.downloader import DownloadEngine
from imglocal.models import RewriteStrategy, RunPhase
from imglocal.orchestrator import LocalizationRun, merge_references
from imglocal.scanner import ReferenceScanner

HERO = "https://cdn.example.com/a/hero.png"
LOGO = "https://cdn.example.com/brand/logo.svg"
WIDE = "https://cdn.example.com/a/hero-wide.webp"


async def run_once(
    site: Path,
    documents: dict[Path, str],
    routes: dict,
    *,
    prompter: StaticPrompter | None = None,
    dialect: Dialect | None = None,
    store: InMemoryStore | None = None,
    calls: list[str] | None = None,
):
    store = store or InMemoryStore(documents)
    async with httpx.AsyncClient(transport=make_transport(routes, calls)) as client:
        run = LocalizationRun(
            store,
            prompter or StaticPrompter(),
            DownloadEngine(client=client),
            dialect or Dialect(project_type="astro"),
            default_dir=site / "src" / "assets" / "images",
        )
        report = await run.run(list(store.documents))
    return report, store


class TestMergeReferences:
    """Tests for merging references across documents."""

    def test_groups_by_normalized_url(self) -> None:
        scanner = ReferenceScanner()
        a, b = Path("/s/a.html"), Path("/s/b.html")
        refs = scanner.scan(f'<img src="{HERO}">', a) + scanner.scan(
            f'<img src="{HERO}#x"><img src="{LOGO}">', b
        )
        entries = merge_references(refs)

        assert list(entries) == [HERO, LOGO]
        assert entries[HERO].documents == [a, b]
        assert entries[HERO].raw_urls_in(b) == [f"{HERO}#x"]


class TestLocalizationRun:
    """Tests for LocalizationRun.run."""

    @pytest.mark.asyncio
    async def test_dedup_across_documents(self, site: Path) -> None:
        """One fetch per URL; each document gets its own relative path."""
        index = site / "src" / "pages" / "index.html"
        post = site / "src" / "pages" / "blog" / "post.html"
        calls: list[str] = []

        report, store = await run_once(
            site,
            {index: f'<img src="{HERO}">', post: f'<img src="{HERO}"><p>{HERO}</p>'},
            {HERO: (200, {}, PNG_BYTES)},
            calls=calls,
        )

        assert calls == [HERO]
        assert store.documents[index] == '<img src="../assets/images/hero.png">'
        assert store.documents[post] == (
            '<img src="../../assets/images/hero.png"><p>../../assets/images/hero.png</p>'
        )
        assert report.summary.succeeded == 1
        assert report.summary.documents_updated == 2
        assert report.phase == RunPhase.DONE
        assert (site / "src" / "assets" / "images" / "hero.png").read_bytes() == PNG_BYTES

    @pytest.mark.asyncio
    async def test_404_leaves_document_identical(self, site: Path) -> None:
        index = site / "src" / "pages" / "index.html"
        original = f'<html>\n<img src="{HERO}" alt="Hero">\n</html>\n'

        report, store = await run_once(site, {index: original}, {})

        assert store.documents[index] == original
        assert store.writes == []
        assert report.summary.failed == 1
        assert report.summary.succeeded == 0
        assert report.failures[0][0] == HERO
        assert "404" in report.failures[0][1]
        assert report.phase == RunPhase.DONE

    @pytest.mark.asyncio
    async def test_partial_failure(self, site: Path) -> None:
        index = site / "src" / "pages" / "index.html"
        text = f'<img src="{HERO}"><img src="{WIDE}">'

        report, store = await run_once(site, {index: text}, {HERO: (200, {}, PNG_BYTES)})

        assert store.documents[index] == f'<img src="../assets/images/hero.png"><img src="{WIDE}">'
        assert report.summary.succeeded == 1
        assert report.summary.failed == 1

    @pytest.mark.asyncio
    async def test_gallery_import_strategy(self, site: Path) -> None:
        page = site / "src" / "pages" / "index.astro"
        text = (
            "---\nconst title = 'Home';\n---\n"
            "<picture>\n"
            f'  <source srcset="{WIDE}" type="image/webp">\n'
            f'  <img src="{HERO}" alt="">\n'
            "</picture>\n"
        )
        routes = {HERO: (200, {}, PNG_BYTES), WIDE: (200, {}, PNG_BYTES)}

        report, store = await run_once(site, {page: text}, routes)

        result = store.documents[page]
        assert 'import heroWide from "../assets/images/hero-wide.webp";' in result
        assert 'import hero from "../assets/images/hero.png";' in result
        assert '<source srcset={heroWide.src} type="image/webp">' in result
        assert '<img src={hero.src} alt="">' in result
        assert report.summary.succeeded == 2

    @pytest.mark.asyncio
    async def test_gallery_resolution_candidates(self, site: Path) -> None:
        """Every candidate of a srcset list is downloaded and rewritten."""
        page = site / "src" / "pages" / "index.astro"
        one = "https://cdn.example.com/a/hero-1x.png"
        two = "https://cdn.example.com/a/hero-2x.png"
        text = f'<picture><source srcset="{one} 1x, {two} 2x"><img src="{one}"></picture>'
        routes = {one: (200, {}, PNG_BYTES), two: (200, {}, PNG_BYTES)}

        report, store = await run_once(site, {page: text}, routes)

        result = store.documents[page]
        assert "srcset={`${hero1x.src} 1x, ${hero2x.src} 2x`}" in result
        assert "<img src={hero1x.src}>" in result
        assert "https://" not in result
        assert report.summary.succeeded == 2

    @pytest.mark.asyncio
    async def test_gallery_path_strategy(self, site: Path) -> None:
        page = site / "src" / "pages" / "index.astro"
        text = f'<picture><source srcset="{WIDE}"><img src="{HERO}"></picture>'
        routes = {HERO: (200, {}, PNG_BYTES), WIDE: (200, {}, PNG_BYTES)}
        dialect = Dialect(project_type="astro", strategy=RewriteStrategy.PATH)

        _, store = await run_once(site, {page: text}, routes, dialect=dialect)

        assert store.documents[page] == (
            '<picture><source srcset="../assets/images/hero-wide.webp">'
            '<img src="../assets/images/hero.png"></picture>'
        )

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, site: Path) -> None:
        """A second run finds nothing; a run on the original text re-uses the files."""
        page = site / "src" / "pages" / "index.astro"
        original = f'<img src="{HERO}"><img src="{LOGO}">'
        routes = {HERO: (200, {}, PNG_BYTES), LOGO: (200, {}, b"<svg/>")}

        first, store = await run_once(site, {page: original}, routes)
        rewritten = store.documents[page]

        calls: list[str] = []
        second, store = await run_once(site, {}, routes, store=store, calls=calls)
        assert calls == []
        assert store.documents[page] == rewritten
        assert second.summary.documents_updated == 0

        third, fresh = await run_once(site, {page: original}, routes, calls=calls)
        assert calls == []
        assert third.summary.skipped_existing == 2
        assert third.summary.succeeded == 0
        assert fresh.documents[page] == rewritten
        assert rewritten.count("import hero") == 1
        assert first.summary.succeeded == 2

    @pytest.mark.asyncio
    async def test_cancel_at_selection(self, site: Path) -> None:
        page = site / "src" / "pages" / "index.html"
        calls: list[str] = []

        report, store = await run_once(
            site,
            {page: f'<img src="{HERO}">'},
            {HERO: (200, {}, PNG_BYTES)},
            prompter=StaticPrompter(cancel_at="selection"),
            calls=calls,
        )

        assert report.phase == RunPhase.CANCELLED
        assert report.cancelled is True
        assert calls == []
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_cancel_at_directory(self, site: Path) -> None:
        page = site / "src" / "pages" / "index.html"

        report, store = await run_once(
            site,
            {page: f'<img src="{HERO}">'},
            {HERO: (200, {}, PNG_BYTES)},
            prompter=StaticPrompter(cancel_at="directory"),
        )

        assert report.cancelled is True
        assert store.writes == []
        assert not (site / "src" / "assets").exists()

    @pytest.mark.asyncio
    async def test_only_selected_urls(self, site: Path) -> None:
        page = site / "src" / "pages" / "index.html"
        calls: list[str] = []
        prompter = StaticPrompter(select=lambda url: url == LOGO)

        report, store = await run_once(
            site,
            {page: f'<img src="{HERO}"><img src="{LOGO}">'},
            {HERO: (200, {}, PNG_BYTES), LOGO: (200, {}, b"<svg/>")},
            prompter=prompter,
            calls=calls,
        )

        assert prompter.offered == [HERO, LOGO]
        assert calls == [LOGO]
        assert store.documents[page] == f'<img src="{HERO}"><img src="../assets/images/logo.svg">'
        assert list(report.outcomes) == [LOGO]

    @pytest.mark.asyncio
    async def test_chosen_directory(self, site: Path) -> None:
        page = site / "src" / "pages" / "index.html"
        target = site / "public" / "img"

        _, store = await run_once(
            site,
            {page: f'<img src="{HERO}">'},
            {HERO: (200, {}, PNG_BYTES)},
            prompter=StaticPrompter(directory=target),
        )

        assert (target / "hero.png").exists()
        assert store.documents[page] == '<img src="../../public/img/hero.png">'

    @pytest.mark.asyncio
    async def test_unreadable_document_recorded(self, site: Path) -> None:
        page = site / "src" / "pages" / "index.html"
        store = InMemoryStore({page: f'<img src="{HERO}">'})
        missing = site / "src" / "pages" / "gone.html"

        async with httpx.AsyncClient(transport=make_transport({HERO: (200, {}, PNG_BYTES)})) as client:
            run = LocalizationRun(
                store,
                StaticPrompter(),
                DownloadEngine(client=client),
                Dialect(),
                default_dir=site / "src" / "assets" / "images",
            )
            report = await run.run([missing, page])

        assert report.failures[0][0] == str(missing)
        assert report.summary.documents_updated == 1
        assert report.phase == RunPhase.DONE

    @pytest.mark.asyncio
    async def test_collision_reported(self, site: Path) -> None:
        page = site / "src" / "pages" / "index.astro"
        text = f'---\nimport hero from "../data/hero.json";\n---\n<img src="{HERO}">'

        report, store = await run_once(site, {page: text}, {HERO: (200, {}, PNG_BYTES)})

        assert store.documents[page] == text
        assert report.summary.succeeded == 1
        assert report.summary.documents_updated == 0
        assert len(report.collisions) == 1
        assert report.collisions[0].document_id == page
        assert report.collisions[0].existing_module == "../data/hero.json"

    @pytest.mark.asyncio
    async def test_no_references(self, site: Path) -> None:
        page = site / "src" / "pages" / "index.html"
        report, store = await run_once(site, {page: "<p>No images</p>"}, {})

        assert report.phase == RunPhase.DONE
        assert report.outcomes == {}
        assert store.writes == []
