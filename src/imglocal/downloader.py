"""Download engine: fetches one remote URL into one local file."""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING
from urllib.parse import urljoin

import aiofiles
import aiofiles.os
import httpx
from loguru import logger

from imglocal.constants import REDIRECT_STATUS_CODES
from imglocal.exceptions import FilesystemFailure, NetworkFailure
from imglocal.models import DownloadOutcome, DownloadStatus, FailureKind
from imglocal.utils.naming import candidate_filename
from imglocal.utils.paths import ensure_dir

if TYPE_CHECKING:
    from imglocal.config import DownloadConfig

# Receives (bytes_downloaded, total_bytes); total is 0 when unknown
ProgressCallback = Callable[[int, int], None]


class DownloadEngine:
    """Fetches remote assets into a destination directory.

    The engine never raises for a single failed URL: every failure mode ends up
    in a ``failed`` DownloadOutcome so a batch can continue past it.

    Usage:
        async with DownloadEngine(config.download) as engine:
            outcome = await engine.fetch(url, assets_dir)
    """

    def __init__(
        self,
        config: DownloadConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Download settings (timeout, redirect limit, chunk size, ...)
            client: Optional client to borrow; it is not closed by the engine
        """
        if config is None:
            from imglocal.config import DownloadConfig

            config = DownloadConfig()
        self.config = config
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> DownloadEngine:
        self._get_client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if the engine created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self.config.get_resolved_user_agent()},
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=False,
            )
        return self._client

    async def fetch(
        self,
        url: str,
        destination_dir: Path,
        *,
        overwrite: bool | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> DownloadOutcome:
        """Download url into destination_dir.

        The local filename comes from the URL's last path segment. An existing
        file with that name is reported as skipped-existing unless overwrite
        is set.

        Args:
            url: Absolute http(s) URL
            destination_dir: Directory to save into (created if missing)
            overwrite: Replace an existing file (default from config)
            on_progress: Called after each chunk with cumulative and total bytes

        Returns:
            DownloadOutcome describing what happened
        """
        if overwrite is None:
            overwrite = self.config.overwrite
        destination_dir = Path(destination_dir)

        try:
            ensure_dir(destination_dir)
        except OSError as e:
            logger.warning(f"[Download] Cannot create {destination_dir}: {e}")
            return DownloadOutcome(
                url=url,
                status=DownloadStatus.FAILED,
                error=f"Cannot create directory {destination_dir}: {e}",
                failure=FailureKind.FILESYSTEM,
            )

        destination = destination_dir / candidate_filename(url)
        if destination.exists() and not overwrite:
            logger.info(f"[Download] Skipped (already exists): {destination.name}")
            return DownloadOutcome(
                url=url,
                status=DownloadStatus.SKIPPED_EXISTING,
                local_path=destination,
            )

        try:
            await self._download(url, destination, on_progress)
        except NetworkFailure as e:
            logger.warning(f"[Download] {e}: {url}")
            return DownloadOutcome(
                url=url,
                status=DownloadStatus.FAILED,
                error=str(e),
                failure=FailureKind.NETWORK,
                status_code=e.status_code,
            )
        except FilesystemFailure as e:
            logger.warning(f"[Download] {e}")
            return DownloadOutcome(
                url=url,
                status=DownloadStatus.FAILED,
                error=str(e),
                failure=FailureKind.FILESYSTEM,
            )
        except httpx.TimeoutException:
            logger.warning(f"[Download] Timeout: {url}")
            return DownloadOutcome(
                url=url,
                status=DownloadStatus.FAILED,
                error=f"Timed out after {self.config.timeout}s",
                failure=FailureKind.NETWORK,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"[Download] Failed: {url} - {e}")
            return DownloadOutcome(
                url=url,
                status=DownloadStatus.FAILED,
                error=str(e) or type(e).__name__,
                failure=FailureKind.NETWORK,
            )

        logger.info(f"[Download] Saved {destination.name}")
        return DownloadOutcome(
            url=url,
            status=DownloadStatus.DOWNLOADED,
            local_path=destination,
        )

    async def _download(
        self,
        url: str,
        destination: Path,
        on_progress: ProgressCallback | None,
        hops: int = 0,
    ) -> None:
        """Request url, following redirects, and stream the final body to disk."""
        client = self._get_client()
        async with client.stream("GET", url) as response:
            if response.status_code in REDIRECT_STATUS_CODES:
                location = response.headers.get("location")
                if not location:
                    raise NetworkFailure(
                        url,
                        f"HTTP {response.status_code} redirect without Location header",
                        response.status_code,
                    )
                if hops >= self.config.max_redirects:
                    raise NetworkFailure(
                        url, f"Too many redirects (limit {self.config.max_redirects})"
                    )
                target = urljoin(url, location)
                logger.debug(f"[Download] {response.status_code} redirect: {url} -> {target}")
            elif not response.is_success:
                raise NetworkFailure(
                    url,
                    f"Failed to download: {response.status_code} {response.reason_phrase}",
                    response.status_code,
                )
            else:
                await self._write_body(response, destination, on_progress)
                return

        await self._download(target, destination, on_progress, hops + 1)

    async def _write_body(
        self,
        response: httpx.Response,
        destination: Path,
        on_progress: ProgressCallback | None,
    ) -> None:
        """Stream the response into a temp file, then move it into place."""
        try:
            total = int(response.headers.get("content-length") or 0)
        except ValueError:
            total = 0

        partial = destination.with_name(f".{destination.name}.part")
        downloaded = 0
        try:
            async with aiofiles.open(partial, "wb") as f:
                async for chunk in response.aiter_bytes(self.config.chunk_size):
                    await f.write(chunk)
                    downloaded += len(chunk)
                    _report_progress(on_progress, downloaded, total)
            await aiofiles.os.replace(partial, destination)
        except OSError as e:
            _remove_partial(partial)
            raise FilesystemFailure(destination, f"Cannot write {destination}: {e}") from e
        except BaseException:
            _remove_partial(partial)
            raise


def _report_progress(callback: ProgressCallback | None, downloaded: int, total: int) -> None:
    if callback is None:
        return
    try:
        callback(downloaded, total)
    except Exception as e:
        logger.debug(f"[Download] Progress callback failed: {e}")


def _remove_partial(path: Path) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.debug(f"[Download] Could not remove partial file {path}: {e}")
