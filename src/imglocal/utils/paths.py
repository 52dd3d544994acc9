"""Path utilities for asset directories and document-relative references."""

from __future__ import annotations

import os
from pathlib import Path

from imglocal.constants import DEFAULT_ASSETS_DIR


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists

    Returns:
        The same path (for chaining)

    Examples:
        >>> ensure_dir(Path("/tmp/site/src/assets/images"))
        PosixPath('/tmp/site/src/assets/images')
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def default_assets_dir(project_root: Path, assets_dir: str = DEFAULT_ASSETS_DIR) -> Path:
    """Return the directory downloads are saved to by default.

    Args:
        project_root: Root of the project being localized
        assets_dir: Configured assets directory, relative to the root unless absolute

    Returns:
        Absolute assets directory path

    Examples:
        >>> default_assets_dir(Path("/site"))
        PosixPath('/site/src/assets/images')
    """
    configured = Path(assets_dir).expanduser()
    if configured.is_absolute():
        return configured
    return project_root / configured


def local_relative_path(asset_path: Path | str, document_dir: Path | str) -> str:
    """Compute the reference a document uses to reach a saved asset.

    The result always uses forward slashes and starts with ``./`` or ``../`` so
    it stays a valid module specifier as well as a valid relative URL.

    Args:
        asset_path: Absolute path of the saved asset
        document_dir: Directory containing the document

    Returns:
        Relative path from document_dir to asset_path

    Examples:
        >>> local_relative_path("/site/src/assets/images/a.png", "/site/src/pages")
        '../assets/images/a.png'
        >>> local_relative_path("/site/src/pages/a.png", "/site/src/pages")
        './a.png'
    """
    relative = os.path.relpath(os.fspath(asset_path), os.fspath(document_dir))
    relative = relative.replace("\\", "/")
    if relative.startswith("./") or relative.startswith("../"):
        return relative
    return f"./{relative}"
