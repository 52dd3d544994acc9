"""Error classes for the localization pipeline.

Error Hierarchy:
    LocalizerError (base)
    ├── InvalidReferenceError (malformed or non-http URL, silently excluded)
    ├── NetworkFailure (non-2xx terminal response or transport error)
    ├── FilesystemFailure (directory creation / file write failed)
    ├── BindingCollisionError (binding already bound to another module)
    └── ConfigurationError (invalid configuration file)

Per-item failures never escape the component that produced them: the download
engine converts NetworkFailure and FilesystemFailure into a failed
DownloadOutcome, and the scanner drops references that raise
InvalidReferenceError.

Usage:
    try:
        await engine._download(url, destination, None)
    except NetworkFailure as e:
        print(f"HTTP {e.status_code}: {e}")
    except FilesystemFailure as e:
        print(f"Cannot write {e.path}: {e}")
"""

from __future__ import annotations

from pathlib import Path


class LocalizerError(Exception):
    """Base exception for all imglocal errors."""


class InvalidReferenceError(LocalizerError):
    """Raised when a reference is not an absolute http(s) URL."""

    def __init__(self, value: str, reason: str = "not an absolute http(s) URL") -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid reference {value!r}: {reason}")


class NetworkFailure(LocalizerError):
    """Raised when a fetch ends in a non-2xx response or a transport error.

    Attributes:
        url: The URL whose request failed (after redirects, if any)
        status_code: HTTP status of the terminal response, None for transport errors
    """

    def __init__(self, url: str, message: str, status_code: int | None = None) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class FilesystemFailure(LocalizerError):
    """Raised when a directory cannot be created or a file cannot be written."""

    def __init__(self, path: Path | str, message: str) -> None:
        self.path = Path(path)
        super().__init__(message)


class BindingCollisionError(LocalizerError):
    """A BindingCollision escalated to an error (see BindingCollision.as_error)."""

    def __init__(self, binding_name: str, existing_module: str, requested_module: str) -> None:
        self.binding_name = binding_name
        self.existing_module = existing_module
        self.requested_module = requested_module
        super().__init__(
            f"Binding '{binding_name}' is already imported from "
            f"'{existing_module}', cannot import it from '{requested_module}'"
        )


class ConfigurationError(LocalizerError):
    """Raised when a configuration file cannot be loaded or validated."""
