"""imglocal utilities."""

from imglocal.utils.naming import binding_name, candidate_filename, sanitize_filename
from imglocal.utils.paths import default_assets_dir, ensure_dir, local_relative_path

__all__ = [
    # Naming
    "binding_name",
    "candidate_filename",
    "sanitize_filename",
    # Paths
    "default_assets_dir",
    "ensure_dir",
    "local_relative_path",
]
