"""
Path resolution for stored files

Every stored file lives at ``<storage root>/<user folder>/<folder>/<name><ext>``.
"""

import logging
from pathlib import Path

from .errors import ExtensionNotAllowed, InvalidName
from .models import ALLOWED_EXTENSIONS
from .utils import normalize_path, validate_filename

logger = logging.getLogger(__name__)


class PathTraversalError(Exception):
    """Raised when path traversal attack is detected"""
    pass


def check_extension(extension: str) -> str:
    """Return ``extension`` if it is on the allow-list, raise otherwise"""
    if extension not in ALLOWED_EXTENSIONS:
        raise ExtensionNotAllowed(extension)
    return extension


def validate_component(name: str) -> str:
    """Reject names that are not a single safe path component"""
    if not validate_filename(name) or name != name.strip():
        raise InvalidName(name)
    return name


def safe_join(root_path: Path, *parts: str) -> Path:
    """
    Join validated components onto root, refusing anything that escapes it

    Args:
        root_path: Root directory path
        parts: Path components, each a single name

    Returns:
        Resolved absolute path within root

    Raises:
        PathTraversalError: If path would escape root directory
    """
    base_path = root_path.resolve()

    for part in parts:
        if part in ('', '.', '..') or '/' in normalize_path(part):
            raise PathTraversalError(f"Path traversal detected: {part}")

    full_path = base_path.joinpath(*parts)

    # Resolve symlinks without requiring the target to exist
    resolved_path = full_path.resolve(strict=False)

    # Ensure resolved path is within root
    try:
        resolved_path.relative_to(base_path)
    except ValueError:
        raise PathTraversalError(f"Path traversal detected: {'/'.join(parts)}")

    return resolved_path


class PathResolver:
    """Maps stored-file identity onto the per-user directory tree"""

    def __init__(self, storage_root: Path):
        self.storage_root = Path(storage_root).resolve()

    def user_root(self, user_folder: str) -> Path:
        validate_component(user_folder)
        try:
            return safe_join(self.storage_root, user_folder)
        except PathTraversalError:
            raise InvalidName(user_folder)

    def folder_path(self, user_folder: str, folder_name: str) -> Path:
        validate_component(folder_name)
        try:
            return safe_join(self.user_root(user_folder), folder_name)
        except PathTraversalError:
            raise InvalidName(folder_name)

    def resolve(self, user_folder: str, folder_name: str, file_name: str, extension: str) -> Path:
        """Resolve the on-disk path of one stored file"""
        check_extension(extension)
        validate_component(file_name)
        folder = self.folder_path(user_folder, folder_name)
        try:
            return safe_join(folder, file_name + extension)
        except PathTraversalError:
            raise InvalidName(file_name)


def display_path(folder_name: str, file_name: str, extension: str) -> str:
    """Client-facing relative path used in error messages"""
    return f"{folder_name}/{file_name}{extension}"
