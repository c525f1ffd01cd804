"""
Utility functions for hdstore
"""

import mimetypes
import secrets
import uuid
from pathlib import Path
import logging

from .models import MIME_TYPES, DEFAULT_MIME_TYPE

logger = logging.getLogger(__name__)


def get_mime_type(file_path: Path) -> str:
    """Get MIME type for file"""
    suffix = file_path.suffix.lower()

    # Check our custom MIME types first
    if suffix in MIME_TYPES:
        return MIME_TYPES[suffix]

    # Fall back to system mimetypes
    mime_type, _ = mimetypes.guess_type(str(file_path))
    return mime_type or DEFAULT_MIME_TYPE


def generate_session_id() -> str:
    """Generate an unguessable session identifier"""
    return secrets.token_urlsafe(32)


def generate_short_id(length: int = 8) -> str:
    """Generate short random ID"""
    return str(uuid.uuid4()).replace('-', '')[:length]


def normalize_path(path: str) -> str:
    """Normalize path separators for cross-platform compatibility"""
    return path.replace('\\', '/')


def validate_filename(filename: str) -> bool:
    """Validate a single path component for basic safety"""
    if not filename or filename in ('.', '..'):
        return False

    # Check for dangerous characters
    dangerous_chars = '<>:"/\\|?*'
    if any(char in filename for char in dangerous_chars):
        return False

    # Check for control characters
    if any(ord(char) < 32 for char in filename):
        return False

    return True


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human readable string"""
    if seconds < 1:
        return f"{seconds*1000:.1f}ms"
    elif seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m{secs}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h{minutes}m"
