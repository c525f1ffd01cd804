"""
Filesystem operations for hdstore

All functions take paths already produced by :class:`hdstore.paths.PathResolver`.
"""

import os
import shutil
import logging
from pathlib import Path
from typing import List, Optional
import aiofiles
import aiofiles.os
from fastapi import UploadFile

from .models import TransferMode
from .utils import generate_short_id

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192  # 8KB chunks


class FileSystemError(Exception):
    """Generic filesystem error"""
    pass


class SourceNotFoundError(FileSystemError):
    """Raised when an operation's source path does not exist"""

    def __init__(self, path: Path):
        super().__init__(f"Path not found: {path}")
        self.path = path


async def ensure_directory(dir_path: Path) -> None:
    """Create directory and any missing parents"""
    if await aiofiles.os.path.isdir(dir_path):
        return
    try:
        await aiofiles.os.makedirs(dir_path, exist_ok=True)
        logger.info(f"Created directory: {dir_path}")
    except OSError as e:
        raise FileSystemError(f"Failed to create directory: {e}")


async def file_exists(file_path: Path) -> bool:
    """Check whether a regular file exists at path"""
    return await aiofiles.os.path.isfile(file_path)


async def read_file(file_path: Path) -> bytes:
    """
    Read raw file content

    Raises:
        SourceNotFoundError: If the file does not exist
        FileSystemError: If reading fails
    """
    if not await aiofiles.os.path.isfile(file_path):
        raise SourceNotFoundError(file_path)

    try:
        async with aiofiles.open(file_path, 'rb') as f:
            return await f.read()
    except OSError as e:
        raise FileSystemError(f"Failed to read file: {e}")


async def list_files(dir_path: Path, extension: str) -> List[str]:
    """
    List stored names in a folder, creating the folder when missing

    Args:
        dir_path: Folder path
        extension: Only entries ending with this suffix are returned

    Returns:
        File names with the extension stripped, sorted
    """
    await ensure_directory(dir_path)

    try:
        names = []
        for entry in await aiofiles.os.listdir(dir_path):
            if entry.startswith(".") or not entry.endswith(extension):
                continue
            if not await aiofiles.os.path.isfile(dir_path / entry):
                continue
            names.append(entry[:-len(extension)])

        names.sort()
        return names

    except OSError as e:
        raise FileSystemError(f"Failed to list directory: {e}")


async def write_uploaded_file(
    file_path: Path,
    upload_file: UploadFile,
    max_size: Optional[int] = None,
) -> int:
    """
    Persist an upload, replacing any existing file

    Content is streamed to a temporary sibling and moved into place, so a
    concurrent reader sees either the old or the new file.

    Returns:
        Number of bytes written

    Raises:
        FileSystemError: If operation fails or the upload exceeds max_size
    """
    await ensure_directory(file_path.parent)

    tmp_path = file_path.with_name(f".{file_path.name}.{generate_short_id(12)}.part")

    try:
        bytes_written = 0
        async with aiofiles.open(tmp_path, 'wb') as f:
            while True:
                chunk = await upload_file.read(CHUNK_SIZE)
                if not chunk:
                    break

                bytes_written += len(chunk)
                if max_size is not None and bytes_written > max_size:
                    raise FileSystemError(f"File too large (max: {max_size} bytes)")

                await f.write(chunk)

        await aiofiles.os.replace(tmp_path, file_path)
        logger.info(f"Saved file: {file_path} ({bytes_written} bytes)")
        return bytes_written

    except OSError as e:
        raise FileSystemError(f"Failed to save file: {e}")

    finally:
        # Clean up partial file
        if await aiofiles.os.path.exists(tmp_path):
            await aiofiles.os.remove(tmp_path)


async def delete_file(file_path: Path) -> None:
    """
    Delete a stored file

    Raises:
        SourceNotFoundError: If the file does not exist
    """
    if not await aiofiles.os.path.isfile(file_path):
        raise SourceNotFoundError(file_path)

    try:
        await aiofiles.os.remove(file_path)
        logger.info(f"Deleted: {file_path}")
    except OSError as e:
        raise FileSystemError(f"Failed to delete: {e}")


async def rename_or_copy(src_path: Path, dst_path: Path, mode: TransferMode) -> None:
    """
    Rename or copy a stored file; an existing destination is overwritten

    Raises:
        SourceNotFoundError: If the source does not exist
    """
    if not await aiofiles.os.path.isfile(src_path):
        raise SourceNotFoundError(src_path)

    try:
        if mode is TransferMode.RENAME:
            await aiofiles.os.replace(src_path, dst_path)
            logger.info(f"Renamed: {src_path} -> {dst_path}")
        else:
            tmp_path = dst_path.with_name(f".{dst_path.name}.{generate_short_id(12)}.part")
            try:
                shutil.copyfile(src_path, tmp_path)
                os.replace(tmp_path, dst_path)
            finally:
                if tmp_path.exists():
                    tmp_path.unlink()
            logger.info(f"Copied: {src_path} -> {dst_path}")

    except OSError as e:
        raise FileSystemError(f"Failed to {mode.value}: {e}")
