"""Per-user storage facade used by the request handlers."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional, Tuple

from fastapi import UploadFile

from .errors import FileNotFound, StoreError, UploadFailed
from .fs import (
    file_exists,
    read_file,
    list_files,
    write_uploaded_file,
    delete_file,
    rename_or_copy,
    FileSystemError,
    SourceNotFoundError,
)
from .metrics import metrics_manager
from .models import TransferMode
from .paths import PathResolver, check_extension, display_path

logger = logging.getLogger(__name__)


class StorageServer:
    """Encapsulates all server-side storage operations for one storage root."""

    def __init__(self, storage_root: Path, *, max_upload_size: Optional[int] = None):
        self.resolver = PathResolver(storage_root)
        self.max_upload_size = max_upload_size
        # path -> (lock, number of holders and waiters)
        self._locks: Dict[Path, Tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def _locked(self, *paths: Path) -> AsyncIterator[None]:
        # fixed acquisition order so rename a->b and b->a cannot deadlock
        ordered = sorted(set(paths))
        for path in ordered:
            lock, users = self._locks.get(path, (None, 0))
            self._locks[path] = (lock or asyncio.Lock(), users + 1)

        acquired = []
        try:
            for path in ordered:
                await self._locks[path][0].acquire()
                acquired.append(path)
            yield
        finally:
            for path in reversed(acquired):
                self._locks[path][0].release()
            for path in ordered:
                lock, users = self._locks[path]
                if users == 1:
                    del self._locks[path]
                else:
                    self._locks[path] = (lock, users - 1)

    async def list_files(self, user_folder: str, folder_name: str, extension: str) -> List[str]:
        check_extension(extension)
        folder = self.resolver.folder_path(user_folder, folder_name)
        logger.debug("Listing files", extra={"folder": str(folder), "ext": extension})
        try:
            return await list_files(folder, extension)
        except FileSystemError as e:
            logger.error(f"List failed for {folder}: {e}")
            raise StoreError("List error")

    async def exists(self, user_folder: str, folder_name: str, file_name: str, extension: str) -> bool:
        path = self.resolver.resolve(user_folder, folder_name, file_name, extension)
        return await file_exists(path)

    async def load(self, user_folder: str, folder_name: str, file_name: str, extension: str) -> bytes:
        path = self.resolver.resolve(user_folder, folder_name, file_name, extension)
        logger.debug("Loading file", extra={"path": str(path)})
        try:
            content = await read_file(path)
        except SourceNotFoundError:
            raise FileNotFound(display_path(folder_name, file_name, extension))
        except FileSystemError as e:
            logger.error(f"Read failed for {path}: {e}")
            raise StoreError("Read error")

        metrics_manager.add_download_bytes(len(content))
        return content

    async def save(
        self,
        user_folder: str,
        folder_name: str,
        file_name: str,
        extension: str,
        upload_file_obj: UploadFile,
    ) -> int:
        path = self.resolver.resolve(user_folder, folder_name, file_name, extension)
        logger.debug("Saving file", extra={"path": str(path)})
        async with self._locked(path):
            try:
                written = await write_uploaded_file(path, upload_file_obj, self.max_upload_size)
            except FileSystemError as e:
                logger.warning(f"Upload failed for {path}: {e}")
                raise UploadFailed(str(e))

        metrics_manager.add_upload_bytes(written)
        return written

    async def delete(self, user_folder: str, folder_name: str, file_name: str, extension: str) -> None:
        path = self.resolver.resolve(user_folder, folder_name, file_name, extension)
        async with self._locked(path):
            try:
                await delete_file(path)
            except SourceNotFoundError:
                raise FileNotFound(display_path(folder_name, file_name, extension))
            except FileSystemError as e:
                logger.error(f"Delete failed for {path}: {e}")
                raise StoreError("Delete error")

    async def transfer(
        self,
        user_folder: str,
        folder_name: str,
        file_name: str,
        new_file_name: str,
        extension: str,
        mode: TransferMode,
    ) -> None:
        """Rename or copy ``file_name`` to ``new_file_name`` inside one folder."""

        src = self.resolver.resolve(user_folder, folder_name, file_name, extension)
        dst = self.resolver.resolve(user_folder, folder_name, new_file_name, extension)
        async with self._locked(src, dst):
            try:
                await rename_or_copy(src, dst, mode)
            except SourceNotFoundError:
                raise FileNotFound(display_path(folder_name, file_name, extension))
            except FileSystemError as e:
                logger.error(f"{mode.value} failed for {src}: {e}")
                raise StoreError(f"{mode.value.capitalize()} error")


__all__ = ["StorageServer"]
