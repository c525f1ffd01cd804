"""
Tests for the file store and the per-user storage facade
"""

import asyncio
import io

import pytest
from fastapi import UploadFile

from hdstore import fs
from hdstore.errors import ExtensionNotAllowed, FileNotFound, InvalidName, UploadFailed
from hdstore.models import TransferMode
from hdstore.storage_server import StorageServer


def make_upload(data: bytes) -> UploadFile:
    return UploadFile(file=io.BytesIO(data), filename="file")


def run(coro):
    return asyncio.run(coro)


class TestFileStore:
    """Test the low-level filesystem operations"""

    def test_write_then_read_round_trip(self, tmp_path):
        target = tmp_path / "demo" / "FloorMaps" / "map1.json"
        payload = b'{"floors":[{"rooms":[]}]}'

        written = run(fs.write_uploaded_file(target, make_upload(payload)))

        assert written == len(payload)
        assert run(fs.read_file(target)) == payload

    @pytest.mark.parametrize("payload", [b"", b"\x00\xff\x89PNG\r\n\x1a\n", "été".encode("utf-8")])
    def test_round_trip_arbitrary_bytes(self, tmp_path, payload):
        target = tmp_path / "a.png"
        run(fs.write_uploaded_file(target, make_upload(payload)))
        assert run(fs.read_file(target)) == payload

    def test_write_overwrites(self, tmp_path):
        target = tmp_path / "map1.json"
        run(fs.write_uploaded_file(target, make_upload(b"first version, longer")))
        run(fs.write_uploaded_file(target, make_upload(b"second")))
        assert target.read_bytes() == b"second"

    def test_write_creates_folder_chain(self, tmp_path):
        target = tmp_path / "demo" / "Thumbnails" / "map1.png"
        run(fs.write_uploaded_file(target, make_upload(b"img")))
        assert target.parent.is_dir()

    def test_write_leaves_no_partial_files(self, tmp_path):
        target = tmp_path / "map1.json"
        run(fs.write_uploaded_file(target, make_upload(b"{}")))
        assert sorted(p.name for p in tmp_path.iterdir()) == ["map1.json"]

    def test_write_rejects_oversized_upload(self, tmp_path):
        target = tmp_path / "big.json"
        with pytest.raises(fs.FileSystemError):
            run(fs.write_uploaded_file(target, make_upload(b"x" * 100), max_size=10))
        assert not target.exists()
        assert list(tmp_path.iterdir()) == []

    def test_read_missing(self, tmp_path):
        with pytest.raises(fs.SourceNotFoundError):
            run(fs.read_file(tmp_path / "nope.json"))

    def test_exists(self, tmp_path):
        target = tmp_path / "map1.json"
        assert run(fs.file_exists(target)) is False
        target.write_bytes(b"{}")
        assert run(fs.file_exists(target)) is True
        # a directory is not a stored file
        assert run(fs.file_exists(tmp_path)) is False

    def test_list_creates_missing_folder(self, tmp_path):
        folder = tmp_path / "demo" / "FloorMaps"
        assert run(fs.list_files(folder, ".json")) == []
        assert folder.is_dir()

    def test_list_filters_and_strips_extension(self, tmp_path):
        (tmp_path / "b.json").write_bytes(b"{}")
        (tmp_path / "a.json").write_bytes(b"{}")
        (tmp_path / "a.png").write_bytes(b"img")
        (tmp_path / "notes.txt").write_bytes(b"")
        (tmp_path / "dir.json").mkdir()
        (tmp_path / ".hidden.json").write_bytes(b"{}")
        (tmp_path / ".json").write_bytes(b"{}")

        assert run(fs.list_files(tmp_path, ".json")) == ["a", "b"]
        assert run(fs.list_files(tmp_path, ".png")) == ["a"]

    def test_delete(self, tmp_path):
        target = tmp_path / "map1.json"
        target.write_bytes(b"{}")
        run(fs.delete_file(target))
        assert not target.exists()

        with pytest.raises(fs.SourceNotFoundError):
            run(fs.delete_file(target))

    def test_rename(self, tmp_path):
        src, dst = tmp_path / "map1.json", tmp_path / "map2.json"
        src.write_bytes(b"one")
        run(fs.rename_or_copy(src, dst, TransferMode.RENAME))
        assert not src.exists()
        assert dst.read_bytes() == b"one"

    def test_copy_overwrites_destination(self, tmp_path):
        src, dst = tmp_path / "map1.json", tmp_path / "map2.json"
        src.write_bytes(b"one")
        dst.write_bytes(b"old destination")
        run(fs.rename_or_copy(src, dst, TransferMode.COPY))
        assert src.read_bytes() == b"one"
        assert dst.read_bytes() == b"one"

    def test_transfer_missing_source(self, tmp_path):
        for mode in TransferMode:
            with pytest.raises(fs.SourceNotFoundError):
                run(fs.rename_or_copy(tmp_path / "x.json", tmp_path / "y.json", mode))


class TestStorageServer:
    """Test the facade that maps user requests onto the file store"""

    @pytest.fixture(autouse=True)
    def _storage(self, tmp_path):
        self.root = tmp_path / "UserFiles"
        self.storage = StorageServer(self.root, max_upload_size=1024)

    def test_save_and_load(self):
        run(self.storage.save("demo", "FloorMaps", "map1", ".json", make_upload(b'{"a":1}')))
        assert run(self.storage.load("demo", "FloorMaps", "map1", ".json")) == b'{"a":1}'
        assert (self.root / "demo" / "FloorMaps" / "map1.json").is_file()

    def test_load_missing_message(self):
        with pytest.raises(FileNotFound) as exc_info:
            run(self.storage.load("demo", "FloorMaps", "map9", ".json"))
        assert exc_info.value.message == "File not found:FloorMaps/map9.json"

    def test_delete_twice(self):
        run(self.storage.save("demo", "FloorMaps", "map1", ".json", make_upload(b"{}")))
        run(self.storage.delete("demo", "FloorMaps", "map1", ".json"))
        assert run(self.storage.exists("demo", "FloorMaps", "map1", ".json")) is False

        with pytest.raises(FileNotFound):
            run(self.storage.delete("demo", "FloorMaps", "map1", ".json"))
        assert run(self.storage.exists("demo", "FloorMaps", "map1", ".json")) is False

    def test_list_after_writes_in_any_order(self):
        for name in ("b", "a"):
            run(self.storage.save("demo", "FloorMaps", name, ".json", make_upload(b"{}")))
        assert run(self.storage.list_files("demo", "FloorMaps", ".json")) == ["a", "b"]

    def test_transfer(self):
        run(self.storage.save("demo", "FloorMaps", "map1", ".json", make_upload(b"{}")))

        run(self.storage.transfer("demo", "FloorMaps", "map1", "map2", ".json", TransferMode.COPY))
        assert run(self.storage.exists("demo", "FloorMaps", "map1", ".json"))
        assert run(self.storage.exists("demo", "FloorMaps", "map2", ".json"))

        run(self.storage.transfer("demo", "FloorMaps", "map2", "map3", ".json", TransferMode.RENAME))
        assert not run(self.storage.exists("demo", "FloorMaps", "map2", ".json"))
        assert run(self.storage.exists("demo", "FloorMaps", "map3", ".json"))

    def test_transfer_rejects_bad_destination(self):
        run(self.storage.save("demo", "FloorMaps", "map1", ".json", make_upload(b"{}")))
        with pytest.raises(InvalidName):
            run(self.storage.transfer("demo", "FloorMaps", "map1", "../../escape", ".json",
                                      TransferMode.COPY))

    def test_oversized_upload_is_upload_error(self):
        with pytest.raises(UploadFailed) as exc_info:
            run(self.storage.save("demo", "FloorMaps", "big", ".json", make_upload(b"x" * 2048)))
        assert exc_info.value.message == "Upload error"

    def test_list_rejects_extension(self):
        with pytest.raises(ExtensionNotAllowed):
            run(self.storage.list_files("demo", "FloorMaps", ".txt"))
        assert not self.root.exists()

    def test_locks_released_after_contention(self):
        async def scenario():
            saves = [
                self.storage.save("demo", "FloorMaps", "map1", ".json", make_upload(b"{}"))
                for _ in range(5)
            ]
            deletes = [
                self.storage.delete("demo", "FloorMaps", f"ghost{i}", ".json")
                for i in range(5)
            ]
            return await asyncio.gather(*saves, *deletes, return_exceptions=True)

        results = run(scenario())

        assert all(isinstance(r, FileNotFound) for r in results[5:])
        assert run(self.storage.exists("demo", "FloorMaps", "map1", ".json"))
        assert self.storage._locks == {}
