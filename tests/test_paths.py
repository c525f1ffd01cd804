"""
Tests for stored-file path resolution and traversal safety
"""

import pytest
import tempfile
import shutil
from pathlib import Path

from hdstore.errors import ExtensionNotAllowed, InvalidName
from hdstore.paths import (
    PathResolver, PathTraversalError, check_extension, display_path, safe_join,
    validate_component,
)


class TestPathResolver:
    """Test resolution of {user, folder, file, extension} onto disk"""

    def setup_method(self):
        """Setup test environment"""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.root_path = self.temp_dir / "UserFiles"
        self.root_path.mkdir(parents=True)
        self.resolver = PathResolver(self.root_path)

    def teardown_method(self):
        """Cleanup test environment"""
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def test_resolve_layout(self):
        """Files land under root/user/folder/name+ext"""

        result = self.resolver.resolve("demo", "FloorMaps", "map1", ".json")
        expected = self.root_path / "demo" / "FloorMaps" / "map1.json"
        assert result == expected.resolve()

        result = self.resolver.resolve("demo", "Thumbnails", "map1", ".png")
        expected = self.root_path / "demo" / "Thumbnails" / "map1.png"
        assert result == expected.resolve()

    def test_resolve_is_deterministic(self):
        first = self.resolver.resolve("demo", "FloorMaps", "map1", ".json")
        second = self.resolver.resolve("demo", "FloorMaps", "map1", ".json")
        assert first == second

    def test_users_never_share_a_root(self):
        demo = self.resolver.resolve("demo", "FloorMaps", "map1", ".json")
        alice = self.resolver.resolve("alice", "FloorMaps", "map1", ".json")
        assert demo != alice
        assert demo.is_relative_to(self.resolver.user_root("demo"))
        assert not alice.is_relative_to(self.resolver.user_root("demo"))

    def test_folder_path(self):
        result = self.resolver.folder_path("demo", "FloorMaps")
        assert result == (self.root_path / "demo" / "FloorMaps").resolve()

    @pytest.mark.parametrize("extension", [".exe", ".JSON", "json", ".json ", ".php", "", ".jpeg"])
    def test_extension_outside_allow_list(self, extension):
        """Anything but an exact allow-list match is refused"""

        with pytest.raises(ExtensionNotAllowed):
            self.resolver.resolve("demo", "FloorMaps", "map1", extension)

    def test_extension_checked_before_touching_disk(self):
        self.resolver.resolve("demo", "FloorMaps", "map1", ".json")
        with pytest.raises(ExtensionNotAllowed):
            self.resolver.resolve("demo", "FloorMaps", "map1", ".txt")
        assert list(self.root_path.iterdir()) == []

    @pytest.mark.parametrize("name", [
        "..", ".", "", "../map1", "a/b", "a\\b", "map\x00", " map1", "map1 ", "c:map",
    ])
    def test_traversal_file_names_rejected(self, name):
        with pytest.raises(InvalidName):
            self.resolver.resolve("demo", "FloorMaps", name, ".json")

    @pytest.mark.parametrize("name", ["..", "../demo2", "FloorMaps/..", "/etc", ""])
    def test_traversal_folder_names_rejected(self, name):
        with pytest.raises(InvalidName):
            self.resolver.resolve("demo", name, "map1", ".json")

    def test_symlink_escape_rejected(self):
        """A folder symlinked outside the user root cannot be used"""

        try:
            outside_dir = self.temp_dir / "outside"
            outside_dir.mkdir()
            user_root = self.root_path / "demo"
            user_root.mkdir()
            (user_root / "Linked").symlink_to(outside_dir)
        except OSError:
            pytest.skip("Symlinks not supported on this system")

        with pytest.raises(InvalidName):
            self.resolver.resolve("demo", "Linked", "map1", ".json")

    def test_unicode_and_spaces_allowed(self):
        result = self.resolver.resolve("demo", "Floor Maps", "maison étage 1", ".json")
        expected = self.root_path / "demo" / "Floor Maps" / "maison étage 1.json"
        assert result == expected.resolve()


class TestHelpers:
    """Test module-level helpers"""

    def test_check_extension_returns_value(self):
        for ext in (".json", ".jpg", ".png"):
            assert check_extension(ext) == ext

    def test_validate_component(self):
        assert validate_component("FloorMaps") == "FloorMaps"
        assert validate_component("map-v1.2_final") == "map-v1.2_final"

        for bad in ("", ".", "..", "a/b", "a|b", "a*b", "a?b", 'a"b'):
            with pytest.raises(InvalidName):
                validate_component(bad)

    def test_safe_join_blocks_parent_segments(self, tmp_path):
        with pytest.raises(PathTraversalError):
            safe_join(tmp_path, "..")
        with pytest.raises(PathTraversalError):
            safe_join(tmp_path, "a/../../b")
        with pytest.raises(PathTraversalError):
            safe_join(tmp_path, "a\\..\\b")

    def test_safe_join_normal(self, tmp_path):
        assert safe_join(tmp_path, "demo", "FloorMaps") == (tmp_path / "demo" / "FloorMaps").resolve()

    def test_display_path(self):
        assert display_path("FloorMaps", "map1", ".json") == "FloorMaps/map1.json"
