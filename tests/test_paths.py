"""Tests for destination path normalization and validation."""

import pytest

from stoz.models import StorageMedium, StorageTarget
from stoz.paths import (
    MAX_SUB_PATH_LENGTH,
    normalize_sub_path,
    resolve,
    resolve_base_path,
    validate_sub_path,
)


@pytest.fixture
def hdd():
    return StorageTarget(name="HDD", path="/media/HDD", medium=StorageMedium.HDD, health=True)


class TestNormalizeSubPath:
    @pytest.mark.parametrize("raw, expected", [
        ("", ""),
        ("/", ""),
        ("backup", "/backup"),
        ("/backup", "/backup"),
        ("backup/", "/backup"),
        ("//backup//2024///", "/backup/2024"),
        ("  photos  ", "/photos"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_sub_path(raw) == expected

    @pytest.mark.parametrize("raw", ["a", "/a/b/", "a//b", "///", "x/y/z/"])
    def test_normalize_is_idempotent(self, raw):
        once = normalize_sub_path(raw)
        assert normalize_sub_path(once) == once


class TestValidateSubPath:
    def test_empty_is_valid(self):
        assert validate_sub_path("") is None

    @pytest.mark.parametrize("raw", ["..", "../etc", "a/../b", "/a/.."])
    def test_parent_traversal_rejected(self, raw):
        assert validate_sub_path(raw) == "Path cannot contain .."

    def test_length_limit(self):
        assert validate_sub_path("a" * MAX_SUB_PATH_LENGTH) is None
        assert validate_sub_path("a" * (MAX_SUB_PATH_LENGTH + 1)) is not None


class TestResolveBasePath:
    def test_storage_plus_sub_path(self, hdd):
        assert resolve_base_path(hdd, "backup/") == "/media/HDD/backup"

    def test_empty_sub_path_yields_storage_path(self, hdd):
        assert resolve_base_path(hdd, "") == "/media/HDD"

    def test_trailing_separator_on_storage_collapsed(self):
        storage = StorageTarget(name="USB", path="/media/USB/", health=True)
        assert resolve_base_path(storage, "/x") == "/media/USB/x"

    def test_root_storage(self):
        storage = StorageTarget(name="root", path="/", health=True)
        assert resolve_base_path(storage, "") == "/"
        assert resolve_base_path(storage, "data") == "/data"

    def test_manual_mode_uses_sub_path(self):
        assert resolve_base_path(None, "DATA/backup") == "/DATA/backup"

    def test_invalid_sub_path_keeps_current_base_path(self, hdd):
        resolution = resolve(hdd, "../etc", "/media/HDD/old")
        assert not resolution.valid
        assert resolution.base_path == "/media/HDD/old"

    def test_valid_resolution(self, hdd):
        resolution = resolve(hdd, "new", "/media/HDD/old")
        assert resolution.valid
        assert resolution.base_path == "/media/HDD/new"
