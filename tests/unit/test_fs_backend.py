#!/usr/bin/env python3
"""
Unit tests for the local directory content backend
"""

import asyncio
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from a3t.backends.base import safe_join, is_fs_backend, is_db_backend
from a3t.backends.fs_backend import LocalFsBackend


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def assets(tmp_path):
    root = tmp_path / "assets"
    (root / "i18n").mkdir(parents=True)
    (root / "i18n" / "greeting.txt").write_text("Hello", encoding="utf-8")
    (root / "logo.bin").write_bytes(b"\x89PNG\x00\xff")
    (tmp_path / "secret.txt").write_text("outside")
    return root


class TestLocalFsBackend:

    def test_read_text(self, assets):
        backend = LocalFsBackend(assets)
        assert run(backend.read_text("i18n/greeting.txt")) == "Hello"

    def test_read_binary(self, assets):
        backend = LocalFsBackend(assets)
        assert run(backend.read_binary("logo.bin")) == b"\x89PNG\x00\xff"

    def test_missing_file_is_none(self, assets):
        assert run(LocalFsBackend(assets).read_text("nope.txt")) is None

    def test_invalid_utf8_text_is_none(self, assets):
        assert run(LocalFsBackend(assets).read_text("logo.bin")) is None

    def test_directory_is_none(self, assets):
        assert run(LocalFsBackend(assets).read_text("i18n")) is None

    def test_traversal_is_none(self, assets):
        backend = LocalFsBackend(assets)
        assert run(backend.read_text("../secret.txt")) is None
        assert run(backend.read_text("../../etc/passwd")) is None

    def test_nul_byte_key_is_none(self, assets):
        backend = LocalFsBackend(assets)
        assert run(backend.read_text("i18n/greet\x00ing.txt")) is None
        assert run(backend.read_binary("a\x00b")) is None

    def test_absolute_key_is_none(self, assets, tmp_path):
        backend = LocalFsBackend(assets)
        assert run(backend.read_text(str(tmp_path / "secret.txt"))) is None

    def test_missing_root_is_none(self, tmp_path):
        assert run(LocalFsBackend(tmp_path / "absent").read_text("x")) is None

    def test_satisfies_capability_check(self, assets):
        backend = LocalFsBackend(assets)
        assert is_fs_backend(backend)
        assert not is_db_backend(backend)


class TestSafeJoin:

    def test_inside(self, tmp_path):
        assert safe_join(tmp_path, "a/b.txt") == Path(tmp_path.resolve() / "a" / "b.txt")

    def test_escape(self, tmp_path):
        assert safe_join(tmp_path / "root", "../x") is None

    def test_nul_byte_is_outside(self, tmp_path):
        assert safe_join(tmp_path, "a\x00b") is None

    def test_sibling_prefix_is_outside(self, tmp_path):
        """Test: /tmp/root-evil is not inside /tmp/root."""
        assert safe_join(tmp_path / "root", "../root-evil/x") is None

    def test_symlink_out_is_rejected(self, tmp_path):
        root = tmp_path / "root"
        root.mkdir()
        (tmp_path / "outside.txt").write_text("x")
        (root / "link.txt").symlink_to(tmp_path / "outside.txt")
        assert safe_join(root, "link.txt") is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
