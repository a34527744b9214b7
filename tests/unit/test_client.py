#!/usr/bin/env python3
"""
Unit tests for the A3t loader facade and the module-level helpers
"""

import asyncio
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

import a3t
from a3t import A3t
from a3t.backends import GitFsBackend, HttpFsBackend, LocalFsBackend, SqliteDbBackend
from a3t.errors import ConfigurationError
from a3t.secret_store import SecretStore


def run(coro):
    return asyncio.run(coro)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("A3T_BUILD_HASH", raising=False)
    monkeypatch.delenv("A3T_NONCE", raising=False)


@pytest.fixture
def assets(tmp_path):
    root = tmp_path / "assets"
    (root / "i18n").mkdir(parents=True)
    (root / "i18n" / "greeting.txt").write_text("Hello", encoding="utf-8")
    (root / "logo.bin").write_bytes(b"\x00\x01\x02")
    return root


@pytest.fixture
def loader(assets):
    return A3t({"fs": {"root_path": str(assets)}}, secret_store=SecretStore())


class StaticDb:
    def __init__(self, answers):
        self.answers = answers

    async def find_override(self, query):
        return self.answers.get(tuple(sorted(query.items())))


class TestSetup:

    def test_default_fs_backend_is_local_assets(self):
        loader = A3t(secret_store=SecretStore())
        backend = loader.get_fs_backend()
        assert isinstance(backend, LocalFsBackend)
        assert backend.root_path == Path("assets")
        assert loader.get_db_backend() is None

    def test_init_with_context(self, assets):
        loader = A3t({"fs": {"rootPath": str(assets)}, "context": {"language": "en"}},
                     secret_store=SecretStore())
        assert loader.get_context().language == "en"

    def test_init_with_sqlite(self, tmp_path):
        loader = A3t({"db": {"sqlite": {"path": str(tmp_path / "o.db")}}}, secret_store=SecretStore())
        assert isinstance(loader.get_db_backend(), SqliteDbBackend)

    def test_init_with_git(self, tmp_path):
        store = SecretStore()
        loader = A3t({"fs": {"git": {"url": "https://github.com/org/assets.git",
                                     "cache_path": str(tmp_path / "cache"),
                                     "scope": "user"}}},
                     secret_store=store)
        backend = loader.get_fs_backend()
        assert isinstance(backend, GitFsBackend)
        assert backend.scope == "user"
        assert backend.secret_store is store

    def test_root_path_wins_over_git(self, assets):
        loader = A3t({"fs": {"root_path": str(assets), "git": {"url": "https://x/r.git"}}},
                     secret_store=SecretStore())
        assert isinstance(loader.get_fs_backend(), LocalFsBackend)

    def test_init_with_http(self):
        loader = A3t({"fs": {"http": {"baseUrl": "https://cdn.example.com"}}}, secret_store=SecretStore())
        assert isinstance(loader.get_fs_backend(), HttpFsBackend)

    def test_invalid_config_raises(self):
        with pytest.raises(ConfigurationError):
            A3t({"fs": {"git": {"branch": "main"}}}, secret_store=SecretStore())

    def test_backend_capability_checks(self, loader):
        with pytest.raises(ConfigurationError):
            loader.set_db_backend(object())
        with pytest.raises(ConfigurationError):
            loader.set_fs_backend(object())

    def test_set_git_fs_backend_keywords(self, loader, tmp_path):
        backend = loader.set_git_fs_backend(repoUrl="https://x/r.git", cachePath=str(tmp_path))
        assert backend.repo_url == "https://x/r.git"
        assert loader.get_fs_backend() is backend

    def test_set_git_fs_backend_requires_url(self, loader):
        with pytest.raises(ConfigurationError):
            loader.set_git_fs_backend({})


class TestGet:

    def test_get_text(self, loader):
        assert run(loader.get("i18n/greeting.txt")) == "Hello"
        assert run(loader.gettext("i18n/greeting.txt")) == "Hello"

    def test_get_binary(self, loader):
        assert run(loader.get_binary("logo.bin")) == b"\x00\x01\x02"

    def test_missing_with_and_without_default(self, loader):
        assert run(loader.get("nope.txt")) is None
        assert run(loader.get("nope.txt", "fallback")) == "fallback"

    def test_override_beats_file(self, loader):
        loader.set_db_backend(StaticDb({(("key", "i18n/greeting.txt"), ("language", "es")): "Hola"}))

        assert run(loader.get("i18n/greeting.txt")) == "Hello"
        assert run(loader.get("i18n/greeting.txt", None, {"language": "es"})) == "Hola"

    def test_get_multiple(self, loader):
        result = run(loader.get_multiple(["i18n/greeting.txt", "nope.txt"], {"nope.txt": "d"}))
        assert result == {"i18n/greeting.txt": "Hello", "nope.txt": "d"}

    def test_get_resolution_reports_source(self, loader):
        first = run(loader.get_resolution("i18n/greeting.txt"))
        second = run(loader.get_resolution("i18n/greeting.txt"))
        assert first.source == "fs"
        assert second.source == "cache"


class TestNonceAndCache:

    def test_increment_nonce_clears_cache(self, loader, assets):
        assert run(loader.get("i18n/greeting.txt")) == "Hello"
        (assets / "i18n" / "greeting.txt").write_text("Hi there", encoding="utf-8")

        assert run(loader.get("i18n/greeting.txt")) == "Hello"

        assert loader.increment_nonce() == 1
        assert loader.get_cache_stats()["size"] == 0
        assert run(loader.get("i18n/greeting.txt")) == "Hi there"

    def test_clear_cache(self, loader):
        run(loader.get("i18n/greeting.txt"))
        assert loader.clear_cache() == 1
        assert loader.get_cache_stats()["size"] == 0

    def test_stats_after_reads(self, loader):
        run(loader.get("i18n/greeting.txt"))
        run(loader.get("i18n/greeting.txt"))
        stats = loader.get_cache_stats()
        assert stats["size"] == 1
        assert stats["hits"] == 1


class TestModuleHelpers:

    @pytest.fixture(autouse=True)
    def fresh_default(self):
        a3t.reset_default()
        yield
        a3t.reset_default()

    def test_module_level_api(self, assets):
        a3t.init({"fs": {"root_path": str(assets)}})
        a3t.set_context({"language": "en"})

        assert run(a3t.get("i18n/greeting.txt")) == "Hello"
        assert run(a3t._("missing", "Default text")) == "Default text"
        assert a3t.get_context().language == "en"
        assert a3t.get_cache_stats()["size"] == 2

        a3t.increment_nonce()
        assert a3t.get_cache_stats()["size"] == 0

    def test_default_instance_is_shared(self):
        assert a3t.get_default() is a3t.get_default()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
