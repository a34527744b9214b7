#!/usr/bin/env python3
"""
a3t Client — Context-aware asset loading

Ties the pieces together:

  ContextStore  → ambient default context (per-call overrides on top)
  ForeverCache  → one entry per (key, context), cleared by nonce increments
  Resolver      → DB overrides → content backend → default
  SecretStore   → credentials for git-backed content

Usage:
    assets = A3t({"fs": {"root_path": "assets"}, "context": {"language": "en"}})
    greeting = await assets.get("i18n/greeting.txt", "Hello")
    spanish = await assets.get("i18n/greeting.txt", "Hola", {"language": "es"})
"""

import logging
from typing import Optional, Dict, Any, List, Mapping, Union

from a3t.backends.base import is_db_backend, is_fs_backend
from a3t.backends.db_backend import SqliteDbBackend
from a3t.backends.fs_backend import LocalFsBackend
from a3t.backends.git_backend import GitFsBackend
from a3t.backends.http_backend import HttpFsBackend
from a3t.cache.cache import ForeverCache
from a3t.config import A3tConfig, GitRepoConfig, normalize_keys
from a3t.context import Context, ContextStore
from a3t.errors import ConfigurationError
from a3t.observability import init_logging
from a3t.resolver import MISSING, Resolution, Resolver
from a3t.secret_store import SecretStore, get_secret_store

logger = logging.getLogger(__name__)

DEFAULT_ASSETS_ROOT = "assets"


class A3t:
    """
    Asset loader facade.

    Resolution never raises: a missing asset with no default comes back as
    None. Only setup calls (init, set_*_backend) raise ConfigurationError.
    """

    def __init__(self, config: Union[Dict[str, Any], A3tConfig, None] = None,
                 secret_store: Optional[SecretStore] = None):
        self.context_store = ContextStore()
        self.cache = ForeverCache()
        self.secret_store = secret_store or get_secret_store()
        self.resolver = Resolver(
            self.context_store,
            self.cache,
            fs_backend=LocalFsBackend(DEFAULT_ASSETS_ROOT),
        )
        if config is not None:
            self.init(config)

    def __repr__(self) -> str:
        return (
            f"A3t(db={self.resolver.db_backend!r}, fs={self.resolver.fs_backend!r}, "
            f"cached={len(self.cache)})"
        )

    # ── Setup ────────────────────────────────────────────────────

    def init(self, config: Union[Dict[str, Any], A3tConfig, None] = None) -> None:
        """Apply a configuration. Invalid config raises ConfigurationError."""
        if not isinstance(config, A3tConfig):
            config = A3tConfig.from_dict(config or {})

        if config.logging is not None:
            init_logging(config.logging.enabled, config.logging.level)

        if config.db is not None:
            if config.db.sqlite is not None:
                self.set_sqlite_db_backend(config.db.sqlite.path, config.db.sqlite.table)
            elif config.db.backend is not None:
                self.set_db_backend(config.db.backend)

        fs = config.fs
        if fs is None or not any((fs.root_path, fs.git, fs.http, fs.backend)):
            self.set_local_fs_backend(DEFAULT_ASSETS_ROOT)
        elif fs.root_path:
            self.set_local_fs_backend(fs.root_path)
        elif fs.git is not None:
            self.set_git_fs_backend(fs.git)
        elif fs.http is not None:
            self.set_http_fs_backend(fs.http.base_url, fs.http.timeout)
        else:
            self.set_fs_backend(fs.backend)

        if config.context:
            self.set_context(config.context)

        logger.info(f"a3t initialized: {self!r}")

    def set_db_backend(self, backend) -> None:
        if backend is not None and not is_db_backend(backend):
            raise ConfigurationError("DB backend must implement find_override(query)")
        self.resolver.db_backend = backend

    def set_sqlite_db_backend(self, db_path: str = None, table: str = "assets") -> SqliteDbBackend:
        backend = SqliteDbBackend(db_path, table)
        self.set_db_backend(backend)
        return backend

    def get_db_backend(self):
        return self.resolver.db_backend

    def set_fs_backend(self, backend) -> None:
        if backend is not None and not is_fs_backend(backend):
            raise ConfigurationError("FS backend must implement read_text(key) and read_binary(key)")
        self.resolver.fs_backend = backend

    def set_local_fs_backend(self, root_path: str = DEFAULT_ASSETS_ROOT) -> LocalFsBackend:
        backend = LocalFsBackend(root_path)
        self.set_fs_backend(backend)
        return backend

    def set_git_fs_backend(self, config: Union[GitRepoConfig, Dict[str, Any], None] = None,
                           **kwargs) -> GitFsBackend:
        """Serve content from a git repository (GitRepoConfig, dict or keyword args)."""
        if isinstance(config, GitRepoConfig):
            backend = GitFsBackend.from_config(
                config,
                secret_store=self.secret_store,
                context_provider=self.context_store.get_context,
            )
        else:
            options = normalize_keys(dict(config or {}, **kwargs))
            if "url" in options:
                options["repo_url"] = options.pop("url")
            options.setdefault("secret_store", self.secret_store)
            options.setdefault("context_provider", self.context_store.get_context)
            backend = GitFsBackend(**options)
        self.set_fs_backend(backend)
        return backend

    def set_http_fs_backend(self, base_url: str, timeout: float = 10) -> HttpFsBackend:
        backend = HttpFsBackend(base_url, timeout)
        self.set_fs_backend(backend)
        return backend

    def get_fs_backend(self):
        return self.resolver.fs_backend

    # ── Context ──────────────────────────────────────────────────

    def set_context(self, context: Optional[Mapping[str, Any]] = None) -> Context:
        return self.context_store.set_context(context)

    def get_context(self) -> Context:
        return self.context_store.get_context()

    def increment_nonce(self) -> int:
        """
        Bump the nonce and drop every cached resolution.

        No await between the two steps: no coroutine can see the new nonce
        alongside stale entries.
        """
        nonce = self.context_store.increment_nonce()
        self.cache.clear()
        logger.info(f"Nonce incremented to {nonce}")
        return nonce

    # ── Resolution ───────────────────────────────────────────────

    async def get(self, key: str, default: Any = MISSING,
                  context_override: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.resolver.resolve(key, default, context_override)

    async def gettext(self, key: str, default: Any = MISSING,
                      context_override: Optional[Mapping[str, Any]] = None) -> Any:
        """i18n-style alias of get()."""
        return await self.get(key, default, context_override)

    async def get_binary(self, key: str, default: Any = MISSING,
                         context_override: Optional[Mapping[str, Any]] = None) -> Optional[bytes]:
        return await self.resolver.resolve(key, default, context_override, binary=True)

    async def get_multiple(self, keys: List[str], defaults: Optional[Mapping[str, Any]] = None,
                           context_override: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        return await self.resolver.resolve_multiple(keys, defaults, context_override)

    async def get_resolution(self, key: str, default: Any = MISSING,
                             context_override: Optional[Mapping[str, Any]] = None,
                             binary: bool = False) -> Resolution:
        """Like get(), but returns where the value came from and what failed."""
        return await self.resolver.resolve_detailed(key, default, context_override, binary)

    # ── Cache ────────────────────────────────────────────────────

    def clear_cache(self) -> int:
        return self.cache.clear()

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.cache.stats()


_default_instance = None


def get_default() -> A3t:
    """Get or create the process-wide loader."""
    global _default_instance
    if _default_instance is None:
        _default_instance = A3t()
    return _default_instance


def reset_default() -> None:
    global _default_instance
    _default_instance = None
