"""
a3t — Universal, context-aware asset loader

Provides:
- A3t — loader facade (cache → DB overrides → content backend → default)
- Module-level helpers bound to a process-wide default loader
- Backends: SqliteDbBackend, LocalFsBackend, GitFsBackend, HttpFsBackend
- SecretStore — credential providers for git-backed content
"""

from typing import Any, Dict, List, Mapping, Optional

from .backends import (
    DbBackend, FsBackend, SqliteDbBackend, LocalFsBackend, GitFsBackend, HttpFsBackend,
)
from .cache import ForeverCache, CacheKeyGenerator
from .client import A3t, get_default, reset_default
from .config import A3tConfig, load_config
from .context import Context, ContextStore, get_db_query_hierarchy
from .errors import A3tError, ConfigurationError, BackendError, GitBackendError, SecretWriteNotSupported
from .observability import init_logging
from .resolver import MISSING, Resolution, Resolver, Found, NotFound, Failed
from .secret_store import (
    SecretStore, SecretProvider, EnvironmentProvider, MemoryProvider, CompositeProvider,
    get_secret_store,
)


async def get(key: str, default: Any = MISSING,
              context_override: Optional[Mapping[str, Any]] = None) -> Any:
    return await get_default().get(key, default, context_override)


async def gettext(key: str, default: Any = MISSING,
                  context_override: Optional[Mapping[str, Any]] = None) -> Any:
    return await get_default().gettext(key, default, context_override)


_ = gettext


async def get_binary(key: str, default: Any = MISSING,
                     context_override: Optional[Mapping[str, Any]] = None) -> Optional[bytes]:
    return await get_default().get_binary(key, default, context_override)


async def get_multiple(keys: List[str], defaults: Optional[Mapping[str, Any]] = None,
                       context_override: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    return await get_default().get_multiple(keys, defaults, context_override)


def init(config=None) -> None:
    get_default().init(config)


def set_context(context: Optional[Mapping[str, Any]] = None) -> Context:
    return get_default().set_context(context)


def get_context() -> Context:
    return get_default().get_context()


def increment_nonce() -> int:
    return get_default().increment_nonce()


def clear_cache() -> int:
    return get_default().clear_cache()


def get_cache_stats() -> Dict[str, Any]:
    return get_default().get_cache_stats()


__all__ = [
    'A3t', 'get_default', 'reset_default',
    'get', 'gettext', '_', 'get_binary', 'get_multiple',
    'init', 'set_context', 'get_context', 'increment_nonce', 'clear_cache', 'get_cache_stats',
    'A3tConfig', 'load_config', 'init_logging',
    'Context', 'ContextStore', 'get_db_query_hierarchy',
    'ForeverCache', 'CacheKeyGenerator',
    'Resolver', 'Resolution', 'MISSING', 'Found', 'NotFound', 'Failed',
    'DbBackend', 'FsBackend', 'SqliteDbBackend', 'LocalFsBackend', 'GitFsBackend', 'HttpFsBackend',
    'SecretStore', 'SecretProvider', 'EnvironmentProvider', 'MemoryProvider', 'CompositeProvider',
    'get_secret_store',
    'A3tError', 'ConfigurationError', 'BackendError', 'GitBackendError', 'SecretWriteNotSupported',
]
