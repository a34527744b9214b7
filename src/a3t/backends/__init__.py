"""
a3t Backends

Provides:
- Capability contracts (DbBackend, FsBackend)
- SqliteDbBackend — context-scoped override store
- LocalFsBackend — assets from a local directory
- GitFsBackend — assets from a git working copy per workspace/user
- HttpFsBackend — assets fetched over HTTP(S)
"""

from .base import DbBackend, FsBackend, is_db_backend, is_fs_backend, safe_join
from .db_backend import SqliteDbBackend
from .fs_backend import LocalFsBackend
from .git_backend import GitFsBackend, GitCredentials, authenticated_url, sanitize_repo_name
from .http_backend import HttpFsBackend

__all__ = [
    'DbBackend', 'FsBackend', 'is_db_backend', 'is_fs_backend', 'safe_join',
    'SqliteDbBackend',
    'LocalFsBackend',
    'GitFsBackend', 'GitCredentials', 'authenticated_url', 'sanitize_repo_name',
    'HttpFsBackend',
]
