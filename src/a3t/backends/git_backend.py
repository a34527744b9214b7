#!/usr/bin/env python3
"""
Git Content Backend — Assets served from a remote repository

Keeps one local working copy per (repository, scope kind, scope id) and
serves reads from it.

Working copy lifecycle:
- absent          → clone (credentials embedded in the clone URL)
- present, stale  → fetch (refresh interval elapsed since last sync)
- present, fresh  → no network I/O
- after sync      → checkout: commit > tag > branch
- force_refresh() → delete the working copy and clone again

A working copy is valid only if .git exists AND `git status` succeeds.
Anything else is treated as invalid and re-cloned, never repaired.

Local path: <cache_path>/<scope>/<scope id>/<sanitized repo url>
    scope "workspace" → context.workspace (default-workspace)
    scope "user"      → context.user      (default-user)

Credentials: static config, overridden by the secret store keys
    git_username_<k>, git_password_<k>, git_token_<k>
where <k> is the repo URL with every non-alphanumeric char replaced by "_".

Usage:
    backend = GitFsBackend(repo_url="https://github.com/org/assets.git", scope="user")
    text = await backend.read_text("prompts/welcome.txt", context)
"""

import asyncio
import logging
import os
import re
import shutil
import subprocess
import time
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional, Dict, Any, List, Callable, Tuple
from urllib.parse import quote, urlsplit, urlunsplit

from a3t.backends.base import safe_join
from a3t.context import Context
from a3t.errors import ConfigurationError, GitBackendError
from a3t.observability import log_backend
from a3t.secret_store import SecretStore, get_secret_store

logger = logging.getLogger(__name__)

SCOPES = ("workspace", "user")
DEFAULT_SCOPE_IDS = {
    "workspace": "default-workspace",
    "user": "default-user",
}
DEFAULT_CACHE_PATH = ".a3t-git-cache"
DEFAULT_FETCH_INTERVAL_MS = 300_000  # 5 minutes
DEFAULT_GIT_TIMEOUT = 120


def sanitize_repo_name(repo_url: str) -> str:
    """https://github.com/org/assets.git → https-github-com-org-assets-git"""
    name = re.sub(r"[^A-Za-z0-9_-]+", "-", repo_url)
    name = re.sub(r"-+", "-", name)
    return name.strip("-")


def secret_key_suffix(repo_url: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "_", repo_url)


@dataclass(frozen=True)
class GitCredentials:
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "GitCredentials":
        data = data or {}
        return cls(
            username=data.get("username"),
            password=data.get("password"),
            token=data.get("token"),
        )

    def overridden_by(self, **values: Optional[str]) -> "GitCredentials":
        """Non-empty ``values`` win over the current fields."""
        merged = asdict(self)
        merged.update({k: v for k, v in values.items() if v})
        return GitCredentials(**merged)

    def __repr__(self) -> str:
        return (
            f"GitCredentials(username={self.username!r}, "
            f"password={'***' if self.password else None}, "
            f"token={'***' if self.token else None})"
        )


def authenticated_url(repo_url: str, credentials: GitCredentials) -> str:
    """
    Embed credentials into an http(s) URL.

    username+password → user:pass@host
    token             → token:x-oauth-basic@host
    Other schemes (ssh, file, local paths) are returned unchanged.
    """
    parts = urlsplit(repo_url)
    if parts.scheme not in ("http", "https"):
        return repo_url

    if credentials.username and credentials.password:
        userinfo = f"{quote(credentials.username, safe='')}:{quote(credentials.password, safe='')}"
    elif credentials.token:
        userinfo = f"{quote(credentials.token, safe='')}:x-oauth-basic"
    else:
        return repo_url

    host = parts.netloc.rpartition("@")[2]
    return urlunsplit((parts.scheme, f"{userinfo}@{host}", parts.path, parts.query, parts.fragment))


class GitFsBackend:
    """
    Content backend backed by a git working copy per scope.

    Concurrent ensure_repository() calls for the same local path are
    serialized with a per-path lock, so simultaneous first reads clone once.

    Resolution cache keys do not include context extras such as ``user``.
    With scope="user", two users who share language, workspace, system,
    build hash and nonce share the cached result of the first read. Pass a
    distinguishing core field (e.g. workspace) per user, or call
    increment_nonce() after switching users, when their content differs.
    """

    name = "git"

    def __init__(
        self,
        repo_url: str = None,
        branch: str = None,
        tag: str = None,
        commit: str = None,
        cache_path: str = None,
        scope: str = "workspace",
        credentials: Optional[Dict[str, Any]] = None,
        auto_fetch: bool = True,
        fetch_interval_ms: int = None,
        secret_store: Optional[SecretStore] = None,
        context_provider: Optional[Callable[[], Context]] = None,
        git_timeout: int = None,
    ):
        if not repo_url:
            raise ConfigurationError("GitFsBackend requires repo_url")
        if scope not in SCOPES:
            raise ConfigurationError(f"GitFsBackend scope must be one of {SCOPES}, got {scope!r}")

        self.repo_url = repo_url
        self.branch = branch or "main"
        self.tag = tag
        self.commit = commit
        self.cache_path = Path(cache_path or DEFAULT_CACHE_PATH)
        self.scope = scope
        self.credentials = credentials if isinstance(credentials, GitCredentials) \
            else GitCredentials.from_dict(credentials)
        self.auto_fetch = auto_fetch
        self.fetch_interval_ms = DEFAULT_FETCH_INTERVAL_MS if fetch_interval_ms is None else int(fetch_interval_ms)
        self.git_timeout = git_timeout or DEFAULT_GIT_TIMEOUT

        self._secret_store = secret_store
        self._context_provider = context_provider or Context
        self.last_fetch: Dict[str, float] = {}
        self._locks: Dict[str, Tuple[asyncio.AbstractEventLoop, asyncio.Lock]] = {}

        logger.info(
            f"GitFsBackend initialized (repo={self.repo_url}, ref={self.ref}, "
            f"scope={self.scope}, cache={self.cache_path})"
        )

    @classmethod
    def from_config(cls, config, **kwargs) -> "GitFsBackend":
        """Build from an a3t.config.GitRepoConfig."""
        return cls(
            repo_url=config.url,
            branch=config.branch,
            tag=config.tag,
            commit=config.commit,
            cache_path=config.cache_path,
            scope=config.scope,
            credentials=config.credentials,
            auto_fetch=config.auto_fetch,
            fetch_interval_ms=config.fetch_interval_ms,
            **kwargs,
        )

    def __repr__(self) -> str:
        return f"GitFsBackend(repo={self.repo_url}, ref={self.ref}, scope={self.scope})"

    @property
    def secret_store(self) -> SecretStore:
        return self._secret_store or get_secret_store()

    @property
    def ref(self) -> str:
        """The ref that checkout uses: commit > tag > branch."""
        if self.commit:
            return self.commit
        if self.tag:
            return f"tags/{self.tag}"
        return self.branch

    # ── Paths ────────────────────────────────────────────────────

    def scope_id(self, context: Optional[Context] = None) -> str:
        context = context or self._context_provider()
        value = context.get(self.scope)
        return str(value) if value not in (None, "") else DEFAULT_SCOPE_IDS[self.scope]

    def get_local_repo_path(self, context: Optional[Context] = None) -> Path:
        """
        Working copy location for the given (or ambient) context.

        Raises GitBackendError if the scope id would place it outside the
        cache root.
        """
        scope_id = self.scope_id(context)
        if scope_id in (".", "..") or "/" in scope_id or "\\" in scope_id:
            raise GitBackendError(f"invalid {self.scope} id for working copy path: {scope_id!r}")
        relative = os.path.join(self.scope, scope_id, sanitize_repo_name(self.repo_url))
        path = safe_join(self.cache_path, relative)
        if path is None or path == Path(os.path.realpath(self.cache_path)):
            raise GitBackendError(f"working copy path escapes cache root: {relative}")
        return path

    # ── Credentials ──────────────────────────────────────────────

    async def get_auth_options(self) -> GitCredentials:
        suffix = secret_key_suffix(self.repo_url)
        store = self.secret_store
        return self.credentials.overridden_by(
            username=await store.get_secret(f"git_username_{suffix}"),
            password=await store.get_secret(f"git_password_{suffix}"),
            token=await store.get_secret(f"git_token_{suffix}"),
        )

    # ── Git plumbing ─────────────────────────────────────────────

    def _run_git(self, args: List[str], cwd: Optional[Path] = None,
                 secrets: tuple = ()) -> subprocess.CompletedProcess:
        env = dict(os.environ, GIT_TERMINAL_PROMPT="0")
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.git_timeout,
                env=env,
            )
        except subprocess.TimeoutExpired:
            raise GitBackendError(f"git {args[0]} timed out after {self.git_timeout}s")
        except OSError as e:
            raise GitBackendError(f"git {args[0]} could not run: {e}")

        if result.returncode != 0:
            message = (result.stderr or result.stdout).strip()
            for secret in secrets:
                message = message.replace(secret, self.repo_url)
            raise GitBackendError(f"git {args[0]} failed ({result.returncode}): {message}")
        return result

    async def _git(self, *args: str, cwd: Optional[Path] = None,
                   secrets: tuple = ()) -> subprocess.CompletedProcess:
        return await asyncio.to_thread(self._run_git, list(args), cwd, secrets)

    async def is_repo_valid(self, repo_path: Path) -> bool:
        if not (Path(repo_path) / ".git").exists():
            return False
        try:
            await self._git("status", "--porcelain", cwd=repo_path)
            return True
        except GitBackendError as e:
            logger.debug(f"Working copy at {repo_path} is invalid: {e}")
            return False

    # ── Lifecycle ────────────────────────────────────────────────

    def _lock_for(self, repo_path: Path) -> asyncio.Lock:
        """Per-path lock, recreated when called from a different event loop."""
        loop = asyncio.get_running_loop()
        owner, lock = self._locks.get(str(repo_path), (None, None))
        if owner is not loop:
            lock = asyncio.Lock()
            self._locks[str(repo_path)] = (loop, lock)
        return lock

    def _is_fresh(self, repo_path: Path, now: float) -> bool:
        last = self.last_fetch.get(str(repo_path))
        if last is None:
            return False
        if not self.auto_fetch:
            return True
        return (now - last) * 1000 < self.fetch_interval_ms

    async def ensure_repository(self, context: Optional[Context] = None) -> Path:
        """Clone, fetch or reuse the working copy; returns its path."""
        repo_path = self.get_local_repo_path(context)
        async with self._lock_for(repo_path):
            return await self._ensure(repo_path)

    async def _ensure(self, repo_path: Path) -> Path:
        now = time.time()
        valid = await self.is_repo_valid(repo_path)
        if valid and self._is_fresh(repo_path, now):
            return repo_path

        auth = await self.get_auth_options()
        auth_url = authenticated_url(self.repo_url, auth)
        secrets = (auth_url,) if auth_url != self.repo_url else ()

        try:
            if not valid:
                await self._clone(repo_path, auth_url, secrets)
            else:
                await self._fetch(repo_path, auth_url, secrets)
            await self._checkout(repo_path)
        except GitBackendError as e:
            log_backend(self.name, "ensure_repository", self.repo_url, False, e)
            raise

        self.last_fetch[str(repo_path)] = now
        return repo_path

    async def _clone(self, repo_path: Path, auth_url: str, secrets: tuple) -> None:
        logger.info(f"Cloning {self.repo_url} into {repo_path}")
        if repo_path.exists():
            await asyncio.to_thread(shutil.rmtree, repo_path, True)
        repo_path.parent.mkdir(parents=True, exist_ok=True)

        await self._git("clone", "--quiet", auth_url, str(repo_path), secrets=secrets)
        if secrets:
            # keep credentials out of .git/config
            await self._git("remote", "set-url", "origin", self.repo_url, cwd=repo_path)
        log_backend(self.name, "clone", self.repo_url, True)

    async def _fetch(self, repo_path: Path, auth_url: str, secrets: tuple) -> None:
        await self._git(
            "fetch", "--quiet", "--tags", "--force", auth_url,
            "+refs/heads/*:refs/remotes/origin/*",
            cwd=repo_path, secrets=secrets,
        )
        log_backend(self.name, "fetch", self.repo_url, True)

    async def _checkout(self, repo_path: Path) -> None:
        if self.commit or self.tag:
            await self._git("checkout", "--quiet", "--force", self.ref, cwd=repo_path)
        else:
            await self._git(
                "checkout", "--quiet", "--force", "-B", self.branch, f"origin/{self.branch}",
                cwd=repo_path,
            )
        log_backend(self.name, "checkout", self.ref, True)

    async def force_refresh(self, context: Optional[Context] = None) -> Path:
        """Delete the working copy and clone it again."""
        repo_path = self.get_local_repo_path(context)
        async with self._lock_for(repo_path):
            self.last_fetch.pop(str(repo_path), None)
            try:
                await asyncio.to_thread(shutil.rmtree, repo_path)
                log_backend(self.name, "force_refresh", self.repo_url, True)
            except FileNotFoundError:
                pass
            except OSError as e:
                log_backend(self.name, "force_refresh", self.repo_url, False, e)
            return await self._ensure(repo_path)

    # ── Reads ────────────────────────────────────────────────────

    async def _read(self, key: str, operation: str, context: Optional[Context]) -> Optional[bytes]:
        try:
            repo_path = await self.ensure_repository(context)
        except GitBackendError as e:
            log_backend(self.name, operation, key, False, e)
            return None

        asset_path = safe_join(repo_path, key)
        if asset_path is None or asset_path.relative_to(repo_path).parts[:1] == (".git",):
            log_backend(self.name, operation, key, False)
            return None

        try:
            data = await asyncio.to_thread(asset_path.read_bytes)
        except FileNotFoundError:
            log_backend(self.name, operation, key, False)
            return None
        except OSError as e:
            log_backend(self.name, operation, key, False, e)
            return None

        log_backend(self.name, operation, key, True)
        return data

    async def read_text(self, key: str, context: Optional[Context] = None) -> Optional[str]:
        data = await self._read(key, "read_text", context)
        if data is None:
            return None
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            log_backend(self.name, "read_text", key, False, e)
            return None

    async def read_binary(self, key: str, context: Optional[Context] = None) -> Optional[bytes]:
        return await self._read(key, "read_binary", context)

    # ── Introspection ────────────────────────────────────────────

    async def get_repo_info(self, context: Optional[Context] = None) -> Dict[str, Any]:
        try:
            repo_path = self.get_local_repo_path(context)
        except GitBackendError as e:
            return {"valid": False, "exists": False, "path": None, "error": str(e)}

        if not await self.is_repo_valid(repo_path):
            return {"valid": False, "exists": repo_path.exists(), "path": str(repo_path)}

        try:
            branch = (await self._git("rev-parse", "--abbrev-ref", "HEAD", cwd=repo_path)).stdout.strip()
            commit = (await self._git("rev-parse", "HEAD", cwd=repo_path)).stdout.strip()
            status = (await self._git("status", "--porcelain", cwd=repo_path)).stdout.strip()
        except GitBackendError as e:
            log_backend(self.name, "get_repo_info", self.repo_url, False, e)
            return {"valid": False, "exists": True, "path": str(repo_path), "error": str(e)}

        return {
            "valid": True,
            "exists": True,
            "path": str(repo_path),
            "branch": branch,
            "last_commit": commit,
            "modified": bool(status),
            "last_fetch": self.last_fetch.get(str(repo_path)),
        }
