"""Configuration loader for a3t."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from jsonschema import Draft7Validator

from a3t.errors import ConfigurationError

# camelCase spellings from older configs → canonical keys
ALIASES = {
    "rootPath": "root_path",
    "gitRepo": "git",
    "repoUrl": "url",
    "cachePath": "cache_path",
    "autoFetch": "auto_fetch",
    "fetchIntervalMs": "fetch_interval_ms",
    "fetchInterval": "fetch_interval_ms",
    "baseUrl": "base_url",
}

CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "db": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "backend": {},
                "sqlite": {
                    "type": "object",
                    "additionalProperties": False,
                    "properties": {
                        "path": {"type": "string", "minLength": 1},
                        "table": {"type": "string", "pattern": "^[A-Za-z_][A-Za-z0-9_]*$"},
                    },
                },
            },
        },
        "fs": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "root_path": {"type": "string", "minLength": 1},
                "backend": {},
                "git": {
                    "type": "object",
                    "additionalProperties": False,
                    "required": ["url"],
                    "properties": {
                        "url": {"type": "string", "minLength": 1},
                        "branch": {"type": "string", "minLength": 1},
                        "tag": {"type": "string", "minLength": 1},
                        "commit": {"type": "string", "minLength": 1},
                        "scope": {"type": "string", "enum": ["workspace", "user"]},
                        "cache_path": {"type": "string", "minLength": 1},
                        "credentials": {
                            "type": "object",
                            "additionalProperties": False,
                            "properties": {
                                "username": {"type": "string"},
                                "password": {"type": "string"},
                                "token": {"type": "string"},
                            },
                        },
                        "auto_fetch": {"type": "boolean"},
                        "fetch_interval_ms": {"type": "integer", "minimum": 0},
                    },
                },
                "http": {
                    "type": "object",
                    "additionalProperties": False,
                    "required": ["base_url"],
                    "properties": {
                        "base_url": {"type": "string", "minLength": 1},
                        "timeout": {"type": "number", "exclusiveMinimum": 0},
                    },
                },
            },
        },
        "context": {"type": "object"},
        "logging": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "enabled": {"type": "boolean"},
                "level": {
                    "type": "string",
                    "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                },
            },
        },
    },
}

_validator = Draft7Validator(CONFIG_SCHEMA)


@dataclass(frozen=True)
class GitRepoConfig:
    url: str
    branch: str = "main"
    tag: Optional[str] = None
    commit: Optional[str] = None
    scope: str = "workspace"
    cache_path: str = ".a3t-git-cache"
    credentials: Dict[str, str] = field(default_factory=dict)
    auto_fetch: bool = True
    fetch_interval_ms: int = 300_000

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GitRepoConfig":
        return cls(
            url=data["url"],
            branch=data.get("branch", "main"),
            tag=data.get("tag"),
            commit=data.get("commit"),
            scope=data.get("scope", "workspace"),
            cache_path=data.get("cache_path", ".a3t-git-cache"),
            credentials=dict(data.get("credentials", {})),
            auto_fetch=bool(data.get("auto_fetch", True)),
            fetch_interval_ms=int(data.get("fetch_interval_ms", 300_000)),
        )


@dataclass(frozen=True)
class HttpConfig:
    base_url: str
    timeout: float = 10.0


@dataclass(frozen=True)
class SqliteConfig:
    path: str
    table: str = "assets"


@dataclass(frozen=True)
class FsConfig:
    root_path: Optional[str] = None
    git: Optional[GitRepoConfig] = None
    http: Optional[HttpConfig] = None
    backend: Any = None


@dataclass(frozen=True)
class DbConfig:
    sqlite: Optional[SqliteConfig] = None
    backend: Any = None


@dataclass(frozen=True)
class LoggingConfig:
    enabled: bool = True
    level: str = "INFO"


@dataclass(frozen=True)
class A3tConfig:
    db: Optional[DbConfig] = None
    fs: Optional[FsConfig] = None
    context: Dict[str, Any] = field(default_factory=dict)
    logging: Optional[LoggingConfig] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "A3tConfig":
        data = normalize_keys(data or {})
        validate_config(data)

        db = None
        if "db" in data:
            db_data = data["db"]
            sqlite = db_data.get("sqlite")
            db = DbConfig(
                sqlite=SqliteConfig(
                    path=sqlite.get("path", os.path.expanduser("~/.a3t/overrides.db")),
                    table=sqlite.get("table", "assets"),
                ) if sqlite is not None else None,
                backend=db_data.get("backend"),
            )

        fs = None
        if "fs" in data:
            fs_data = data["fs"]
            http = fs_data.get("http")
            fs = FsConfig(
                root_path=fs_data.get("root_path"),
                git=GitRepoConfig.from_dict(fs_data["git"]) if "git" in fs_data else None,
                http=HttpConfig(
                    base_url=http["base_url"],
                    timeout=float(http.get("timeout", 10.0)),
                ) if http is not None else None,
                backend=fs_data.get("backend"),
            )

        log_data = data.get("logging")
        return cls(
            db=db,
            fs=fs,
            context=dict(data.get("context", {})),
            logging=LoggingConfig(
                enabled=bool(log_data.get("enabled", True)),
                level=log_data.get("level", "INFO"),
            ) if log_data is not None else None,
        )


def normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """Rename camelCase aliases. The context block is passed through untouched."""
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        key = ALIASES.get(key, key)
        if isinstance(value, dict) and key not in ("context", "credentials"):
            value = normalize_keys(value)
        normalized[key] = value
    return normalized


def validate_config(data: Dict[str, Any]) -> None:
    errors = sorted(_validator.iter_errors(data), key=lambda e: [str(p) for p in e.path])
    if errors:
        messages = ", ".join(
            f"{'.'.join(str(p) for p in error.path) or '<root>'}: {error.message}"
            for error in errors
        )
        raise ConfigurationError(f"invalid a3t config: {messages}")


ENV_MAP = {
    "fs.root_path": "A3T_FS_ROOT_PATH",
    "fs.git.url": "A3T_GIT_URL",
    "fs.git.branch": "A3T_GIT_BRANCH",
    "fs.git.cache_path": "A3T_GIT_CACHE_PATH",
    "db.sqlite.path": "A3T_SQLITE_PATH",
    "logging.enabled": "A3T_LOGGING_ENABLED",
    "logging.level": "A3T_LOG_LEVEL",
}


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def merge_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    merged = json.loads(json.dumps(config_data))  # deep copy via json

    for dotted_key, env_name in ENV_MAP.items():
        if env_name not in os.environ:
            continue
        value: Any = os.environ[env_name]
        target = merged
        parts = dotted_key.split(".")
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        last = parts[-1]
        if last == "enabled":
            value = _parse_bool(value)
        elif last == "level":
            value = value.upper()
        target[last] = value

    return merged


def load_config(config_path: str | Path = "a3t.yml") -> A3tConfig:
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = normalize_keys(load_yaml(path))
    data = merge_env_overrides(data)
    return A3tConfig.from_dict(data)
