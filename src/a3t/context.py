#!/usr/bin/env python3
"""
Resolution Context — language, workspace, system, build hash, nonce

Implements:
- Context: immutable snapshot, merge(partial) -> new snapshot
- ContextStore: process-wide ambient default (set_context / get_context)
- get_db_query_hierarchy(key, context) -> override queries, most specific first

Contexts are never mutated in place. Every set_context() call replaces the
stored snapshot, so a coroutine holding an older snapshot keeps seeing a
consistent view.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Optional, Dict, Any, List, Mapping

logger = logging.getLogger(__name__)

DEFAULT_BUILD_HASH = "default"

CORE_FIELDS = ("language", "workspace", "system", "build_hash", "nonce")

# camelCase spellings accepted in partial dicts
FIELD_ALIASES = {
    "buildHash": "build_hash",
}


def _default_build_hash() -> str:
    return os.environ.get("A3T_BUILD_HASH", DEFAULT_BUILD_HASH)


def _default_nonce() -> int:
    try:
        return int(os.environ.get("A3T_NONCE", "0"))
    except ValueError:
        logger.warning("Ignoring non-integer A3T_NONCE=%r", os.environ.get("A3T_NONCE"))
        return 0


@dataclass(frozen=True)
class Context:
    """A single immutable view of the resolution dimensions."""
    language: Optional[str] = None
    workspace: Optional[str] = None
    system: Optional[str] = None
    build_hash: str = field(default_factory=_default_build_hash)
    nonce: int = field(default_factory=_default_nonce)
    extras: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def merge(self, partial: Optional[Mapping[str, Any]] = None) -> "Context":
        """Return a new snapshot with ``partial`` shallow-merged over this one."""
        if not partial:
            return self

        updates: Dict[str, Any] = {}
        extras = dict(self.extras)
        for name, value in partial.items():
            name = FIELD_ALIASES.get(name, name)
            if name == "extras":
                extras.update(value or {})
            elif name in CORE_FIELDS:
                updates[name] = value
            else:
                extras[name] = value

        if "nonce" in updates:
            updates["nonce"] = int(updates["nonce"])
        if updates.get("build_hash") is None and "build_hash" in updates:
            updates["build_hash"] = DEFAULT_BUILD_HASH

        return replace(self, extras=MappingProxyType(extras), **updates)

    def get(self, name: str, default: Any = None) -> Any:
        """Read a core field or a caller-defined extra (e.g. ``user``)."""
        name = FIELD_ALIASES.get(name, name)
        if name in CORE_FIELDS:
            value = getattr(self, name)
            return default if value is None else value
        return self.extras.get(name, default)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "language": self.language,
            "workspace": self.workspace,
            "system": self.system,
            "buildHash": self.build_hash,
            "nonce": self.nonce,
        }
        data.update(self.extras)
        return data


class ContextStore:
    """
    Holds the ambient default context.

    Resolution code takes an explicit Context; this store only supplies the
    default that per-call overrides are merged onto. Per-call overrides are
    the supported way to run concurrent requests with different contexts.
    """

    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        self._context = Context().merge(initial)

    def set_context(self, partial: Optional[Mapping[str, Any]] = None) -> Context:
        """Merge ``partial`` into the current snapshot and store the result."""
        self._context = self._context.merge(partial)
        logger.debug(f"Context updated: {self._context.to_dict()}")
        return self._context

    def get_context(self) -> Context:
        return self._context

    def effective(self, override: Optional[Mapping[str, Any]] = None) -> Context:
        """Global context with a per-call override applied. Nothing is stored."""
        return self._context.merge(override)

    def increment_nonce(self) -> int:
        self._context = replace(self._context, nonce=self._context.nonce + 1)
        return self._context.nonce

    def reset(self) -> None:
        self._context = Context()


def get_db_query_hierarchy(key: str, context: Context) -> List[Dict[str, Any]]:
    """
    Build the override queries for ``key``, most specific first.

    Order:
        1. workspace + language + key
        2. workspace + key
        3. language + key
        4. system + key
        5. key (global)

    Fields that are not set are left out of the query entirely.
    """
    language = context.language
    workspace = context.workspace
    system = context.system

    queries: List[Dict[str, Any]] = []

    if workspace and language:
        queries.append({"workspace": workspace, "language": language, "key": key})

    if workspace:
        queries.append({"workspace": workspace, "key": key})

    if language:
        queries.append({"language": language, "key": key})

    if system:
        queries.append({"system": system, "key": key})

    queries.append({"key": key})

    return queries
