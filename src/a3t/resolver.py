#!/usr/bin/env python3
"""
a3t Resolver — Hierarchical Asset Resolution

Resolution order for one asset key:

  Forever cache         → hit returns immediately (miss-hits return the default)
  DB overrides          → most specific query first, first non-None wins
  Content backend       → read_text / read_binary
  Inline default        → cached as found
  Not found             → cached as a miss

Exactly one cache entry is written per distinct (key, context). Nothing in
here raises to the caller: a failing tier degrades to "not found" and the
next tier is tried.

Internally every tier answers with Found / NotFound / Failed. resolve()
collapses that to value | default | None; resolve_detailed() keeps it for
tests and logging.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Mapping, Union

from a3t.backends.base import DbBackend, FsBackend
from a3t.cache.cache import ForeverCache
from a3t.cache.key_generator import CacheKeyGenerator
from a3t.context import Context, ContextStore, get_db_query_hierarchy
from a3t.observability import ResolutionLogRecord, log_cache, log_resolution

logger = logging.getLogger(__name__)


class _Missing:
    """Sentinel for "no default given"."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


@dataclass(frozen=True)
class Found:
    value: Any
    source: str  # cache, db, fs, default


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class Failed:
    kind: str  # context, db, fs, unexpected
    error: BaseException

    def describe(self) -> str:
        return f"{self.kind}: {type(self.error).__name__}: {self.error}"


Outcome = Union[Found, NotFound, Failed]


@dataclass
class Resolution:
    """Everything one resolve call learned."""
    key: str
    cache_key: str
    outcome: Union[Found, NotFound]
    value: Any
    cache_hit: bool = False
    failures: List[Failed] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return isinstance(self.outcome, Found)

    @property
    def source(self) -> str:
        if self.cache_hit:
            return "cache"
        if isinstance(self.outcome, Found):
            return self.outcome.source
        return "none"


def _has_default(default: Any) -> bool:
    return default is not MISSING and default is not None


class Resolver:
    """
    Walks cache → DB → content backend → default for one key.

    The context is always explicit: the global snapshot from the store merged
    with the per-call override. Backends are plain attributes so a facade
    can swap them at runtime.
    """

    def __init__(
        self,
        context_store: ContextStore,
        cache: ForeverCache,
        db_backend: Optional[DbBackend] = None,
        fs_backend: Optional[FsBackend] = None,
        key_generator: Optional[CacheKeyGenerator] = None,
    ):
        self.context_store = context_store
        self.cache = cache
        self.db_backend = db_backend
        self.fs_backend = fs_backend
        self.key_generator = key_generator or CacheKeyGenerator()

    async def resolve(
        self,
        key: str,
        default: Any = MISSING,
        context_override: Optional[Mapping[str, Any]] = None,
        binary: bool = False,
    ) -> Any:
        """Resolve ``key``. Returns the value, the default, or None."""
        resolution = await self.resolve_detailed(key, default, context_override, binary)
        return resolution.value

    async def resolve_detailed(
        self,
        key: str,
        default: Any = MISSING,
        context_override: Optional[Mapping[str, Any]] = None,
        binary: bool = False,
    ) -> Resolution:
        fallback = default if _has_default(default) else None
        try:
            context = self.context_store.effective(context_override)
            cache_key = self.key_generator.generate_cache_key(key, context)
        except Exception as e:
            # no usable context: nothing is probed or cached
            logger.warning(f"Invalid context for {key}: {e}")
            outcome = Found(default, "default") if _has_default(default) else NotFound()
            return Resolution(key, "", outcome, fallback, failures=[Failed("context", e)])

        entry = self.cache.get(cache_key)
        if entry is not None:
            log_cache("get", cache_key, True)
            if entry.found:
                outcome = Found(entry.value, "cache")
                value = entry.value
            else:
                # the default is never cached for a miss, so each caller gets its own
                outcome = NotFound()
                value = fallback
            return Resolution(key, cache_key, outcome, value, cache_hit=True)

        log_cache("get", cache_key, False)
        failures: List[Failed] = []

        try:
            outcome = await self._probe_db(key, context, failures)
            if not isinstance(outcome, Found):
                outcome = await self._probe_fs(key, context, binary, failures)
        except Exception as e:
            logger.warning(f"Asset resolution error for {key}: {e}")
            failures.append(Failed("unexpected", e))
            outcome = NotFound()

        if not isinstance(outcome, Found):
            outcome = Found(default, "default") if _has_default(default) else NotFound()

        if isinstance(outcome, Found):
            self.cache.set(cache_key, True, outcome.value)
            value = outcome.value
        else:
            self.cache.set(cache_key, False)
            value = None

        log_resolution(ResolutionLogRecord.for_result(
            key,
            outcome.source if isinstance(outcome, Found) else "none",
            value,
            context=context.to_dict(),
            errors=[failure.describe() for failure in failures],
        ))
        return Resolution(key, cache_key, outcome, value, failures=failures)

    async def _probe_db(self, key: str, context: Context, failures: List[Failed]) -> Outcome:
        """Try each override query in order; a failing query is skipped."""
        if self.db_backend is None:
            return NotFound()

        for query in get_db_query_hierarchy(key, context):
            try:
                value = await self.db_backend.find_override(query)
            except Exception as e:
                logger.warning(f"Database query error for {query}: {e}")
                failures.append(Failed("db", e))
                continue
            if value is not None:
                return Found(value, "db")

        return NotFound()

    async def _probe_fs(self, key: str, context: Context, binary: bool,
                        failures: List[Failed]) -> Outcome:
        if self.fs_backend is None:
            return NotFound()

        reader = self.fs_backend.read_binary if binary else self.fs_backend.read_text
        try:
            value = await reader(key, context=context)
        except Exception as e:
            logger.warning(f"Filesystem backend error for {key}: {e}")
            failure = Failed("fs", e)
            failures.append(failure)
            return failure

        if value is None:
            return NotFound()
        return Found(value, "fs")

    async def resolve_multiple(
        self,
        keys: List[str],
        defaults: Optional[Mapping[str, Any]] = None,
        context_override: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Resolve several keys concurrently into {key: value}."""
        defaults = defaults or {}
        results = await asyncio.gather(
            *(self.resolve(key, defaults.get(key, MISSING), context_override) for key in keys),
            return_exceptions=True,
        )

        resolved: Dict[str, Any] = {}
        for key, result in zip(keys, results):
            if isinstance(result, BaseException):
                logger.warning(f"Asset resolution error for {key}: {result}")
                fallback = defaults.get(key)
                resolved[key] = fallback
            else:
                resolved[key] = result
        return resolved
