"""Backend capability contracts and shared helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union, runtime_checkable

from a3t.context import Context


@runtime_checkable
class DbBackend(Protocol):
    """Asset-store backend: answers one override query at a time."""

    async def find_override(self, query: Dict[str, Any]) -> Any:
        """Return the override value for ``query`` or None when nothing matches."""
        ...


@runtime_checkable
class FsBackend(Protocol):
    """Content backend. Returns None for not-found, never raises for it."""

    async def read_text(self, key: str, context: Optional[Context] = None) -> Optional[str]:
        ...

    async def read_binary(self, key: str, context: Optional[Context] = None) -> Optional[bytes]:
        ...


def implements(candidate: Any, *methods: str) -> bool:
    return all(callable(getattr(candidate, name, None)) for name in methods)


def is_db_backend(candidate: Any) -> bool:
    return implements(candidate, "find_override")


def is_fs_backend(candidate: Any) -> bool:
    return implements(candidate, "read_text", "read_binary")


def safe_join(root: Union[str, Path], key: str) -> Optional[Path]:
    """
    Resolve ``key`` under ``root``.

    Returns None when the resolved path is not the root itself or strictly
    inside it (``..`` segments, absolute keys, symlinks pointing outside),
    and for keys the OS cannot represent as a path (embedded NUL).
    """
    if "\x00" in str(key):
        return None
    try:
        resolved_root = os.path.realpath(root)
        resolved = os.path.realpath(os.path.join(resolved_root, key))
    except (ValueError, TypeError):
        return None
    if resolved != resolved_root and not resolved.startswith(resolved_root + os.sep):
        return None
    return Path(resolved)
