"""Local directory content backend."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional, Union

from a3t.backends.base import safe_join
from a3t.context import Context
from a3t.observability import log_backend

logger = logging.getLogger(__name__)


class LocalFsBackend:
    """Serves assets from files under ``root_path``."""

    name = "local-fs"

    def __init__(self, root_path: Union[str, Path] = "assets") -> None:
        self.root_path = Path(root_path)

    def __repr__(self) -> str:
        return f"LocalFsBackend(root={self.root_path})"

    async def read_text(self, key: str, context: Optional[Context] = None) -> Optional[str]:
        data = await self._read(key, "read_text")
        if data is None:
            return None
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            log_backend(self.name, "read_text", key, False, e)
            return None

    async def read_binary(self, key: str, context: Optional[Context] = None) -> Optional[bytes]:
        return await self._read(key, "read_binary")

    async def _read(self, key: str, operation: str) -> Optional[bytes]:
        path = safe_join(self.root_path, key)
        if path is None:
            log_backend(self.name, operation, key, False)
            return None
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            log_backend(self.name, operation, key, False)
            return None
        except OSError as e:
            log_backend(self.name, operation, key, False, e)
            return None
        log_backend(self.name, operation, key, True)
        return data
