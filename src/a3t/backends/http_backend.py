"""Content backend that fetches assets over HTTP(S)."""

from __future__ import annotations

import asyncio
import logging
import posixpath
from typing import Optional
from urllib.parse import quote

import requests

from a3t.context import Context
from a3t.observability import log_backend

logger = logging.getLogger(__name__)


class HttpFsBackend:
    """GET ``base_url/<key>``. 404 means not-found; other failures also yield None."""

    name = "http"

    def __init__(self, base_url: str, timeout: float = 10, session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def __repr__(self) -> str:
        return f"HttpFsBackend(base_url={self.base_url})"

    def _url_for(self, key: str) -> Optional[str]:
        if key.startswith("/") or "\\" in key:
            return None
        normalized = posixpath.normpath(key)
        if normalized in (".", "..") or normalized.startswith("../"):
            return None
        if any(part == ".." for part in key.split("/")):
            return None
        return f"{self.base_url}/{quote(normalized)}"

    def _fetch(self, url: str) -> requests.Response:
        return self._session.get(url, timeout=self.timeout)

    async def _get(self, key: str, operation: str) -> Optional[requests.Response]:
        url = self._url_for(key)
        if url is None:
            log_backend(self.name, operation, key, False)
            return None
        try:
            response = await asyncio.to_thread(self._fetch, url)
        except requests.RequestException as e:
            log_backend(self.name, operation, key, False, e)
            return None

        if response.status_code == 404:
            log_backend(self.name, operation, key, False)
            return None
        if response.status_code != 200:
            log_backend(self.name, operation, key, False,
                        RuntimeError(f"HTTP {response.status_code}"))
            return None

        log_backend(self.name, operation, key, True)
        return response

    async def read_text(self, key: str, context: Optional[Context] = None) -> Optional[str]:
        response = await self._get(key, "read_text")
        return response.text if response is not None else None

    async def read_binary(self, key: str, context: Optional[Context] = None) -> Optional[bytes]:
        response = await self._get(key, "read_binary")
        return response.content if response is not None else None
