#!/usr/bin/env python3
"""
Secret Store — Credentials for Git-backed assets

Ordered chain of providers. Each provider answers get_secret(key) with a
value or None; a composite tries its members in order and returns the first
hit.

Providers:
- EnvironmentProvider: A3T_<KEY> environment variables (read-only)
- MemoryProvider: in-process dict (tests, short-lived secrets)
- CompositeProvider: chain of the above, skipping unavailable members

Usage:
    store = SecretStore()
    await store.set_secret("git_token_https___github_com_org_assets_git", "ghp_...")
    token = await store.get_secret("git_token_https___github_com_org_assets_git")
"""

import logging
import os
import re
from typing import Optional, Dict, List, Union

from a3t.errors import ConfigurationError, SecretWriteNotSupported

logger = logging.getLogger(__name__)


class SecretProvider:
    """Base provider. Subclasses implement get_secret; writes are optional."""

    async def get_secret(self, key: str) -> Optional[str]:
        raise NotImplementedError("get_secret must be implemented")

    async def set_secret(self, key: str, value: str) -> None:
        raise SecretWriteNotSupported(f"{type(self).__name__} does not support writes")

    async def is_available(self) -> bool:
        return True


class EnvironmentProvider(SecretProvider):
    """Reads ``prefix + KEY`` from the process environment."""

    def __init__(self, prefix: str = "A3T_"):
        self.prefix = prefix

    def env_name(self, key: str) -> str:
        return self.prefix + re.sub(r"[^A-Z0-9_]", "_", key.upper())

    async def get_secret(self, key: str) -> Optional[str]:
        env_key = self.env_name(key)
        value = os.environ.get(env_key)
        if value is not None:
            logger.debug("Secret retrieved from environment (key=%s)", env_key)
        return value

    async def is_available(self) -> bool:
        return os.environ is not None


class MemoryProvider(SecretProvider):
    """Dict-backed provider that accepts writes."""

    def __init__(self):
        self.secrets: Dict[str, str] = {}

    async def get_secret(self, key: str) -> Optional[str]:
        value = self.secrets.get(key)
        if value is not None:
            logger.debug("Secret retrieved from memory (key=%s)", key)
        return value

    async def set_secret(self, key: str, value: str) -> None:
        self.secrets[key] = value
        logger.debug("Secret stored in memory (key=%s)", key)

    def clear(self) -> None:
        self.secrets.clear()


class CompositeProvider(SecretProvider):
    """Tries each available provider in order; first non-None value wins."""

    def __init__(self, providers: Optional[List[SecretProvider]] = None):
        self.providers = list(providers or [])

    async def get_secret(self, key: str) -> Optional[str]:
        for provider in self.providers:
            try:
                if not await provider.is_available():
                    continue
                value = await provider.get_secret(key)
                if value is not None:
                    return value
            except Exception as e:
                logger.warning("Secret provider %s failed for %s: %s",
                               type(provider).__name__, key, e)
        return None

    async def set_secret(self, key: str, value: str) -> None:
        for provider in self.providers:
            if not await provider.is_available():
                continue
            try:
                await provider.set_secret(key, value)
                return
            except SecretWriteNotSupported:
                continue
        raise SecretWriteNotSupported("No provider supports setting secrets")

    async def is_available(self) -> bool:
        for provider in self.providers:
            if await provider.is_available():
                return True
        return False


def is_secret_provider(candidate) -> bool:
    """Capability check: anything with get_secret and is_available will do."""
    return all(
        callable(getattr(candidate, name, None))
        for name in ("get_secret", "is_available")
    )


class SecretStore:
    """
    Registry of named providers plus the chain used for lookups.

    The default chain is environment first, then memory.
    """

    def __init__(self):
        self._providers: Dict[str, SecretProvider] = {}
        self._default: Optional[SecretProvider] = None
        self.register_provider("environment", EnvironmentProvider())
        self.register_provider("memory", MemoryProvider())
        self.set_default_provider(CompositeProvider([
            self._providers["environment"],
            self._providers["memory"],
        ]))

    def register_provider(self, name: str, provider: SecretProvider) -> None:
        if not is_secret_provider(provider):
            raise ConfigurationError(
                f"Provider {name!r} must implement get_secret() and is_available()"
            )
        self._providers[name] = provider
        logger.info("Secret provider registered: %s", name)

    def get_provider(self, name: str) -> Optional[SecretProvider]:
        return self._providers.get(name)

    def set_default_provider(self, provider: Union[str, SecretProvider]) -> None:
        if isinstance(provider, str):
            resolved = self.get_provider(provider)
            if resolved is None:
                raise ConfigurationError(f"Provider {provider!r} not found")
        elif is_secret_provider(provider):
            resolved = provider
        else:
            raise ConfigurationError("Provider must be a registered name or a secret provider")

        self._default = resolved
        logger.info("Default secret provider set: %s", type(resolved).__name__)

    @property
    def default_provider(self) -> SecretProvider:
        return self._default

    async def get_secret(self, key: str) -> Optional[str]:
        try:
            value = await self._default.get_secret(key)
        except Exception as e:
            logger.error("Failed to retrieve secret %s: %s", key, e)
            return None
        logger.debug("Secret lookup key=%s found=%s", key, value is not None)
        return value

    async def set_secret(self, key: str, value: str) -> bool:
        try:
            await self._default.set_secret(key, value)
        except Exception as e:
            logger.warning("Failed to set secret %s: %s", key, e)
            return False
        logger.debug("Secret set key=%s", key)
        return True

    def clear_memory_secrets(self) -> None:
        memory = self.get_provider("memory")
        if isinstance(memory, MemoryProvider):
            memory.clear()


_store_instance = None


def get_secret_store() -> SecretStore:
    """Get or create the process-wide secret store."""
    global _store_instance
    if _store_instance is None:
        _store_instance = SecretStore()
    return _store_instance


async def get_secret(key: str) -> Optional[str]:
    return await get_secret_store().get_secret(key)


async def set_secret(key: str, value: str) -> bool:
    return await get_secret_store().set_secret(key, value)
