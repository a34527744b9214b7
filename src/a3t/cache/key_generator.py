#!/usr/bin/env python3
"""
Cache Key Generation — Context-Aware Keys

Implements:
- generate_cache_key(key, context) → canonical string
- Key changes when any of language, workspace, system, build hash or nonce changes
- Same asset key + same context = identical cache key = cache hit
"""

import json
import logging
from typing import Any, Dict

from a3t.context import Context

logger = logging.getLogger(__name__)


class CacheKeyGenerator:
    """
    Build deterministic cache keys from an asset key and a context.

    Design:
    - Cache key = JSON of (key, language, workspace, system, buildHash, nonce)
    - Field order is fixed and every field is always present (unset = null)
    - Extras (e.g. ``user``) are not part of the key
    """

    FIELDS = ("key", "language", "workspace", "system", "buildHash", "nonce")

    def key_fields(self, key: str, context: Context) -> Dict[str, Any]:
        return {
            "key": key,
            "language": context.language,
            "workspace": context.workspace,
            "system": context.system,
            "buildHash": context.build_hash,
            "nonce": context.nonce,
        }

    def generate_cache_key(self, key: str, context: Context) -> str:
        """
        Generate the canonical cache key.

        Args:
            key: Asset key
            context: Effective context (global merged with any override)

        Returns:
            Compact JSON string, stable for semantically identical contexts
        """
        fields = self.key_fields(key, context)
        cache_key = json.dumps(
            [fields[name] for name in self.FIELDS],
            separators=(",", ":"),
            ensure_ascii=False,
            default=str,
        )
        logger.debug(f"Generated key: {cache_key}")
        return cache_key


_generator = CacheKeyGenerator()


def get_cache_key(key: str, context: Context) -> str:
    return _generator.generate_cache_key(key, context)
