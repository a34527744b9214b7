"""
a3t Cache Layer
Forever cache of resolution outcomes with nonce-based invalidation
"""

from .cache import ForeverCache, CacheEntry
from .key_generator import CacheKeyGenerator, get_cache_key

__all__ = ['ForeverCache', 'CacheEntry', 'CacheKeyGenerator', 'get_cache_key']
