"""
Caching for table metadata.

Describing a table costs a probe query, so table-name lookups made through
a connection are kept in a cachetools TTLCache until they expire or a DDL
statement touches the table.
"""
import copy
import functools
import logging
import threading

import cachetools

logger = logging.getLogger(__name__)


class Cache:
    """Cache manager for the ifxdb module.

    Thread-safe singleton that manages all TTL caches.
    """

    _instance = None
    _caches: dict[str, cachetools.TTLCache] = {}
    _lock = threading.RLock()

    @classmethod
    def get_instance(cls) -> 'Cache':
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_cache(self, name: str, maxsize: int = 100, ttl: int = 300) -> cachetools.TTLCache:
        """Get or create a TTL cache with the given name.
        """
        if name not in self._caches:
            with self._lock:
                if name not in self._caches:
                    self._caches[name] = cachetools.TTLCache(maxsize=maxsize, ttl=ttl)
        return self._caches[name]

    def clear_all(self) -> None:
        """Clear all managed caches."""
        with self._lock:
            for cache in self._caches.values():
                cache.clear()

    def clear_for_connection(self, connection_id: int) -> None:
        """Clear all cache entries made through one connection."""
        with self._lock:
            for cache in self._caches.values():
                for key in [k for k in list(cache.keys()) if k[0] == connection_id]:
                    cache.pop(key, None)

    def clear_for_table(self, table_name: str) -> None:
        """Clear all cache entries related to a specific table.
        """
        table_lower = table_name.lower()
        with self._lock:
            for cache in self._caches.values():
                for key in [k for k in list(cache.keys()) if k[1] == table_lower]:
                    cache.pop(key, None)
                    logger.debug(f'Cleared cache entry {key} for table {table_name}')


def cacheable_metadata(cache_name: str, ttl: int = 300, maxsize: int = 50):
    """Decorator for caching connection metadata lookups by table name.

    Only string sources are cached; live results always go through.
    Respects a ``bypass_cache`` keyword to skip the cache lookup. Callers
    get their own copy of the cached value.
    """
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, source, *args, bypass_cache=False, **kwargs):
            if bypass_cache or not isinstance(source, str):
                return method(self, source, *args, **kwargs)

            cache = Cache.get_instance().get_cache(cache_name, ttl=ttl, maxsize=maxsize)
            key = (id(self), source.lower(), repr(args), repr(sorted(kwargs.items())),
                   int(self.options.portability))
            if key in cache:
                logger.debug(f'Cache hit for {method.__name__}({source})')
                return copy.deepcopy(cache[key])

            logger.debug(f'Cache miss for {method.__name__}({source})')
            result = method(self, source, *args, **kwargs)
            cache[key] = copy.deepcopy(result)
            return result

        return wrapper
    return decorator
