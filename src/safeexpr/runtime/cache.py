"""Thread-safe LRU cache for compiled expressions.

Compiling (lex, parse, validate) is the expensive part of evaluating an
expression, and the same condition or macro source runs on every message.
The engine keeps compiled forms here, keyed by exact source text.

Architecture:
    - Thread-safe using threading.RLock (reentrant lock)
    - LRU eviction via OrderedDict
    - Entries are inserted only after they are fully built; a concurrent
      first compile of the same source simply replaces an equal entry
    - Compile failures are never stored

Thread Safety:
    All operations protected by RLock. Safe for concurrent reads and writes.

Python 3.13+.
"""

from collections import OrderedDict
from threading import RLock

from safeexpr.constants import DEFAULT_CACHE_SIZE

from .interpreter import CompiledExpression

__all__ = ["CompileCache"]


class CompileCache:
    """Thread-safe LRU cache of source text -> CompiledExpression.

    Attributes:
        maxsize: Maximum number of cache entries
        hits: Number of cache hits (for metrics)
        misses: Number of cache misses (for metrics)
    """

    __slots__ = ("_cache", "_hits", "_lock", "_maxsize", "_misses")

    def __init__(self, maxsize: int = DEFAULT_CACHE_SIZE) -> None:
        """Initialize compile cache.

        Args:
            maxsize: Maximum number of entries (default: DEFAULT_CACHE_SIZE)
        """
        if maxsize <= 0:
            msg = "maxsize must be positive"
            raise ValueError(msg)

        self._cache: OrderedDict[str, CompiledExpression] = OrderedDict()
        self._maxsize = maxsize
        self._lock = RLock()
        self._hits = 0
        self._misses = 0

    def get(self, source: str) -> CompiledExpression | None:
        """Get the compiled form of ``source``, or None on a miss.

        Thread-safe.
        """
        with self._lock:
            compiled = self._cache.get(source)
            if compiled is not None:
                # Move to end (mark as recently used)
                self._cache.move_to_end(source)
                self._hits += 1
                return compiled

            self._misses += 1
            return None

    def put(self, compiled: CompiledExpression) -> CompiledExpression:
        """Store ``compiled`` under its source text.

        Thread-safe. Evicts the LRU entry if the cache is full. When another
        thread stored the same source first, the existing entry wins and is
        returned, so every caller ends up sharing one instance.

        Returns:
            The cached instance for ``compiled.source``
        """
        key = compiled.source
        with self._lock:
            existing = self._cache.get(key)
            if existing is not None:
                self._cache.move_to_end(key)
                return existing
            # Evict LRU if cache is full
            if len(self._cache) >= self._maxsize:
                self._cache.popitem(last=False)
            self._cache[key] = compiled
            return compiled

    def clear(self) -> None:
        """Clear all cached entries and reset metrics.

        Thread-safe.
        """
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0

    def get_stats(self) -> dict[str, int | float]:
        """Get cache statistics.

        Thread-safe. Returns current metrics.

        Returns:
            Dict with keys:
            - size (int): Current number of cached entries
            - maxsize (int): Maximum cache capacity
            - hits (int): Number of cache hits
            - misses (int): Number of cache misses
            - hit_rate (float): Hit rate as percentage (0.0-100.0)
        """
        with self._lock:
            total = self._hits + self._misses
            hit_rate = (self._hits / total * 100) if total > 0 else 0.0

            return {
                "size": len(self._cache),
                "maxsize": self._maxsize,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(hit_rate, 2),
            }

    def __contains__(self, source: object) -> bool:
        with self._lock:
            return source in self._cache

    def __len__(self) -> int:
        """Get current cache size.

        Thread-safe.
        """
        with self._lock:
            return len(self._cache)

    @property
    def maxsize(self) -> int:
        """Maximum cache size."""
        return self._maxsize

    @property
    def hits(self) -> int:
        """Number of cache hits.

        Thread-safe.
        """
        with self._lock:
            return self._hits

    @property
    def misses(self) -> int:
        """Number of cache misses.

        Thread-safe.
        """
        with self._lock:
            return self._misses
