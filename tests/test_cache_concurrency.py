"""Thread safety tests for caching.

Validates concurrent access to CompileCache, the engine and the error log.
"""

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed

import pytest

from safeexpr import ExpressionEngine, RuntimeErrorLog
from safeexpr.diagnostics import ExprRuntimeError
from safeexpr.runtime import CompileCache, compile_ast
from safeexpr.syntax import parse


def compiled(source: str):
    return compile_ast(parse(source), source)


class TestCompileCache:
    """Single-threaded CompileCache behavior."""

    def test_miss_then_hit(self) -> None:
        cache = CompileCache(maxsize=4)
        assert cache.get("name") is None
        entry = cache.put(compiled("name"))
        assert cache.get("name") is entry
        assert (cache.hits, cache.misses) == (1, 1)
        assert "name" in cache
        assert len(cache) == 1

    def test_put_keeps_existing_entry(self) -> None:
        cache = CompileCache(maxsize=4)
        first = cache.put(compiled("name"))
        second = cache.put(compiled("name"))
        assert second is first
        assert len(cache) == 1

    def test_lru_eviction(self) -> None:
        cache = CompileCache(maxsize=2)
        cache.put(compiled("name"))
        cache.put(compiled("author"))
        cache.get("name")
        cache.put(compiled("group"))
        assert "name" in cache
        assert "author" not in cache
        assert "group" in cache

    def test_stats(self) -> None:
        cache = CompileCache(maxsize=8)
        cache.put(compiled("content"))
        cache.get("content")
        cache.get("content")
        cache.get("author")
        assert cache.get_stats() == {
            "size": 1,
            "maxsize": 8,
            "hits": 2,
            "misses": 1,
            "hit_rate": 66.67,
        }

    def test_clear_resets_stats(self) -> None:
        cache = CompileCache(maxsize=8)
        cache.put(compiled("content"))
        cache.get("content")
        cache.clear()
        assert len(cache) == 0
        assert (cache.hits, cache.misses) == (0, 0)
        assert cache.maxsize == 8

    @pytest.mark.parametrize("maxsize", [0, -1])
    def test_invalid_maxsize(self, maxsize: int) -> None:
        with pytest.raises(ValueError, match="maxsize must be positive"):
            CompileCache(maxsize=maxsize)


class TestCacheConcurrency:
    """Test cache thread safety."""

    def test_concurrent_reads(self) -> None:
        """Concurrent evaluations of one source share one compiled form."""
        engine = ExpressionEngine()

        def evaluate(name: str) -> object:
            return engine.eval("'Hello, ' + name + '!'", {"name": name})

        with ThreadPoolExecutor(max_workers=10) as executor:
            futures = [executor.submit(evaluate, "Alice") for _ in range(100)]
            results = [future.result() for future in as_completed(futures)]

        assert all(r == "Hello, Alice!" for r in results)
        stats = engine.get_cache_stats()
        assert stats["size"] == 1
        assert stats["hits"] > 0

    def test_concurrent_different_contexts(self) -> None:
        """Concurrent evaluations never see each other's context."""
        engine = ExpressionEngine()
        names = ["Alice", "Bob", "Charlie", "David"]

        def evaluate(name: str) -> tuple[str, object]:
            return name, engine.eval("name.toUpperCase()", {"name": name})

        with ThreadPoolExecutor(max_workers=10) as executor:
            futures = [executor.submit(evaluate, names[i % len(names)]) for i in range(100)]
            results = [future.result() for future in as_completed(futures)]

        for name, result in results:
            assert result == name.upper()

    def test_concurrent_distinct_sources(self) -> None:
        """Many sources compiled concurrently are all cached once."""
        engine = ExpressionEngine(cache_size=500)

        def evaluate(index: int) -> object:
            return engine.eval(f"unread_count + {index % 50}", {"unread_count": 1})

        with ThreadPoolExecutor(max_workers=10) as executor:
            futures = [executor.submit(evaluate, i) for i in range(200)]
            for future in as_completed(futures):
                future.result()

        assert engine.get_cache_stats()["size"] == 50

    def test_concurrent_cache_clear(self) -> None:
        """Clearing while evaluating never breaks evaluation."""
        engine = ExpressionEngine()
        errors: list[Exception] = []
        stop = threading.Event()

        def evaluate() -> None:
            while not stop.is_set():
                try:
                    assert engine.eval("1 + 1", {}) == 2
                except Exception as exc:  # noqa: BLE001 - collected for the assertion below
                    errors.append(exc)

        def clear() -> None:
            for _ in range(50):
                engine.clear_cache()

        workers = [threading.Thread(target=evaluate) for _ in range(4)]
        for worker in workers:
            worker.start()
        clear()
        stop.set()
        for worker in workers:
            worker.join()

        assert errors == []

    def test_small_cache_under_contention(self) -> None:
        """Eviction under contention keeps the size bound."""
        engine = ExpressionEngine(cache_size=3)

        def evaluate(index: int) -> object:
            return engine.eval(f"{index % 10} * 2", {})

        with ThreadPoolExecutor(max_workers=10) as executor:
            results = list(executor.map(evaluate, range(200)))

        assert results == [(i % 10) * 2 for i in range(200)]
        assert engine.get_cache_stats()["size"] <= 3

    def test_concurrent_error_log(self) -> None:
        """Each distinct error is logged exactly once across threads."""
        log = RuntimeErrorLog()
        error = ExprRuntimeError("boom")

        def report(_: int) -> bool:
            return log.report(error, source="x", entity="Alice")

        with ThreadPoolExecutor(max_workers=10) as executor:
            first_reports = sum(executor.map(report, range(100)))

        assert first_reports == 1
        assert log.occurrences(error, source="x", entity="Alice") == 100
