"""ExpressionEngine - main API for compiling and evaluating expressions.

Pipeline: source -> tokens -> AST -> validated AST -> CompiledExpression,
cached by exact source text. Evaluation runs the compiled form against a
fresh context per call.

Error policy:
    - eval(), eval_to_display_string() and eval_condition() raise ExprError.
      Any other exception escaping the evaluator is an internal bug and is
      downgraded to ExprRuntimeError(INTERNAL) at this boundary.
    - evaluate_condition() and expand_macro() never raise: they return the
      safe default (False / "") and log each distinct (entity, error) pair
      once through a RuntimeErrorLog.

Python 3.13+. Uses Babel for locale-aware date strings.
"""

import logging
import threading
from collections import OrderedDict
from collections.abc import Mapping
from datetime import UTC, tzinfo

from safeexpr.constants import DEFAULT_CACHE_SIZE, DEFAULT_LOCALE, MAX_ERROR_LOG_ENTRIES
from safeexpr.diagnostics import ErrorCategory, ErrorTemplate, ExprError, ExprRuntimeError
from safeexpr.runtime.cache import CompileCache
from safeexpr.runtime.interpreter import CompiledExpression, compile_ast
from safeexpr.runtime.locale_context import LocaleContext
from safeexpr.runtime.values import Value, is_truthy, to_display_string
from safeexpr.syntax.parser import parse
from safeexpr.validation.schema import DEFAULT_SCHEMA, ContextSchema

__all__ = [
    "ExpressionEngine",
    "RuntimeErrorLog",
    "clear_shared_engine",
    "compile_expr",
    "eval_condition",
    "eval_expr",
    "eval_to_display_string",
    "get_shared_engine",
]

logger = logging.getLogger(__name__)

# Logging truncation limits for expression source.
_LOG_TRUNCATE_WARNING: int = 100
_LOG_TRUNCATE_DEBUG: int = 50


# ============================================================================
# ERROR LOG
# ============================================================================


class RuntimeErrorLog:
    """Logs each distinct (entity, source, error) once.

    A broken condition attached to an entity fails on every message; logging
    every failure would flood the log. The first occurrence is logged at
    WARNING, repeats are counted silently. The log remembers at most
    ``maxsize`` distinct pairs and forgets the oldest beyond that.

    Thread Safety:
        All operations protected by RLock.
    """

    __slots__ = ("_lock", "_maxsize", "_seen")

    def __init__(self, maxsize: int = MAX_ERROR_LOG_ENTRIES) -> None:
        if maxsize <= 0:
            msg = "maxsize must be positive"
            raise ValueError(msg)
        self._maxsize = maxsize
        self._seen: OrderedDict[tuple[str, str, str, str], int] = OrderedDict()
        self._lock = threading.RLock()

    def report(self, error: ExprError, *, source: str = "", entity: str | None = None) -> bool:
        """Record ``error``; log it if this is its first occurrence.

        Args:
            error: The error raised while compiling or running ``source``
            source: Expression source text
            entity: Identifier of the entity the expression belongs to

        Returns:
            True if the error was logged, False if it was a repeat
        """
        key = (entity or "", source, str(error.category), error.message)
        with self._lock:
            if key in self._seen:
                self._seen[key] += 1
                self._seen.move_to_end(key)
                return False
            if len(self._seen) >= self._maxsize:
                self._seen.popitem(last=False)
            self._seen[key] = 1

        logger.warning(
            "Expression error [%s] for %s in %r: %s",
            error.category,
            entity or "<unknown entity>",
            source[:_LOG_TRUNCATE_WARNING],
            error.message,
        )
        return True

    def occurrences(self, error: ExprError, *, source: str = "", entity: str | None = None) -> int:
        """How many times this (entity, source, error) was reported."""
        key = (entity or "", source, str(error.category), error.message)
        with self._lock:
            return self._seen.get(key, 0)

    def seen_count(self) -> int:
        """Number of distinct errors remembered."""
        with self._lock:
            return len(self._seen)

    def clear(self) -> None:
        """Forget every recorded error."""
        with self._lock:
            self._seen.clear()


# ============================================================================
# ENGINE
# ============================================================================


class ExpressionEngine:
    """Compiles, caches and evaluates expressions against one schema.

    Thread Safety:
        Safe for concurrent use. The compile cache and error log are the
        only shared mutable state and are lock-protected; compiled
        expressions are immutable.

    Examples:
        >>> engine = ExpressionEngine()
        >>> engine.eval('content.includes("help") && mentioned',
        ...             {"content": "please help", "mentioned": True})
        True
        >>> engine.eval_to_display_string("self.nickname", {"self": {}})
        ''
    """

    __slots__ = ("_cache", "_error_log", "_locale", "_schema", "_tz")

    def __init__(
        self,
        schema: ContextSchema = DEFAULT_SCHEMA,
        cache_size: int = DEFAULT_CACHE_SIZE,
        *,
        locale: str | LocaleContext = DEFAULT_LOCALE,
        tz: tzinfo = UTC,
        error_log: RuntimeErrorLog | None = None,
    ) -> None:
        """Initialize engine.

        Args:
            schema: Fields expressions may reference
            cache_size: Maximum number of cached compiled expressions
            locale: Locale for date strings produced by date methods
            tz: Timezone the host uses for contexts built for this engine
            error_log: Shared error log (default: a private one)
        """
        self._schema = schema
        self._cache = CompileCache(cache_size)
        self._locale = locale if isinstance(locale, LocaleContext) else LocaleContext.create(locale)
        self._tz = tz
        self._error_log = error_log or RuntimeErrorLog()

    @property
    def schema(self) -> ContextSchema:
        """Schema expressions are validated against."""
        return self._schema

    @property
    def locale(self) -> LocaleContext:
        """Locale used by date methods."""
        return self._locale

    @property
    def tz(self) -> tzinfo:
        """Timezone configured for this engine."""
        return self._tz

    @property
    def error_log(self) -> RuntimeErrorLog:
        """Deduplicating log used by evaluate_condition() and expand_macro()."""
        return self._error_log

    def __repr__(self) -> str:
        return (
            f"ExpressionEngine(locale={self._locale.locale_code!r}, "
            f"schema_version={self._schema.version}, cached={len(self._cache)})"
        )

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def compile(self, source: str) -> CompiledExpression:
        """Compile ``source`` (or return the cached compiled form).

        Raises:
            ExprSyntaxError: On lex and parse errors
            ExprValidationError: On unknown identifiers, blocked members and
                unsafe patterns
        """
        cached = self._cache.get(source)
        if cached is not None:
            return cached
        logger.debug("Compiling expression: %s", source[:_LOG_TRUNCATE_DEBUG])
        compiled = compile_ast(parse(source), source, self._schema)
        return self._cache.put(compiled)

    def clear_cache(self) -> None:
        """Drop every cached compiled expression."""
        self._cache.clear()
        logger.debug("Compile cache cleared")

    def get_cache_stats(self) -> dict[str, int | float]:
        """Compile cache statistics (size, maxsize, hits, misses, hit_rate)."""
        return self._cache.get_stats()

    # ------------------------------------------------------------------
    # Evaluation (raising)
    # ------------------------------------------------------------------

    def eval(self, source: str, context: Mapping[str, object]) -> Value:
        """Compile and run ``source`` against ``context``.

        Raises:
            ExprError: Compile-time or run-time failure; unexpected internal
                exceptions are converted to ExprRuntimeError(INTERNAL)
        """
        try:
            return self.compile(source).run(context, self._locale)
        except ExprError:
            raise
        except Exception as exc:
            logger.exception("Internal error evaluating %r", source[:_LOG_TRUNCATE_WARNING])
            raise ExprRuntimeError(
                ErrorTemplate.internal_error(source, exc),
                category=ErrorCategory.INTERNAL,
            ) from exc

    def eval_to_display_string(self, source: str, context: Mapping[str, object]) -> str:
        """Evaluate and convert the result to display text.

        Absent optional fields display as the empty string.

        Raises:
            ExprError: As eval()
        """
        return to_display_string(self.eval(source, context))

    def eval_condition(self, source: str, context: Mapping[str, object]) -> bool:
        """Evaluate and return the truthiness of the result.

        Raises:
            ExprError: As eval()
        """
        return is_truthy(self.eval(source, context))

    # ------------------------------------------------------------------
    # Evaluation (degrading)
    # ------------------------------------------------------------------

    def evaluate_condition(
        self,
        source: str,
        context: Mapping[str, object],
        *,
        entity: str | None = None,
    ) -> bool:
        """Condition value, or False if the expression fails. Never raises ExprError.

        The failure is logged once per (entity, error).
        """
        try:
            return self.eval_condition(source, context)
        except ExprError as error:
            self._error_log.report(error, source=source, entity=entity)
            return False

    def expand_macro(
        self,
        source: str,
        context: Mapping[str, object],
        *,
        entity: str | None = None,
    ) -> str:
        """Display string, or "" if the expression fails. Never raises ExprError.

        The failure is logged once per (entity, error).
        """
        try:
            return self.eval_to_display_string(source, context)
        except ExprError as error:
            self._error_log.report(error, source=source, entity=entity)
            return ""


# ============================================================================
# SHARED ENGINE
# ============================================================================

# Initialized lazily on first access to avoid import-time side effects.
_SHARED_ENGINE: ExpressionEngine | None = None
_SHARED_ENGINE_LOCK = threading.Lock()


def get_shared_engine() -> ExpressionEngine:
    """Get the process-wide engine used by the module-level functions.

    Uses DEFAULT_SCHEMA, DEFAULT_CACHE_SIZE and DEFAULT_LOCALE. Construct an
    ExpressionEngine directly for an isolated cache or a custom schema.
    """
    global _SHARED_ENGINE  # noqa: PLW0603
    with _SHARED_ENGINE_LOCK:
        if _SHARED_ENGINE is None:
            _SHARED_ENGINE = ExpressionEngine()
        return _SHARED_ENGINE


def clear_shared_engine() -> None:
    """Discard the shared engine (and its cache); the next call creates a new one."""
    global _SHARED_ENGINE  # noqa: PLW0603
    with _SHARED_ENGINE_LOCK:
        _SHARED_ENGINE = None


def compile_expr(source: str) -> CompiledExpression:
    """Compile ``source`` with the shared engine.

    Example:
        >>> compile_expr("true").run({})
        True
    """
    return get_shared_engine().compile(source)


def eval_expr(source: str, context: Mapping[str, object]) -> Value:
    """Evaluate ``source`` against ``context`` with the shared engine.

    Example:
        >>> eval_expr('chars.join(", ")', {"chars": ["Alice", "Bob"]})
        'Alice, Bob'
    """
    return get_shared_engine().eval(source, context)


def eval_to_display_string(source: str, context: Mapping[str, object]) -> str:
    """Evaluate to display text with the shared engine."""
    return get_shared_engine().eval_to_display_string(source, context)


def eval_condition(source: str, context: Mapping[str, object]) -> bool:
    """Evaluate to a boolean with the shared engine (raises on failure)."""
    return get_shared_engine().eval_condition(source, context)
