"""Pytest configuration for the safeexpr test suite.

Single Source of Truth for Hypothesis max_examples:
- dev: Local development with 500 examples (thorough property testing)
- ci: CI runs with 50 examples (fast feedback)
- verbose: Debug mode with progress output (100 examples)

Profile auto-detection:
- CI=true environment variable -> "ci" profile
- HYPOTHESIS_PROFILE env var -> explicit override
- Otherwise -> "dev" profile (local development)

Override manually: HYPOTHESIS_PROFILE=verbose pytest tests/

Fuzzing Test Separation:
Tests marked with @pytest.mark.fuzz are excluded from normal test runs.
Run them via: pytest -m fuzz
"""

import os
import random
from collections.abc import Callable, Iterator, Mapping
from datetime import UTC, datetime

import pytest
from hypothesis import Phase, Verbosity, settings

from safeexpr import ExpressionEngine, clear_shared_engine, create_base_context
from safeexpr.runtime import Value

# =============================================================================
# HYPOTHESIS PROFILES - SINGLE SOURCE OF TRUTH
# =============================================================================

# Development profile: thorough local testing (500 examples, silent)
settings.register_profile(
    "dev",
    max_examples=500,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    derandomize=False,
)

# CI profile: fast feedback (50 examples)
settings.register_profile(
    "ci",
    max_examples=50,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    derandomize=True,
    print_blob=True,
)

# Verbose profile: debug mode with progress visibility (100 examples)
settings.register_profile(
    "verbose",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    derandomize=False,
    verbosity=Verbosity.verbose,
)


# =============================================================================
# AUTO-DETECT EXECUTION CONTEXT
# =============================================================================


def _detect_profile() -> str:
    """Detect appropriate Hypothesis profile based on execution context.

    Priority:
    1. HYPOTHESIS_PROFILE env var (explicit override)
    2. CI=true env var
    3. Default to "dev" (local development)
    """
    explicit = os.environ.get("HYPOTHESIS_PROFILE")
    if explicit in ("dev", "ci", "verbose"):
        return explicit
    if os.environ.get("CI") == "true":
        return "ci"
    return "dev"


settings.load_profile(_detect_profile())


# =============================================================================
# FUZZING TEST SEPARATION
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register the 'fuzz' marker for intensive property tests."""
    config.addinivalue_line(
        "markers",
        "fuzz: Intensive property tests for fuzzing (excluded from normal test runs)",
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Skip fuzz-marked tests unless explicitly requested.

    Behavior:
    - Normal test run (pytest tests/): Fuzz tests are SKIPPED
    - Explicit fuzz run (pytest -m fuzz): Fuzz tests run
    """
    marker_expr = config.getoption("-m", default="")
    if "fuzz" in str(marker_expr):
        return

    skip_fuzz = pytest.mark.skip(reason="Fuzzing test - run with: pytest -m fuzz")
    for item in items:
        if "fuzz" in item.keywords:
            item.add_marker(skip_fuzz)


# =============================================================================
# SHARED FIXTURES
# =============================================================================

# Monday 15 January 2024, 14:30:00 UTC
FIXED_NOW = datetime(2024, 1, 15, 14, 30, 0, tzinfo=UTC)


def fixed_clock() -> datetime:
    """Clock pinned to FIXED_NOW."""
    return FIXED_NOW


@pytest.fixture(autouse=True)
def _fresh_shared_engine() -> Iterator[None]:
    """Give every test its own shared engine (cache and error log)."""
    clear_shared_engine()
    yield
    clear_shared_engine()


@pytest.fixture
def fixed_now() -> datetime:
    """The instant every context built by make_context() sees as now."""
    return FIXED_NOW


@pytest.fixture
def engine() -> ExpressionEngine:
    """Isolated engine with the default schema."""
    return ExpressionEngine()


@pytest.fixture
def make_context() -> Callable[..., Mapping[str, Value]]:
    """Factory for complete contexts with a seeded rng and a pinned clock.

    Keyword arguments are passed to create_base_context().
    """

    def factory(**overrides: object) -> Mapping[str, Value]:
        options: dict[str, object] = {"rng": random.Random(1234), "clock": fixed_clock}
        options.update(overrides)
        return create_base_context(**options)  # type: ignore[arg-type]

    return factory


@pytest.fixture
def context(make_context: Callable[..., Mapping[str, Value]]) -> Mapping[str, Value]:
    """Default context: no facts, no messages, clock at FIXED_NOW."""
    return make_context()
