"""Shared test fixtures for Ricochet."""

from __future__ import annotations

import pytest

from ricochet.config import ContextSettings, TokenBudget
from ricochet.context.tokens import HeuristicTokenizer, TokenEstimator


@pytest.fixture
def estimator() -> TokenEstimator:
    """Deterministic len/4 estimator with the default fudge factor."""
    return TokenEstimator(HeuristicTokenizer(), fudge_factor=1.05)


@pytest.fixture
def budget() -> TokenBudget:
    return TokenBudget(max_tokens=128_000)


@pytest.fixture
def settings() -> ContextSettings:
    return ContextSettings()
