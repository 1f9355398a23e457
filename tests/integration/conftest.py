"""
Integration test fixtures for Temporal Intelligence.

Provides fixtures specific to integration testing:
- A TemporalEngine bound to the per-test store
- A FastAPI test client over that engine
- A helper that stores scored commitments for a user
"""

from collections.abc import Callable, Generator
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from temporal_intel.api import create_app
from temporal_intel.inference.dependencies import enrich_with_dependencies
from temporal_intel.models import Commitment
from temporal_intel.service import TemporalEngine
from temporal_intel.store import MemoryStore


# ─────────────────────────────────────────────────────────────────────────────
# Engine Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def engine(store: MemoryStore) -> TemporalEngine:
    """Engine over the isolated test store."""
    return TemporalEngine(store=store)


@pytest.fixture
def test_client(engine: TemporalEngine) -> Generator[TestClient, None, None]:
    """FastAPI test client bound to the test engine."""
    with TestClient(create_app(engine)) as client:
        yield client


@pytest.fixture
def iso(now: datetime) -> Callable[..., str]:
    """ISO string for now plus an offset, for `now` query parameters."""

    def _iso(**offset) -> str:
        return (now + timedelta(**offset)).isoformat()

    return _iso


# ─────────────────────────────────────────────────────────────────────────────
# Data Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def saved(engine: TemporalEngine, now: datetime, make_commitment) -> Callable[..., Commitment]:
    """Store a commitment (with its dependency chain) and return it.

    Each call is created one minute after the previous one, so stored
    commitments list back in call order.
    """
    counter = {"n": 0}

    def _save(**kwargs) -> Commitment:
        counter["n"] += 1
        kwargs.setdefault("created_at", now - timedelta(hours=1) + timedelta(minutes=counter["n"]))
        commitment = enrich_with_dependencies(make_commitment(**kwargs), now)
        engine.save_commitment(commitment)
        return commitment

    return _save
