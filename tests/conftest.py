"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from flashdeck.card import Card  # noqa: E402

T0 = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FakeClock:
    """Settable clock for deterministic scheduling tests."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_card():
    """Factory for cards with explicit scheduling state."""
    counter = {"n": 0}

    def _make(
        interval: int = 0,
        repetitions: int = 0,
        ease_factor: float = 2.5,
        due_at: datetime = T0,
        prompt: str | None = None,
        answer: str = "答案",
        audio: str | None = None,
        card_id: str | None = None,
    ) -> Card:
        counter["n"] += 1
        n = counter["n"]
        return Card(
            id=card_id or f"card-{n:03d}",
            prompt=prompt or f"Sentence number {n}.",
            answer=answer,
            audio=audio,
            interval=interval,
            repetitions=repetitions,
            ease_factor=ease_factor,
            due_at=due_at,
        )

    return _make


@pytest.fixture
def sample_export():
    """Two cards in the browser app's export format."""
    return [
        {
            "id": "lq3k9x2a7f",
            "question": "The train was late because of the heavy snow.",
            "answer": "火車因為大雪而誤點了。",
            "audioData": "data:audio/mp3;base64,SUQzBAAAAAAA",
            "interval": 6,
            "repetitions": 2,
            "easeFactor": 2.6,
            "nextReview": 1717232400000,
        },
        {
            "id": "lq3kb81c0z",
            "question": "She waters the plants every morning before work.",
            "answer": "她每天早上上班前給植物澆水。",
            "audioData": None,
            "interval": 0,
            "repetitions": 0,
            "easeFactor": 2.5,
            "nextReview": 1717146000000,
        },
    ]
