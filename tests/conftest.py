"""
Pytest configuration for the complaint service.

Provides fixtures for:
- An application bound to a private in-memory SQLite database
- A seeded entity directory
- Deterministic clocks for the store and the rate limiter
"""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from app import create_app
from extensions import db
from models import Entity
from utils.complaint_store import ComplaintStore


class StepClock:
    """datetime source that advances a fixed step on every call."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start or datetime(2026, 3, 15, 12, 0, 0)
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


class ManualClock:
    """Monotonic-style float clock moved explicitly by tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def make_app(tmp_path):
    created = []

    def _make(**overrides):
        settings = {
            "LOG_DIR": str(tmp_path / "logs"),
            "AUDIT_LOG_PATH": str(tmp_path / "logs" / "audit.log"),
        }
        settings.update(overrides)
        application = create_app("testing", overrides=settings)
        created.append(application)
        return application

    yield _make

    for application in created:
        with application.app_context():
            db.session.remove()
            db.drop_all()


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield


def _seed_entities(application) -> dict[str, int]:
    rows = [
        Entity(name="Alcaldía de Tunja", entity_type="Municipal", contact_email="alcaldia@tunja.gov.co"),
        Entity(name="Gobernación de Boyacá", entity_type="Departamental"),
        Entity(name="Hospital San Rafael", entity_type="Salud"),
        Entity(name="Oficina Cerrada", entity_type="Municipal", active=False),
    ]
    with application.app_context():
        db.session.add_all(rows)
        db.session.commit()
        return {row.name: row.id for row in rows}


@pytest.fixture
def entities(app) -> dict[str, int]:
    return _seed_entities(app)


@pytest.fixture
def seed_entities():
    return _seed_entities


@pytest.fixture
def step_clock() -> StepClock:
    return StepClock()


@pytest.fixture
def manual_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store(ctx, step_clock) -> ComplaintStore:
    return ComplaintStore(clock=step_clock)


@pytest.fixture
def valid_description() -> str:
    return "The streetlights on Calle 20 have been out for two weeks."
