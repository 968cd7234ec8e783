"""
Shared pytest fixtures for the Artifact Studio test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup + session registry reset (autouse)
    - client: Flask test client (function-scoped)
    - clock: Manually advanced monotonic clock for debounce tests
    - kanban / scorecard / idp: Sample content dicts
"""

import pytest

from artifact_studio import create_app
from artifact_studio.models import db as _db
from artifact_studio.services.document_service import reset_sessions


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, then drop and recreate tables afterwards."""
    with app.app_context():
        reset_sessions()
        yield _db.session
        reset_sessions()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture()
def clock():
    return FakeClock()


# ── Sample content ───────────────────────────────────────────────────────


@pytest.fixture()
def kanban():
    return {
        "columns": [
            {"id": "todo", "title": "To Do", "tasks": [
                {"id": "t1", "title": "Write brief", "description": "One page"},
                {"id": "t2", "title": "Book room"},
            ]},
            {"id": "doing", "title": "In Progress", "tasks": []},
            {"id": "done", "title": "Done", "tasks": [
                {"id": "t3", "title": "Kickoff", "description": ""},
            ]},
        ]
    }


@pytest.fixture()
def scorecard():
    return {
        "employeeName": "Dana Ortiz",
        "period": "2026 H1",
        "perspectives": [
            {"id": "fin", "name": "Financial", "kpis": [
                {"id": "k1", "name": "Revenue", "target": 100, "current": 50, "unit": "k$", "weight": 60},
                {"id": "k2", "name": "Margin", "target": 100, "current": 100, "unit": "%", "weight": 40},
            ]},
            {"id": "cust", "name": "Customer", "kpis": [
                {"id": "k3", "name": "NPS", "target": 50, "current": 60, "unit": "pts", "weight": 100},
            ]},
        ],
    }


@pytest.fixture()
def idp():
    return {
        "employeeName": "Sam Lee",
        "period": "2026",
        "goals": [
            {"id": "g1", "goal": "Grow as a presenter", "rationale": "Client-facing role", "actions": [
                {"id": "a1", "activity": "Toastmasters", "type": "Practice", "timeline": "Q1",
                 "status": "not-started"},
                {"id": "a2", "activity": "Present at all-hands", "type": "Stretch", "timeline": "Q2",
                 "status": "completed", "linkedKPI": "k3"},
            ]},
            {"id": "g2", "goal": "Learn SQL", "rationale": "Reporting", "actions": [
                {"id": "a3", "activity": "Online course", "type": "Training", "timeline": "Q1",
                 "status": "in-progress"},
            ]},
        ],
    }
