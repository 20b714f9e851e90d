from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from tandem.db.deps import get_session_factory
from tandem.main import app
from tandem.services.records import WizardFlow
from tandem.services.weeks import previous_week_id
from tandem.wizard.registry import target_week_id


@pytest.fixture()
def client(session_factory):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_current_week_for_new_user(client, seed) -> None:
    user_id = seed.user()

    response = client.get("/weeks/current", params={"user_id": str(user_id)})

    assert response.status_code == 200
    body = response.json()
    assert body["week_id"] == target_week_id(WizardFlow.REVIEW, datetime.now(timezone.utc))
    assert body["is_planned"] is False
    assert body["is_reviewed"] is False
    assert body["overall_rating"] is None
    assert body["streak"] == 0
    assert isinstance(body["review_window_open"], bool)
    assert body["planning_window_open"] is True


def test_current_week_reports_status_and_streak(client, seed) -> None:
    user_id = seed.user()
    week_id = target_week_id(WizardFlow.REVIEW, datetime.now(timezone.utc))
    seed.week(user_id, previous_week_id(week_id), reviewed=True)
    seed.week(user_id, week_id, reviewed=True, planned=True, rating=5)

    body = client.get("/weeks/current", params={"user_id": str(user_id)}).json()

    assert body["is_planned"] is True
    assert body["is_reviewed"] is True
    assert body["overall_rating"] == 5
    assert body["streak"] == 2


def test_current_week_requires_user_id(client) -> None:
    assert client.get("/weeks/current").status_code == 422
