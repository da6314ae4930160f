"""Tests for the HTTP API."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from readgoals.goals.engine import ReadingGoalsEngine
from readgoals.main import app, get_engine


@pytest.fixture()
def api_engine(backend, clock) -> ReadingGoalsEngine:
    return ReadingGoalsEngine(backend, clock=clock)


@pytest.fixture()
def client(api_engine):
    app.dependency_overrides[get_engine] = lambda: api_engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_root_and_status(client):
    assert client.get("/").json()["message"] == "Reading Goals"
    assert client.get("/status").json()["status"] == "running"


def test_default_progress(client):
    response = client.get("/goals/progress")
    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Reading Goal"
    assert body["targetVolumes"] == 52
    assert body["periodLabel"] == "2024"
    assert body["isClosed"] is False
    assert body["daysRemaining"] == 292


def test_progress_after_library_feed(client):
    client.put("/library/catalog", json={"v1": {"pageCount": 100}, "v2": {"pageCount": 200}})
    response = client.put(
        "/library/volumes",
        json={
            "v1": {"progress": 100, "lastProgressUpdate": "2024-03-10T10:00:00"},
            "v2": {"progress": 50, "lastProgressUpdate": "2024-03-12T10:00:00"},
        },
    )
    assert response.json() == {"status": "success", "volumes": 2}

    client.put("/goals/targets", json={"goalType": "month", "periodKey": "2024-03", "targetVolumes": 2})
    client.put("/goals/selection", json={"goalType": "month", "periodKey": "2024-03"})

    body = client.get("/goals/progress").json()
    assert body["completedVolumes"] == 1
    assert body["inProgressVolumes"] == 1
    assert body["totalProgress"] == pytest.approx(1.25)
    assert body["periodLabel"] == "March 2024"


def test_progress_finalizes_closed_periods(client):
    client.put("/goals/targets", json={"goalType": "month", "periodKey": "2024-02", "targetVolumes": 2})
    client.get("/goals/progress")
    assert "month:2024-02" in client.get("/goals/snapshots").json()
    assert client.post("/goals/snapshots/finalize").json() == {"status": "success", "created": []}


def test_active_period_and_recent_periods(client):
    period = client.get("/goals/period").json()
    assert period["periodKey"] == "2024"
    assert period["start"].startswith("2024-01-01")

    months = client.get("/goals/periods/month", params={"count": 3}).json()
    assert [p["periodKey"] for p in months] == ["2024-03", "2024-02", "2024-01"]

    assert client.get("/goals/periods/decade").status_code == 404


def test_recent_periods_count_is_bounded(client):
    assert client.get("/goals/periods/year", params={"count": 2100}).status_code == 422
    assert client.get("/goals/periods/year", params={"count": -1}).status_code == 422

    years = client.get("/goals/periods/year", params={"count": 1000}).json()
    assert len(years) == 1000
    assert years[-1]["periodKey"] == "1025"


def test_unicode_digit_key_does_not_break_progress(client):
    response = client.put(
        "/goals/targets", json={"goalType": "month", "periodKey": "2024-¹", "targetVolumes": 2}
    )
    assert response.status_code == 200

    assert client.get("/goals/progress").status_code == 200
    assert client.post("/goals/snapshots/finalize").json()["created"] == []

    client.put("/goals/selection", json={"goalType": "year", "periodKey": "²"})
    body = client.get("/goals/progress").json()
    assert body["periodLabel"] == "Unknown period"


def test_targets_crud(client):
    body = client.put(
        "/goals/targets", json={"goalType": "season", "periodKey": "2024-Spring", "targetVolumes": 8}
    ).json()
    assert {"goalType": "season", "periodKey": "2024-Spring"}.items() <= body["targets"][1].items()

    body = client.delete("/goals/targets/season/2024-Spring").json()
    assert [t["goalType"] for t in body["targets"]] == ["year"]


def test_custom_goal_lifecycle(client):
    created = client.post(
        "/goals/custom",
        json={"name": "Spring break", "targetVolumes": 3, "startDate": "2024-03-10", "endDate": "2024-03-19"},
    )
    assert created.status_code == 200
    goal = created.json()
    assert client.get("/goals").json()["activeSelection"] == {"goalType": "custom", "customId": goal["id"]}
    assert client.get("/goals/progress").json()["periodLabel"] == "Spring break"

    updated = client.put(
        f"/goals/custom/{goal['id']}",
        json={"name": "Break", "targetVolumes": 4, "startDate": "2024-03-10", "endDate": "2024-03-19"},
    )
    assert updated.json()["name"] == "Break"
    assert updated.json()["createdAt"] == goal["createdAt"]

    body = client.delete(f"/goals/custom/{goal['id']}").json()
    assert body["customGoals"] == []
    assert body["activeSelection"] == {"goalType": "year", "periodKey": "2024"}


def test_invalid_custom_goals_rejected(client):
    bad = {"name": "", "targetVolumes": 3, "startDate": "2024-03-10", "endDate": "2024-03-19"}
    assert client.post("/goals/custom", json=bad).status_code == 400
    assert client.put("/goals/custom/missing", json={**bad, "name": "x"}).status_code == 404


def test_settings_and_pace(client):
    body = client.put("/settings/annual", json={"targetVolumes": 24}).json()
    assert body["annualGoals"] == [{"year": 2024, "targetVolumes": 24}]
    assert client.get("/goals/progress/annual").json()["targetVolumes"] == 24

    client.put("/settings/deadlines/v1", json={"deadline": "2024-03-18"})
    pace = client.get("/settings/deadlines/v1/pace", params={"remaining_pages": 100}).json()
    assert pace == {"volumeId": "v1", "deadline": "2024-03-18", "pagesPerDay": 25}

    client.delete("/settings/deadlines/v1")
    assert client.get("/settings").json()["volumeDeadlines"] == {}


def test_sync_round_trip(client):
    stamp = "2024-03-20T08:00:00.000Z"
    response = client.post(
        "/sync/goals",
        json={
            "data": {
                "targets": [],
                "customGoals": [],
                "activeSelection": {"goalType": "today", "periodKey": "2024-03-15"},
            },
            "updatedAt": stamp,
        },
    )
    assert response.json() == {"status": "success", "updatedAt": stamp}

    response = client.post(
        "/sync/completed-at", json={"data": {"v1": "2024-03-15T07:00:00"}, "updatedAt": stamp}
    )
    assert response.json()["updatedAt"] == stamp

    state = client.get("/sync").json()
    assert state["goalsData"]["updatedAt"] == stamp
    assert state["goalsData"]["data"]["targets"] == []
    assert state["completedAt"]["data"] == {"v1": "2024-03-15T07:00:00"}


def test_sync_rejects_malformed_payload(client):
    response = client.post("/sync/settings", json={"data": {"annualGoals": "nope"}, "updatedAt": "x"})
    assert response.status_code == 422
