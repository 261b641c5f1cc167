"""End-to-end tests for the HTTP surface."""

import pytest
from fastapi.testclient import TestClient

from weathere.config.models import AppConfig
from weathere.data_pipeline.scheduler import SyntheticActivityScheduler
from weathere.service.api.feedback_api import create_app

from conftest import FakeSummarizer

FORECAST = "2024-01-01T10:15:00Z"
LATER_SAME_HOUR = "2024-01-01T10:50:00Z"


@pytest.fixture
def summarizer():
    return FakeSummarizer(text="Users found the forecast mostly accurate.")


@pytest.fixture
def client(database, summarizer, first_choice):
    config = AppConfig(database_path=str(database.db_path))
    scheduler = SyntheticActivityScheduler(database, rng=first_choice)
    app = create_app(config, database=database, summarizer=summarizer, scheduler=scheduler)
    with TestClient(app) as test_client:
        yield test_client


def _submit(client, user_id, rating, comment="", forecast=FORECAST, location="Testville, TS"):
    return client.post(
        "/api/feedback",
        json={
            "locationName": location,
            "latitude": 10.0,
            "longitude": 20.0,
            "timezone": "UTC",
            "forecastTime": forecast,
            "rating": rating,
            "commentText": comment,
        },
        headers={"X-User-Id": user_id, "X-User-Name": user_id.title()},
    )


def _summary(client, forecast=FORECAST, location="Testville, TS"):
    return client.get("/api/feedback/summary", params={"locationName": location, "forecastTime": forecast})


def test_health(client):
    body = client.get("/api/health").json()
    assert body["ok"] is True
    assert body["databaseConnected"] is True
    assert body["aiConfigured"] is True
    assert body["schedulerRunning"] is True


def test_submission_requires_identity(client):
    response = client.post("/api/feedback", json={"locationName": "X", "forecastTime": FORECAST, "rating": "like"})
    assert response.status_code == 401


def test_submission_validation_messages(client):
    missing = client.post("/api/feedback", json={"rating": "like"}, headers={"X-User-Id": "u1"})
    assert missing.status_code == 400
    assert missing.json()["error"] == "locationName, forecastTime, and rating are required"

    bad_rating = _submit(client, "u1", "love")
    assert bad_rating.status_code == 400
    assert "like" in bad_rating.json()["error"]

    too_long = _submit(client, "u1", "like", "x" * 1501)
    assert too_long.status_code == 400
    assert "Current length: 1501" in too_long.json()["error"]


def test_malformed_fields_are_reported_as_400(client, database):
    bad_time = _submit(client, "u1", "like", forecast="yesterday-ish")
    assert bad_time.status_code == 400
    assert "forecastTime" in bad_time.json()["error"]
    assert database.find_location("Testville, TS") is None

    numeric_rating = _submit(client, "u1", 5)
    assert numeric_rating.status_code == 400
    assert numeric_rating.json() == {"error": "rating must be 'like' or 'dislike'"}

    bad_latitude = client.post(
        "/api/feedback",
        json={"locationName": "X", "latitude": "north", "forecastTime": FORECAST, "rating": "like"},
        headers={"X-User-Id": "u1"},
    )
    assert bad_latitude.status_code == 400
    assert "latitude" in bad_latitude.json()["error"]

    bad_time_query = _summary(client, forecast="not-a-time")
    assert bad_time_query.status_code == 400
    assert "forecastTime" in bad_time_query.json()["error"]


def test_resubmission_updates_the_same_record(client):
    first = _submit(client, "alice", "like", "Looks right so far")
    second = _submit(client, "alice", "dislike", "It started raining", forecast=LATER_SAME_HOUR)

    assert first.status_code == 200
    assert second.json()["feedbackId"] == first.json()["feedbackId"]

    body = _summary(client).json()
    assert body["stats"] == {"likes": 0, "dislikes": 1, "totalFeedback": 1, "uniqueUsers": 1}
    assert body["comments"][0]["userDisplayName"] == "Alice"
    assert body["comments"][0]["commentText"] == "It started raining"


def test_summary_for_unknown_location(client):
    body = _summary(client, location="Atlantis").json()
    assert body == {
        "stats": {"likes": 0, "dislikes": 0, "totalFeedback": 0, "uniqueUsers": 0},
        "comments": [],
        "aiSummary": None,
    }


def test_summary_requires_parameters(client):
    assert client.get("/api/feedback/summary", params={"locationName": "X"}).status_code == 400
    bad_time = _summary(client, forecast="yesterday-ish")
    assert bad_time.status_code == 400


def test_sparse_feedback_gets_fallback_summary(client, summarizer):
    _submit(client, "alice", "like", "Great!")
    _submit(client, "bob", "dislike", "ok")

    body = _summary(client).json()
    assert "Based on 2 feedback entries" in body["aiSummary"]
    assert summarizer.calls == []


def test_generated_summary_is_cached(client, summarizer):
    _submit(client, "alice", "like", "Temperature was spot on this morning")
    _submit(client, "bob", "dislike", "Rain arrived an hour before the forecast")
    _submit(client, "carol", "like", "Cloud cover matched what was shown")

    first = _summary(client).json()
    second = _summary(client, forecast=LATER_SAME_HOUR).json()

    assert first["aiSummary"] == "Users found the forecast mostly accurate."
    assert second["aiSummary"] == first["aiSummary"]
    assert len(summarizer.calls) == 1


def test_configured_output_token_limit_reaches_summarizer(database, summarizer, first_choice):
    config = AppConfig(database_path=str(database.db_path), summary_max_output_tokens=50)
    scheduler = SyntheticActivityScheduler(database, rng=first_choice)
    app = create_app(config, database=database, summarizer=summarizer, scheduler=scheduler)

    with TestClient(app) as client:
        _submit(client, "alice", "like", "Temperature was spot on this morning")
        _submit(client, "bob", "dislike", "Rain arrived an hour before the forecast")
        _submit(client, "carol", "like", "Cloud cover matched what was shown")
        body = _summary(client).json()

    assert body["aiSummary"] == "Users found the forecast mostly accurate."
    assert summarizer.calls[0][2] == 50


def test_summary_degrades_when_store_is_unavailable(client, database, temp_data_dir):
    database.db_path = temp_data_dir
    response = _summary(client)

    assert response.status_code == 503
    body = response.json()
    assert body["stats"]["totalFeedback"] == 0
    assert body["comments"] == []


def test_seed_bots_is_idempotent(client):
    first = client.get("/api/scripts/seed-bots").json()
    second = client.post("/api/scripts/seed-bots").json()

    assert first["botsCreated"] == ["WeatherBot1", "WeatherBot2", "WeatherBot3", "WeatherBot4"]
    assert second["botsCreated"] == []
    assert second["botsExisting"] == first["botsCreated"]
    assert second["totalBots"] == 4


def test_bot_control_flow(client):
    client.post("/api/scripts/seed-bots")

    status = client.get("/api/bots/status").json()
    assert status["active"] is False
    assert status["nextRun"] is None
    assert status["botUsers"] == 4

    activated = client.post("/api/bots/control", json={"action": "activate", "frequency": 5}).json()
    assert activated == {
        "success": True,
        "active": True,
        "frequency": 5.0,
        "message": "Bot scheduler activated",
    }
    status = client.get("/api/bots/status").json()
    assert status["frequencyMs"] == 5000
    assert status["nextRun"] is not None

    deactivated = client.post("/api/bots/control", json={"action": "deactivate"}).json()
    assert deactivated["active"] is False
    assert client.get("/api/bots/status").json()["nextRun"] is None


def test_bot_control_rejects_bad_input(client):
    assert client.post("/api/bots/control", json={"frequency": -1}).status_code == 400
    assert client.post("/api/bots/control", json={"action": "explode"}).status_code == 400


def test_comment_now(client):
    skipped = client.post("/api/bots/comment-now").json()
    assert skipped["outcome"] == "skipped_no_location"

    client.post("/api/scripts/seed-bots")
    created = client.post("/api/bots/comment-now").json()
    assert created["success"] is True
    assert created["outcome"] == "created"
    assert "WeatherBot1 commented" in created["message"]
    assert client.get("/api/bots/status").json()["totalComments"] == 1
