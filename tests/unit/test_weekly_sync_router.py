"""
Tests for the weekly sync operator routes.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from syncbot.config import settings
from syncbot.features.weekly_sync import WeeklySyncContainer, weekly_sync_router
from syncbot.features.weekly_sync.domain import ThreadType, UpdateSegment


@pytest.fixture
def container(team, messenger, synthesizer, job_runner):
    test_settings = settings.model_copy(update={"COLLECTION_SEND_DELAY_SECONDS": 0.0})
    return WeeklySyncContainer.build(test_settings, team, messenger, synthesizer, job_runner)


@pytest.fixture
def client(container):
    app = FastAPI()
    app.include_router(weekly_sync_router)
    app.state.weekly_sync = container
    return TestClient(app)


def test_status(client, container):
    container.scheduler.start()

    response = client.get("/weekly-sync/status")

    assert response.status_code == 200
    data = response.json()
    assert data["running"] is True
    assert data["timezone"] == settings.WEEKLY_SYNC_TIMEZONE
    assert data["cached_threads"] == 0
    assert "next_collection_time" in data


def test_trigger_collection(client, messenger):
    response = client.post("/weekly-sync/collection")

    assert response.status_code == 200
    assert response.json()["sent"] == 3
    assert messenger.opened == ["U1", "U2", "U3"]


def test_trigger_summaries(client):
    response = client.post("/weekly-sync/summaries")

    assert response.status_code == 200
    data = response.json()
    # No segments recorded for last week
    assert data["skipped"] == 2
    assert data["posted"] == 0


def test_send_test_dm(client, messenger):
    response = client.post("/weekly-sync/collection/test", json={"slack_user_id": "U2"})

    assert response.status_code == 200
    data = response.json()
    assert data["sent"] == 1
    assert data["sync_cycle_id"].startswith(f"sync-{data['week_start']}-")
    assert messenger.opened == ["U2"]


def test_admin_token_required_when_configured(client, messenger, monkeypatch):
    monkeypatch.setattr(settings, "WEEKLY_SYNC_ADMIN_TOKEN", "s3cret")

    missing = client.post("/weekly-sync/collection")
    wrong = client.post("/weekly-sync/collection", headers={"X-Admin-Token": "nope"})
    ok = client.post("/weekly-sync/collection", headers={"X-Admin-Token": "s3cret"})

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert ok.status_code == 200
    assert messenger.opened == ["U1", "U2", "U3"]


def test_status_does_not_require_token(client, monkeypatch):
    monkeypatch.setattr(settings, "WEEKLY_SYNC_ADMIN_TOKEN", "s3cret")

    assert client.get("/weekly-sync/status").status_code == 200


def _atlas_segment():
    return UpdateSegment(
        id="seg-1",
        weekly_update_id="wu-1",
        project_id="proj-a",
        content="Finished the importer",
        person_id="p1",
        person_name="Ada Lovelace",
    )


def test_preview_project_summary(client, team, messenger, synthesizer):
    team.segments[("proj-a", "2026-01-12")] = [_atlas_segment()]

    response = client.post("/weekly-sync/summaries/proj-a", params={"week_start": "2026-01-12"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["summary"] == synthesizer.result.text
    assert 'project "Atlas"' in synthesizer.prompts[0]
    assert messenger.posts == []


def test_preview_project_summary_defaults_to_last_week(client, container):
    response = client.post("/weekly-sync/summaries/proj-a")

    data = response.json()
    assert data["week_start"] == container.scheduler.previous_week_start()
    assert data["success"] is False


def test_preview_rejects_malformed_week(client):
    response = client.post("/weekly-sync/summaries/proj-a", params={"week_start": "01/12/2026"})

    assert response.status_code == 422


def test_post_meeting_notes_reply_into_summary_thread(client, container, team, messenger):
    week_start = container.scheduler.previous_week_start()
    team.segments[("proj-a", week_start)] = [_atlas_segment()]
    client.post("/weekly-sync/summaries")
    summary_post = messenger.posts[0]
    pre_meeting = team.threads[("C-ATLAS", summary_post["ts"])]

    response = client.post(
        "/weekly-sync/projects/proj-a/post-meeting-notes",
        json={
            "sync_cycle_id": pre_meeting.sync_cycle_id,
            "week_start": week_start,
            "notes": "Decisions: ship Friday",
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "posted"
    assert messenger.posts[-1]["thread_ts"] == summary_post["ts"]
    assert team.threads[("C-ATLAS", data["thread_ts"])].thread_type == ThreadType.POST_MEETING


def test_post_meeting_notes_unknown_project(client, messenger):
    response = client.post(
        "/weekly-sync/projects/proj-x/post-meeting-notes",
        json={"sync_cycle_id": "sync-2026-01-12-abc", "week_start": "2026-01-12", "notes": "n"},
    )

    assert response.status_code == 404
    assert messenger.posts == []


def test_post_meeting_notes_requires_token(client, monkeypatch):
    monkeypatch.setattr(settings, "WEEKLY_SYNC_ADMIN_TOKEN", "s3cret")

    response = client.post(
        "/weekly-sync/projects/proj-a/post-meeting-notes",
        json={"sync_cycle_id": "sync-2026-01-12-abc", "week_start": "2026-01-12", "notes": "n"},
    )

    assert response.status_code == 401


def test_thread_lookup(client):
    client.post("/weekly-sync/collection")

    response = client.get("/weekly-sync/threads/D-U1/1700000000.000001")

    assert response.status_code == 200
    data = response.json()
    assert data["thread"]["thread_type"] == ThreadType.COLLECTION.value
    assert data["thread"]["person_id"] == "p1"
    assert data["collection_context"]["person_name"] == "Ada Lovelace"


def test_thread_lookup_not_found(client):
    response = client.get("/weekly-sync/threads/C-NOPE/1.1")

    assert response.status_code == 404


def test_disabled_feature_returns_503():
    app = FastAPI()
    app.include_router(weekly_sync_router)
    app.state.weekly_sync = None

    response = TestClient(app).get("/weekly-sync/status")

    assert response.status_code == 503
