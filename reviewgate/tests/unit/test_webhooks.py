from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from reviewgate.api.main import app
from reviewgate.core.exceptions import BackpressureError
from reviewgate.core.orchestrator import EnqueueResult, get_orchestrator

URL = "/api/webhook/gitlab/merge-request"
SECRET = "s3cret"


def _payload(action="open", **attributes):
    object_attributes = {
        "iid": 1,
        "target_project_id": 24,
        "action": action,
        "last_commit": {"id": "abc"},
    }
    object_attributes.update(attributes)
    return {"object_kind": "merge_request", "object_attributes": object_attributes}


def _headers(token=SECRET, event="Merge Request Hook"):
    headers = {"X-Gitlab-Event": event}
    if token is not None:
        headers["X-Gitlab-Token"] = token
    return headers


@pytest.fixture
def orchestrator():
    orchestrator = MagicMock()
    orchestrator.enqueue_review.return_value = EnqueueResult.QUEUED
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield orchestrator
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture(autouse=True)
def webhook_secret():
    with patch("reviewgate.config.settings.GITLAB_WEBHOOK_SECRET", SECRET), patch(
        "reviewgate.config.settings.APP_ENV", "production"
    ):
        yield


def test_open_event_is_queued(client, orchestrator):
    response = client.post(URL, json=_payload(), headers=_headers())

    assert response.status_code == 200
    assert response.json() == {
        "status": "queued",
        "result": "QUEUED",
        "project_id": 24,
        "mr_id": 1,
    }
    orchestrator.enqueue_review.assert_called_once_with(24, 1, "abc")


@pytest.mark.parametrize("token", [None, "wrong"])
def test_bad_token_is_forbidden(client, orchestrator, token):
    response = client.post(URL, json=_payload(), headers=_headers(token=token))

    assert response.status_code == 403
    assert response.json()["error"] == "WEBHOOK_VALIDATION"
    orchestrator.enqueue_review.assert_not_called()


def test_missing_secret_is_forbidden_in_production(client, orchestrator):
    with patch("reviewgate.config.settings.GITLAB_WEBHOOK_SECRET", None):
        response = client.post(URL, json=_payload(), headers=_headers(token=None))

    assert response.status_code == 403


def test_missing_secret_is_allowed_outside_production(client, orchestrator):
    with patch("reviewgate.config.settings.GITLAB_WEBHOOK_SECRET", None), patch(
        "reviewgate.config.settings.APP_ENV", "development"
    ):
        response = client.post(URL, json=_payload(), headers=_headers(token=None))

    assert response.status_code == 200
    assert response.json()["status"] == "queued"


def test_other_events_are_ignored(client, orchestrator):
    response = client.post(URL, json=_payload(), headers=_headers(event="Push Hook"))

    assert response.status_code == 200
    assert response.json()["status"] == "ignored"
    orchestrator.enqueue_review.assert_not_called()


@pytest.mark.parametrize("action", ["close", "merge", "approved"])
def test_unhandled_actions_are_ignored(client, orchestrator, action):
    response = client.post(URL, json=_payload(action=action), headers=_headers())

    assert response.json()["status"] == "ignored"
    orchestrator.enqueue_review.assert_not_called()


def test_project_id_falls_back_to_source_then_project(client, orchestrator):
    payload = _payload(target_project_id=None, source_project_id=30)
    client.post(URL, json=payload, headers=_headers())

    payload = _payload(target_project_id=None)
    payload["project"] = {"id": 31}
    client.post(URL, json=payload, headers=_headers())

    calls = [c.args for c in orchestrator.enqueue_review.call_args_list]
    assert calls == [(30, 1, "abc"), (31, 1, "abc")]


def test_missing_identifiers_are_bad_request(client, orchestrator):
    response = client.post(
        URL, json=_payload(target_project_id=None), headers=_headers()
    )
    assert response.status_code == 400

    response = client.post(URL, json=_payload(iid=None), headers=_headers())
    assert response.status_code == 400
    orchestrator.enqueue_review.assert_not_called()


def test_missing_last_commit_lets_orchestrator_fetch_sha(client, orchestrator):
    client.post(URL, json=_payload(last_commit=None), headers=_headers())

    orchestrator.enqueue_review.assert_called_once_with(24, 1, None)


def test_full_queue_is_service_unavailable(client, orchestrator):
    orchestrator.enqueue_review.side_effect = BackpressureError("queue full")

    response = client.post(URL, json=_payload(), headers=_headers())

    assert response.status_code == 503
    assert response.json()["error"] == "PROCESSING_QUEUE_FULL"


def test_dedup_result_is_reported(client, orchestrator):
    orchestrator.enqueue_review.return_value = EnqueueResult.ALREADY_REVIEWED

    response = client.post(URL, json=_payload(action="update"), headers=_headers())

    assert response.json()["result"] == "ALREADY_REVIEWED"


@pytest.mark.parametrize("flag", ["draft", "work_in_progress"])
def test_draft_merge_requests_are_skipped(client, orchestrator, flag):
    response = client.post(
        URL, json=_payload(action="update", **{flag: True}), headers=_headers()
    )

    assert response.status_code == 200
    assert response.json() == {
        "status": "skipped",
        "result": "SKIPPED",
        "project_id": 24,
        "mr_id": 1,
    }
    orchestrator.enqueue_review.assert_not_called()
    orchestrator.metrics.increment.assert_called_once_with("skipped")


def test_non_draft_flags_still_queue(client, orchestrator):
    client.post(
        URL, json=_payload(draft=False, work_in_progress=False), headers=_headers()
    )

    orchestrator.enqueue_review.assert_called_once_with(24, 1, "abc")
