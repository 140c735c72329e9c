from __future__ import annotations

from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from studioflow.api.v1 import financial as financial_api
from studioflow.api.v1 import projects as projects_api
from studioflow.auth.jwt import create_access_token
from studioflow.main import create_app
from studioflow.models.enums import SpecialStatus, StageStatus

PREFIX = "/api/v1"


@pytest.fixture
def client(monkeypatch, db, bus):
    # The in-memory engine has a single shared connection, so requests reuse the seeding session.
    @contextmanager
    def _get_db_session():
        yield db

    monkeypatch.setattr(projects_api, "get_db_session", _get_db_session)
    monkeypatch.setattr(financial_api, "get_db_session", _get_db_session)
    return TestClient(create_app(run_bootstrap=False))


@pytest.fixture
def auth(config):
    def _headers(role: str = "editor", user_id: int = 2) -> dict[str, str]:
        token = create_access_token(user_id=user_id, role=role, secret=config.JWT_SECRET)
        return {"Authorization": f"Bearer {token}"}

    return _headers


def test_health_endpoint_works(client):
    response = client.get(f"{PREFIX}/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_project_requires_bearer_token(client, seed):
    project = seed()
    assert client.get(f"{PREFIX}/projects/{project.id}").status_code == 401
    response = client.get(f"{PREFIX}/projects/{project.id}", headers={"Authorization": "Token abc"})
    assert response.status_code == 401


def test_project_snapshot(client, seed, auth):
    project = seed(stage_status=StageStatus.PRODUCTION)

    response = client.get(f"{PREFIX}/projects/{project.id}", headers=auth("viewer"))

    assert response.status_code == 200
    body = response.json()
    assert body["stage_status"] == "production"
    assert body["stage_label"] == "Production"
    assert body["special_status"] == "none"
    assert "production" not in body["allowed_targets"]


def test_unknown_project_is_404(client, seed, auth):
    seed()
    response = client.get(f"{PREFIX}/projects/999", headers=auth())
    assert response.status_code == 404
    assert response.json()["detail"]["error_code"] == "NOT_FOUND"


def test_viewer_cannot_change_stage(client, seed, auth):
    project = seed()
    response = client.patch(
        f"{PREFIX}/projects/{project.id}/stage-status",
        json={"target_stage": "accepted"},
        headers=auth("viewer", user_id=1),
    )
    assert response.status_code == 403


def test_stage_change_creates_invoice(client, seed, auth, bus):
    project = seed()

    response = client.patch(
        f"{PREFIX}/projects/{project.id}/stage-status",
        json={"target_stage": "accepted", "reason": "Contract signed"},
        headers=auth(),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["changed"] is True
    assert body["project"]["stage_status"] == "accepted"
    assert body["created_invoice"]["status"] == "pending"
    assert body["reason_code"] == "FORWARD"
    assert bus.published[-1][1]["newStage"] == "accepted"

    documents = client.get(f"{PREFIX}/projects/{project.id}/financial-documents", headers=auth()).json()
    assert documents["total"] == 1


def test_unknown_stage_value_is_422(client, seed, auth):
    project = seed()
    response = client.patch(
        f"{PREFIX}/projects/{project.id}/stage-status",
        json={"target_stage": "archived"},
        headers=auth(),
    )
    assert response.status_code == 422


def test_unconfirmed_delivery_is_428(client, seed, auth):
    project = seed(stage_status=StageStatus.POST_REVIEW)

    response = client.patch(
        f"{PREFIX}/projects/{project.id}/stage-status",
        json={"target_stage": "delivered"},
        headers=auth(),
    )

    assert response.status_code == 428
    assert response.json()["detail"]["error_code"] == "CONFIRMATION_REQUIRED"


def test_completion_with_unpaid_invoice_is_409_with_unpaid_list(client, seed, add_document, auth):
    project = seed(stage_status=StageStatus.DELIVERED)
    invoice = add_document(project)

    response = client.patch(
        f"{PREFIX}/projects/{project.id}/stage-status",
        json={"target_stage": "completed", "confirmed": True},
        headers=auth(),
    )

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["error_code"] == "PAYMENT_PENDING"
    assert detail["reason_code"] == "PAYMENT_PENDING"
    assert [doc["id"] for doc in detail["unpaid"]] == [invoice.id]

    gate = client.get(f"{PREFIX}/projects/{project.id}/payment-gate", headers=auth()).json()
    assert gate["ok"] is False
    assert gate["reason"] == "unpaid"


def test_payment_unblocks_completion(client, seed, add_document, auth):
    project = seed(stage_status=StageStatus.DELIVERED)
    invoice = add_document(project)

    assert client.post(f"{PREFIX}/financial-documents/{invoice.id}/pay", headers=auth()).status_code == 403
    paid = client.post(f"{PREFIX}/financial-documents/{invoice.id}/pay", headers=auth("manager", user_id=1))
    assert paid.status_code == 200
    assert paid.json()["paid"] is True

    response = client.patch(
        f"{PREFIX}/projects/{project.id}/stage-status",
        json={"target_stage": "completed", "confirmed": True},
        headers=auth(),
    )
    assert response.status_code == 200
    assert response.json()["project"]["stage_status"] == "completed"


def test_paying_unknown_document_is_404(client, seed, auth):
    seed()
    response = client.post(f"{PREFIX}/financial-documents/404/pay", headers=auth("admin", user_id=1))
    assert response.status_code == 404


def test_cancellation_blocks_stage_changes(client, seed, auth):
    project = seed(stage_status=StageStatus.PRODUCTION)

    unconfirmed = client.patch(
        f"{PREFIX}/projects/{project.id}/special-status",
        json={"special_status": "canceled", "reason": "Budget withdrawn"},
        headers=auth(),
    )
    assert unconfirmed.status_code == 428

    canceled = client.patch(
        f"{PREFIX}/projects/{project.id}/special-status",
        json={"special_status": "canceled", "reason": "Budget withdrawn", "confirmed": True},
        headers=auth(),
    )
    assert canceled.status_code == 200
    assert canceled.json()["project"]["special_status"] == SpecialStatus.CANCELED.value

    blocked = client.patch(
        f"{PREFIX}/projects/{project.id}/stage-status",
        json={"target_stage": "post_review"},
        headers=auth(),
    )
    assert blocked.status_code == 409
    assert blocked.json()["detail"]["reason_code"] == "BLOCKED_BY_CANCELLATION"


def test_status_history_is_newest_first(client, seed, auth):
    project = seed()
    client.patch(
        f"{PREFIX}/projects/{project.id}/stage-status", json={"target_stage": "accepted"}, headers=auth()
    )
    client.patch(
        f"{PREFIX}/projects/{project.id}/special-status",
        json={"special_status": "delayed", "reason": "Weather"},
        headers=auth(),
    )

    response = client.get(f"{PREFIX}/projects/{project.id}/status-history", headers=auth("viewer"))

    assert response.status_code == 200
    items = response.json()["items"]
    assert [(item["status_kind"], item["new_status"]) for item in items] == [
        ("special", "delayed"),
        ("stage", "accepted"),
    ]
    assert items[0]["reason"] == "Weather"


def test_sync_financial_dates_endpoint(client, seed, add_document, auth):
    project = seed(stage_status=StageStatus.PRODUCTION)
    add_document(project)

    assert client.post(f"{PREFIX}/projects/{project.id}/sync-financial-dates", headers=auth()).status_code == 403
    response = client.post(
        f"{PREFIX}/projects/{project.id}/sync-financial-dates", headers=auth("manager", user_id=1)
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert len(body["updated_document_ids"]) == 1


def test_websocket_room_receives_project_updates(client, seed, auth, config):
    project = seed()
    token = create_access_token(user_id=2, role="viewer", secret=config.JWT_SECRET)

    with client.websocket_connect(f"{PREFIX}/ws/projects/{project.id}?token={token}") as websocket:
        response = client.patch(
            f"{PREFIX}/projects/{project.id}/stage-status", json={"target_stage": "accepted"}, headers=auth()
        )
        assert response.status_code == 200
        message = websocket.receive_json()

    assert message == {
        "event": "project_updated",
        "projectId": project.id,
        "newStage": "accepted",
        "newSpecialStatus": "none",
    }


def test_websocket_releases_its_subscription_on_disconnect(client, seed, bus, config):
    project = seed()
    token = create_access_token(user_id=2, role="viewer", secret=config.JWT_SECRET)
    topic = f"project:{project.id}"

    with client.websocket_connect(f"{PREFIX}/ws/projects/{project.id}?token={token}") as websocket:
        websocket.send_text("ping")
        assert bus.subscriber_count(topic) == 1

    assert bus.subscriber_count(topic) == 0


def test_websocket_requires_token(client, seed):
    project = seed()
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"{PREFIX}/ws/projects/{project.id}"):
            pass
