import asyncio
import json
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from hssedb import main
from hssedb.apps.events import dispatcher, models, unit_of_work
from hssedb.apps.events.domain import DomainEvent
from hssedb.apps.workflow.errors import (
    AggregateNotFoundError,
    CapacityExceededError,
    ConcurrencyConflictError,
    DomainError,
    DomainValidationError,
    SubEntityNotFoundError,
    TransitionError,
)
from hssedb.utils.dates import utcnow

client = TestClient(main.app)


def _request(path: str) -> Request:
    return Request({"type": "http", "method": "POST", "path": path, "headers": [], "query_string": b""})


def test_health_endpoints():
    assert client.get("/health").json() == {"status": "ok"}
    root = client.get("/").json()
    assert root["status"] == "ok"


def test_history_rejects_out_of_range_limit():
    response = client.get("/api/events/history", params={"limit": 0})
    assert response.status_code == 422


@pytest.mark.parametrize(
    "error,status_code",
    [
        (DomainValidationError("Title is required", field="title"), 422),
        (AggregateNotFoundError("Training 9 not found", field="id"), 404),
        (TransitionError("Training must be scheduled before it can start", field="status"), 409),
        (CapacityExceededError("Training is at full capacity"), 409),
        (SubEntityNotFoundError("Participant 3 not found"), 409),
        (ConcurrencyConflictError("The record was modified by another request"), 409),
        (DomainError("Unclassified"), 400),
    ],
)
def test_domain_errors_map_to_http_status(error, status_code):
    response = asyncio.run(main.domain_error_handler(_request("/api/trainings/9/start"), error))

    assert response.status_code == status_code
    body = json.loads(response.body)
    assert body["code"] == error.code
    assert body["message"] == error.message
    assert body["detail"] == error.detail


def test_cors_origins_from_env(monkeypatch):
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://hsse.example.com, ,https://ops.example.com")
    assert main._allowed_origins() == ["https://hsse.example.com", "https://ops.example.com"]

    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "")
    assert "http://localhost:5173" in main._allowed_origins()


def _stage_event(db_session, event_type: str, **payload) -> DomainEvent:
    event = DomainEvent.create(
        event_type=event_type,
        aggregate_type=event_type.split(".")[0],
        aggregate_id=21,
        aggregate_ref="CS-202603-Q8RT",
        actor_id="approver-1",
        payload=payload,
    )
    db_session.add(unit_of_work._outbox_row(event))
    db_session.commit()
    return event


def test_dispatched_event_is_visible_through_read_endpoints(api_client, db_session):
    event = _stage_event(db_session, "work_permit.rejected", title="Tank entry", reason="No gas test")
    dispatcher.dispatch_pending(db_session, now=utcnow() + timedelta(seconds=1))

    audit = api_client.get("/api/audit-events", params={"entity_type": "work_permit"}).json()
    assert [row["event_id"] for row in audit] == [event.event_id]
    assert audit[0]["action"] == "rejected"
    assert audit[0]["metadata"] == {"eventType": "work_permit.rejected"}

    history = api_client.get("/api/events/history", params={"entityType": "work_permit"}).json()
    assert [item["id"] for item in history["items"]] == [event.event_id]
    assert history["items"][0]["type"] == "work_permit.rejected"

    logs = api_client.get("/api/notifications", params={"event_id": event.event_id}).json()
    assert [(log["template_key"], log["status"]) for log in logs] == [
        ("work_permit_rejected", "SKIPPED_NO_PROVIDER"),
    ]


def test_dead_lettered_event_can_be_requeued_once(api_client, db_session):
    event = _stage_event(db_session, "inspection.scheduled", title="Boiler room")
    row = db_session.query(models.DomainEventOutbox).one()
    row.status = models.OutboxStatus.DEAD_LETTER
    row.attempt_count = 5
    row.next_attempt_at = None
    db_session.commit()

    listed = api_client.get("/api/events/outbox", params={"status": "DEAD_LETTER"}).json()
    assert [item["event_id"] for item in listed] == [event.event_id]

    response = api_client.post(f"/api/events/outbox/{event.event_id}/requeue")
    assert response.status_code == 200
    assert response.json()["status"] == "PENDING"
    assert response.json()["attempt_count"] == 0

    again = api_client.post(f"/api/events/outbox/{event.event_id}/requeue")
    assert again.status_code == 409
    assert again.json()["code"] == "invalid_operation"

    missing = api_client.post("/api/events/outbox/does-not-exist/requeue")
    assert missing.status_code == 404
    assert missing.json()["detail"] == [{"field": "event_id", "reason": "Outbox event does-not-exist not found"}]
