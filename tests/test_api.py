import pytest
from fastapi.testclient import TestClient

from api.main import app, get_services_factory
from crmsync.config import Settings
from crmsync.orchestrator import build_services
from tests.conftest import DEFAULT_NOTE

CREATE = "/api/hubspot/create-contact"


@pytest.fixture
def api_client(test_settings, transport):
    app.dependency_overrides[get_services_factory] = lambda: (
        lambda: build_services(test_settings, transport)
    )
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def test_new_contact_end_to_end(api_client, fake_hubspot):
    r = api_client.post(CREATE, json={"email": "new@example.com", "notes": "Asked for a demo"})

    assert r.status_code == 200
    assert r.json() == {
        "contactId": "1001",
        "engagementId": "5001",
        "action": "created",
        "engagementCreated": True,
    }
    assert fake_hubspot.engagements[0]["metadata"]["body"] == "Asked for a demo"


def test_existing_contact_end_to_end(api_client, fake_hubspot):
    fake_hubspot.seed("dup@example.com", "2002")
    fake_hubspot.next_engagement_id = 5002

    r = api_client.post(CREATE, json={"email": "dup@example.com"})

    assert r.status_code == 200
    body = r.json()
    assert (body["contactId"], body["engagementId"], body["action"]) == ("2002", "5002", "found")
    assert "/crm/v3/objects/contacts/search" not in fake_hubspot.paths()


@pytest.mark.parametrize("payload", [{}, {"email": ""}, {"email": "   "}, {"notes": "hi"}])
def test_missing_email_rejected_before_any_remote_call(api_client, fake_hubspot, payload):
    r = api_client.post(CREATE, json=payload)

    assert r.status_code == 400
    assert r.json() == {"error": "Email is required"}
    assert fake_hubspot.calls == []


@pytest.mark.parametrize("path", [CREATE, "/api/hubspot/update-contact"])
def test_no_body_is_missing_email(api_client, fake_hubspot, path):
    r = api_client.post(path)

    assert r.status_code == 400
    assert r.json() == {"error": "Email is required"}
    assert fake_hubspot.calls == []


def test_null_body_is_missing_email(api_client, fake_hubspot):
    r = api_client.post(CREATE, content="null", headers={"Content-Type": "application/json"})

    assert r.status_code == 400
    assert r.json() == {"error": "Email is required"}
    assert fake_hubspot.calls == []


def test_non_string_email_is_bad_request(api_client, fake_hubspot):
    r = api_client.post(CREATE, json={"email": 123})

    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "Invalid request"
    assert "email" in body["details"]
    assert fake_hubspot.calls == []


def test_blank_contact_id_on_notes_is_bad_request(api_client, fake_hubspot):
    r = api_client.post("/api/hubspot/contacts/%20/notes", json={"notes": "hi"})

    assert r.status_code == 400
    assert r.json() == {"error": "contact_id is required"}
    assert fake_hubspot.calls == []


def test_notes_endpoint_without_body_uses_fallback(api_client, fake_hubspot):
    r = api_client.post("/api/hubspot/contacts/1001/notes")

    assert r.status_code == 200
    assert fake_hubspot.engagements[0]["metadata"]["body"] == DEFAULT_NOTE


def test_unconfigured_api_key(transport, fake_hubspot):
    unconfigured = Settings(_env_file=None, HUBSPOT_API_KEY=None)
    app.dependency_overrides[get_services_factory] = lambda: (
        lambda: build_services(unconfigured, transport)
    )
    try:
        with TestClient(app) as c:
            r = c.post(CREATE, json={"email": "new@example.com"})
    finally:
        app.dependency_overrides.clear()

    assert r.status_code == 500
    assert r.json() == {"error": "HubSpot API key not configured"}
    assert fake_hubspot.calls == []


def test_create_failure_maps_to_generic_error(api_client, fake_hubspot):
    fake_hubspot.create_status = 500

    r = api_client.post(CREATE, json={"email": "new@example.com"})

    assert r.status_code == 502
    assert r.json()["error"] == "Failed to create contact and note"
    assert "500" in r.json()["details"]
    assert "/engagements/v1/engagements" not in fake_hubspot.paths()


def test_not_found_after_conflict_reported(api_client, fake_hubspot):
    fake_hubspot.seed("ghost@example.com", "1")
    fake_hubspot.conflict_message = "Contact already exists."
    fake_hubspot.search_returns_nothing = True

    r = api_client.post(CREATE, json={"email": "ghost@example.com"})

    assert r.status_code == 502
    assert "/engagements/v1/engagements" not in fake_hubspot.paths()


def test_note_failure_surfaces_contact_id_then_retry(api_client, fake_hubspot):
    fake_hubspot.note_status = 400

    r = api_client.post(CREATE, json={"email": "new@example.com", "notes": "first try"})

    assert r.status_code == 502
    body = r.json()
    assert body["error"] == "Failed to create contact and note"
    assert body["contactId"] == "1001"
    assert fake_hubspot.contacts == {"new@example.com": "1001"}

    fake_hubspot.note_status = None
    retry = api_client.post(f"/api/hubspot/contacts/{body['contactId']}/notes", json={"notes": "first try"})

    assert retry.status_code == 200
    assert retry.json() == {"contactId": "1001", "engagementId": "5001"}
    assert fake_hubspot.engagements[0]["associations"]["contactIds"] == [1001]


def test_update_contact_reports_engagement_added(api_client, fake_hubspot):
    fake_hubspot.seed("dup@example.com", "2002")

    r = api_client.post("/api/hubspot/update-contact", json={"email": "dup@example.com", "notes": "x"})

    assert r.status_code == 200
    assert r.json()["action"] == "engagement_added"
    assert r.json()["contactId"] == "2002"


def test_each_call_appends_a_new_note(api_client, fake_hubspot):
    api_client.post(CREATE, json={"email": "new@example.com", "notes": "one"})
    api_client.post(CREATE, json={"email": "new@example.com", "notes": "two"})

    assert [e["metadata"]["body"] for e in fake_hubspot.engagements] == ["one", "two"]
    assert len(fake_hubspot.contacts) == 1


def test_health(api_client):
    r = api_client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "OK"


def test_metrics_exposed(api_client):
    api_client.get("/api/health")
    r = api_client.get("/metrics/")
    assert r.status_code == 200
    assert "http_requests_total" in r.text
