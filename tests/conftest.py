"""
Shared fixtures: an in-memory fake of the three HubSpot endpoints we call,
served through httpx.MockTransport so no request leaves the process.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from crmsync.config import HubSpotConfig, Settings
from crmsync.contacts import ContactResolver
from crmsync.engagements import EngagementAttacher
from crmsync.integrations.hubspot import HubSpotClient

DEFAULT_NOTE = "Live December 11, 2025 - Web"


class FakeHubSpot:
    """Just enough HubSpot: unique emails, 409 on duplicates, exact-match search, NOTE engagements."""

    def __init__(self, next_id: int = 1001, next_engagement_id: int = 5001):
        self.contacts: Dict[str, str] = {}
        self.engagements: List[Dict[str, Any]] = []
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.next_id = next_id
        self.next_engagement_id = next_engagement_id
        # What a duplicate create answers with; "{id}" is filled in when present.
        self.conflict_message = "Contact already exists. Existing ID: {id}"
        self.search_returns_nothing = False
        self.search_override: Optional[List[Dict[str, Any]]] = None
        self.create_status: Optional[int] = None
        self.search_status: Optional[int] = None
        self.note_status: Optional[int] = None

    def seed(self, email: str, contact_id: str) -> None:
        self.contacts[email] = contact_id

    def paths(self) -> List[str]:
        return [p for p, _ in self.calls]

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content or b"{}")
        path = request.url.path
        self.calls.append((path, payload))
        assert request.headers["Authorization"] == "Bearer test-token"

        if path == "/crm/v3/objects/contacts":
            return self._create_contact(payload)
        if path == "/crm/v3/objects/contacts/search":
            return self._search(payload)
        if path == "/engagements/v1/engagements":
            return self._create_note(payload)
        return httpx.Response(404, json={"message": f"no route {path}"})

    def _create_contact(self, payload):
        if self.create_status is not None:
            return httpx.Response(self.create_status, json={"status": "error", "message": "internal"})
        email = payload["properties"]["email"]
        if email in self.contacts:
            message = self.conflict_message.format(id=self.contacts[email])
            return httpx.Response(
                409, json={"status": "error", "message": message, "category": "CONFLICT"}
            )
        contact_id = str(self.next_id)
        self.next_id += 1
        self.contacts[email] = contact_id
        return httpx.Response(201, json={"id": contact_id, "properties": {"email": email}})

    def _search(self, payload):
        if self.search_status is not None:
            return httpx.Response(self.search_status, text="search unavailable")
        if self.search_override is not None:
            return httpx.Response(200, json={"total": len(self.search_override), "results": self.search_override})
        value = payload["filterGroups"][0]["filters"][0]["value"]
        results = []
        if not self.search_returns_nothing and value in self.contacts:
            results.append({"id": self.contacts[value], "properties": {"email": value}})
        return httpx.Response(200, json={"total": len(results), "results": results})

    def _create_note(self, payload):
        if self.note_status is not None:
            return httpx.Response(self.note_status, text='{"status":"error","message":"bad association"}')
        engagement_id = self.next_engagement_id
        self.next_engagement_id += 1
        self.engagements.append(payload)
        return httpx.Response(
            200,
            json={
                "engagement": {"id": engagement_id, "type": "NOTE", **payload["engagement"]},
                "associations": payload["associations"],
                "metadata": payload["metadata"],
            },
        )


@pytest.fixture
def fake_hubspot():
    return FakeHubSpot()


@pytest.fixture
def transport(fake_hubspot):
    return httpx.MockTransport(fake_hubspot.handler)


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        HUBSPOT_API_KEY="test-token",
        HUBSPOT_BASE_URL="https://hubspot.test",
        DEFAULT_NOTE_BODY=DEFAULT_NOTE,
    )


@pytest.fixture
def hubspot_config(test_settings):
    return HubSpotConfig.from_settings(test_settings)


@pytest.fixture
def client(hubspot_config, transport):
    with HubSpotClient(hubspot_config, transport=transport) as c:
        yield c


@pytest.fixture
def resolver(client):
    return ContactResolver(client)


@pytest.fixture
def attacher(client):
    return EngagementAttacher(client, default_note_body=DEFAULT_NOTE)
