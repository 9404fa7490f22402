"""
HubSpot REST helpers (sync httpx).

Docs:
- Create contact:   POST /crm/v3/objects/contacts
- Search contacts:  POST /crm/v3/objects/contacts/search
- Create note:      POST /engagements/v1/engagements (legacy API, associates on create)

This module only speaks HTTP: it raises for transport problems and undecodable
payloads, and hands the response back so callers can interpret status codes
(a 409 on create is a normal outcome, not an error).
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import httpx

from crmsync.config import HubSpotConfig
from crmsync.errors import CrmNotConfigured, RemoteResponseInvalid, RemoteUnavailable
from crmsync.logging_setup import get_logger
from crmsync.observability import REMOTE_REQUEST_COUNT, REMOTE_REQUEST_LATENCY, tracer

CONTACTS_PATH = "/crm/v3/objects/contacts"
CONTACTS_SEARCH_PATH = "/crm/v3/objects/contacts/search"
ENGAGEMENTS_PATH = "/engagements/v1/engagements"

log = get_logger("hubspot")


def read_json(resp: httpx.Response, operation: str) -> Dict[str, Any]:
    """Decode a JSON object body or raise RemoteResponseInvalid."""
    try:
        data = resp.json() if resp.content else {}
    except ValueError as e:
        raise RemoteResponseInvalid(
            f"HubSpot {operation} returned non-JSON body: {e}",
            status_code=resp.status_code,
            body=resp.text[:500],
        ) from e
    if not isinstance(data, dict):
        raise RemoteResponseInvalid(
            f"HubSpot {operation} returned {type(data).__name__}, expected an object",
            status_code=resp.status_code,
            body=resp.text[:500],
        )
    return data


class HubSpotClient:
    """
    One httpx.Client per HubSpotClient. Tests pass `transport=httpx.MockTransport(...)`
    to stand in for the remote API.
    """

    def __init__(self, config: HubSpotConfig, transport: Optional[httpx.BaseTransport] = None):
        if not config.configured:
            raise CrmNotConfigured("HubSpot not configured: set HUBSPOT_API_KEY in .env")
        self.config = config
        self._client = httpx.Client(
            base_url=config.base_url,
            timeout=config.timeout_s,
            transport=transport,
            headers={
                "Authorization": f"Bearer {config.api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )

    def __enter__(self) -> "HubSpotClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _post(self, operation: str, path: str, payload: Dict[str, Any]) -> httpx.Response:
        t0 = time.perf_counter()
        with tracer.start_as_current_span(f"hubspot.{operation}") as span:
            try:
                resp = self._client.post(path, json=payload)
            except httpx.DecodingError as e:
                REMOTE_REQUEST_COUNT.labels(operation=operation, status="decoding_error").inc()
                log.warning("hubspot_request_failed", operation=operation, err=repr(e))
                raise RemoteResponseInvalid(f"HubSpot {operation} body could not be decoded: {e!r}") from e
            except httpx.RequestError as e:
                # Connect/read errors, timeouts, redirect loops: the remote is not usable right now.
                REMOTE_REQUEST_COUNT.labels(operation=operation, status="transport_error").inc()
                log.warning("hubspot_request_failed", operation=operation, err=repr(e))
                raise RemoteUnavailable(f"HubSpot {operation} failed: {e!r}") from e
            finally:
                REMOTE_REQUEST_LATENCY.labels(operation=operation).observe(time.perf_counter() - t0)
            span.set_attribute("http.status_code", resp.status_code)
        REMOTE_REQUEST_COUNT.labels(operation=operation, status=str(resp.status_code)).inc()
        if resp.status_code >= 400:
            log.info("hubspot_non_2xx", operation=operation, status=resp.status_code)
        return resp

    # ---------- contacts ----------

    def create_contact(self, email: str) -> httpx.Response:
        return self._post("create_contact", CONTACTS_PATH, {"properties": {"email": email}})

    def search_contacts_by_email(self, email: str) -> httpx.Response:
        payload = {
            "filterGroups": [
                {"filters": [{"propertyName": "email", "operator": "EQ", "value": email}]}
            ],
            "properties": ["email"],
        }
        return self._post("search_contacts", CONTACTS_SEARCH_PATH, payload)

    # ---------- engagements ----------

    def create_note(self, contact_id: str, body: str, timestamp_ms: int) -> httpx.Response:
        payload = {
            "engagement": {"active": True, "type": "NOTE", "timestamp": timestamp_ms},
            "associations": {
                "contactIds": [_wire_id(contact_id)],
                "companyIds": [],
                "dealIds": [],
                "ownerIds": [],
                "ticketIds": [],
            },
            "metadata": {"body": body},
        }
        return self._post("create_note", ENGAGEMENTS_PATH, payload)


def _wire_id(contact_id: str) -> Any:
    # The legacy engagements API wants numeric ids as numbers.
    s = str(contact_id).strip()
    return int(s) if s.isdigit() else s


def search_results(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    results = data.get("results") or []
    return [r for r in results if isinstance(r, dict)]
