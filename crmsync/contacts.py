"""
ContactResolver: email -> HubSpot contact id, creating the contact when absent.

Resolution order (first success wins):
1) create the contact; 2xx means the returned id is authoritative ("created")
2) on 409, pull the existing id out of the conflict body ("found")
3) if the body carries no id, search contacts by exact email ("found")
Any other create failure is fatal. Nothing is retried here.
"""

from __future__ import annotations

import re
import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict, Optional, Protocol, TypeVar

from crmsync.errors import (
    NotFoundAfterConflict,
    RemoteCreateFailed,
    RemoteResponseInvalid,
    RemoteSearchFailed,
    ValidationError,
)
from crmsync.integrations.hubspot import HubSpotClient, read_json, search_results
from crmsync.logging_setup import get_logger
from crmsync.models import ContactAction, ResolvedContact
from crmsync.observability import CONTACT_RESOLUTIONS
from crmsync.utils import mask_email, normalize_email

CONFLICT_STATUS = 409

log = get_logger("contacts")

T = TypeVar("T")


class ConflictIdExtractor(Protocol):
    def __call__(self, body: str) -> Optional[str]: ...


class RegexConflictIdExtractor:
    """
    HubSpot answers a duplicate create with e.g.
    {"status":"error","message":"Contact already exists. Existing ID: 2002", ...}
    Returns the digits after "ID:", or None when the body has no such token.
    """

    DEFAULT_PATTERN = r"ID:\s*(\d+)"

    def __init__(self, pattern: str = DEFAULT_PATTERN):
        self.pattern = re.compile(pattern)

    def __call__(self, body: str) -> Optional[str]:
        m = self.pattern.search(body or "")
        return m.group(1) if m else None


class SingleFlight:
    """
    Concurrent callers with the same key share one in-flight call.
    The entry is removed as soon as the call finishes, so nothing is cached.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._inflight: Dict[str, Future] = {}

    def do(self, key: str, fn: Callable[[], T]) -> T:
        with self._lock:
            fut = self._inflight.get(key)
            leader = fut is None
            if leader:
                fut = Future()
                self._inflight[key] = fut

        if not leader:
            return fut.result()

        try:
            result = fn()
        except BaseException as e:
            fut.set_exception(e)
            raise
        else:
            fut.set_result(result)
            return result
        finally:
            with self._lock:
                self._inflight.pop(key, None)


def _id_from(data: Dict[str, Any], operation: str) -> str:
    cid = data.get("id")
    if cid is None or str(cid).strip() == "":
        raise RemoteResponseInvalid(f"HubSpot {operation} response has no id")
    return str(cid)


def _result_email(result: Dict[str, Any]) -> Optional[str]:
    props = result.get("properties")
    if isinstance(props, dict) and props.get("email"):
        return str(props["email"])
    return None


class ContactResolver:
    def __init__(
        self,
        client: HubSpotClient,
        extractor: Optional[ConflictIdExtractor] = None,
        single_flight: Optional[SingleFlight] = None,
    ):
        self.client = client
        self.extractor = extractor or RegexConflictIdExtractor()
        self.single_flight = single_flight

    def resolve(self, email: str) -> ResolvedContact:
        email = (email or "").strip()
        if not email:
            raise ValidationError("Email is required")
        if self.single_flight is None:
            return self._resolve(email)
        return self.single_flight.do(normalize_email(email), lambda: self._resolve(email))

    def _resolve(self, email: str) -> ResolvedContact:
        resp = self.client.create_contact(email)

        if resp.is_success:
            contact_id = _id_from(read_json(resp, "create_contact"), "create_contact")
            log.info("contact_created", contact_id=contact_id, email=mask_email(email))
            CONTACT_RESOLUTIONS.labels(path="created").inc()
            return ResolvedContact(contact_id=contact_id, action=ContactAction.created)

        if resp.status_code == CONFLICT_STATUS:
            log.info("contact_conflict", email=mask_email(email))
            return self._resolve_conflict(email, resp.text)

        raise RemoteCreateFailed(
            f"Failed to ensure contact exists: {resp.status_code}",
            status_code=resp.status_code,
            body=resp.text[:500],
        )

    def _resolve_conflict(self, email: str, conflict_body: str) -> ResolvedContact:
        contact_id = self.extractor(conflict_body)
        if contact_id:
            log.info("contact_id_extracted", contact_id=contact_id)
            CONTACT_RESOLUTIONS.labels(path="id_extracted").inc()
            return ResolvedContact(contact_id=contact_id, action=ContactAction.found)

        # No id in the body: expected for some API versions, fall through to search.
        resp = self.client.search_contacts_by_email(email)
        if not resp.is_success:
            raise RemoteSearchFailed(
                f"Contact search failed: {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text[:500],
            )

        wanted = normalize_email(email)
        for result in search_results(read_json(resp, "search_contacts")):
            found_email = _result_email(result)
            # Results without an email property are trusted: the filter is exact-match.
            if found_email is not None and normalize_email(found_email) != wanted:
                continue
            contact_id = _id_from(result, "search_contacts")
            log.info("contact_found_by_search", contact_id=contact_id)
            CONTACT_RESOLUTIONS.labels(path="searched").inc()
            return ResolvedContact(contact_id=contact_id, action=ContactAction.found)

        log.warning("contact_missing_after_conflict", email=mask_email(email))
        raise NotFoundAfterConflict(email, status_code=CONFLICT_STATUS, body=conflict_body[:500])
