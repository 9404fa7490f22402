"""
Glue between the API layer and the two core components.

build_services() turns settings into a configured resolver/attacher pair;
upsert_contact_with_note() runs them in order for a single request.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import httpx

from crmsync.config import HubSpotConfig, Settings, settings
from crmsync.contacts import ContactResolver, SingleFlight
from crmsync.engagements import EngagementAttacher
from crmsync.errors import EngagementCreateFailed
from crmsync.integrations.hubspot import HubSpotClient
from crmsync.logging_setup import get_logger
from crmsync.models import UpsertOutcome

log = get_logger("orchestrator")

# Shared across requests so concurrent resolves for one email can meet; holds no results.
_single_flight = SingleFlight()


@dataclass
class CrmServices:
    client: HubSpotClient
    resolver: ContactResolver
    attacher: EngagementAttacher

    def close(self) -> None:
        self.client.close()


def build_services(
    s: Optional[Settings] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> CrmServices:
    """Raises CrmNotConfigured when no API key is set."""
    s = s or settings
    config = HubSpotConfig.from_settings(s)
    client = HubSpotClient(config, transport=transport)
    return CrmServices(
        client=client,
        resolver=ContactResolver(
            client,
            single_flight=_single_flight if s.CONTACT_SINGLE_FLIGHT else None,
        ),
        attacher=EngagementAttacher(client, default_note_body=config.default_note_body),
    )


def upsert_contact_with_note(
    resolver: ContactResolver,
    attacher: EngagementAttacher,
    email: str,
    notes: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> UpsertOutcome:
    """
    Resolve the contact, then attach the note. The attacher only runs after a
    successful resolve. A failed attach leaves the contact in place and re-raises
    with the resolved contact id attached so the caller can retry the note alone.
    """
    contact = resolver.resolve(email)
    try:
        engagement = attacher.attach(contact.contact_id, notes, timestamp)
    except EngagementCreateFailed as e:
        e.contact_id = contact.contact_id
        raise
    outcome = UpsertOutcome(
        contact_id=contact.contact_id,
        action=contact.action,
        engagement_id=engagement.engagement_id,
    )
    log.info(
        "contact_upserted",
        contact_id=outcome.contact_id,
        engagement_id=outcome.engagement_id,
        action=outcome.action.value,
    )
    return outcome
