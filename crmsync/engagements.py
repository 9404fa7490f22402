"""
EngagementAttacher: create a NOTE engagement already associated with a contact.
The association is part of the create payload, so there is no second call to link them.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from crmsync.errors import EngagementCreateFailed, RemoteResponseInvalid, ValidationError
from crmsync.integrations.hubspot import HubSpotClient, read_json
from crmsync.logging_setup import get_logger
from crmsync.models import AttachedEngagement
from crmsync.utils import maybe_redact_pii

log = get_logger("engagements")


def _to_epoch_ms(ts: datetime) -> int:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return int(ts.timestamp() * 1000)


def _engagement_id(data: Dict[str, Any]) -> str:
    # Legacy API nests it under "engagement"; newer note objects return a top-level id.
    eng = data.get("engagement")
    eid = eng.get("id") if isinstance(eng, dict) else None
    if eid is None:
        eid = data.get("id")
    if eid is None or str(eid).strip() == "":
        raise RemoteResponseInvalid("HubSpot create_note response has no engagement id")
    return str(eid)


class EngagementAttacher:
    def __init__(self, client: HubSpotClient, default_note_body: str):
        self.client = client
        self.default_note_body = default_note_body

    def attach(
        self,
        contact_id: str,
        note_body: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> AttachedEngagement:
        if contact_id is None or str(contact_id).strip() == "":
            raise ValidationError("contact_id is required")
        contact_id = str(contact_id).strip()

        body = note_body if note_body and note_body.strip() else self.default_note_body
        ts = timestamp or datetime.now(timezone.utc)

        log.info("engagement_create", contact_id=contact_id, body=maybe_redact_pii(body))
        resp = self.client.create_note(contact_id, body, _to_epoch_ms(ts))
        if not resp.is_success:
            log.error("engagement_create_failed", contact_id=contact_id, status=resp.status_code)
            raise EngagementCreateFailed(
                f"Engagement creation failed: {resp.status_code} - {resp.text[:300]}",
                status_code=resp.status_code,
                body=resp.text[:500],
                contact_id=contact_id,
            )

        engagement_id = _engagement_id(read_json(resp, "create_note"))
        log.info("engagement_created", contact_id=contact_id, engagement_id=engagement_id)
        return AttachedEngagement(engagement_id=engagement_id)
