"""
Plain value objects threaded between resolver, attacher and the API layer.
Nothing here is persisted: contacts and notes live in the CRM only.
"""

from dataclasses import dataclass
from enum import Enum


class ContactAction(str, Enum):
    created = "created"
    found = "found"


@dataclass(frozen=True)
class ResolvedContact:
    contact_id: str
    action: ContactAction


@dataclass(frozen=True)
class AttachedEngagement:
    engagement_id: str


@dataclass(frozen=True)
class UpsertOutcome:
    contact_id: str
    action: ContactAction
    engagement_id: str

    def as_response(self) -> dict:
        return {
            "contactId": self.contact_id,
            "engagementId": self.engagement_id,
            "action": self.action.value,
        }
