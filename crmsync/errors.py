"""
Error taxonomy for the upsert workflow.

Nothing here is retried or recovered inside the core: each error carries the
remote status/body so the API layer can log it and answer with a generic failure.
"""

from __future__ import annotations

from typing import Optional


class CrmError(RuntimeError):
    """Base class. `http_status` is what the API layer answers with."""

    http_status = 502
    public_message = "CRM request failed"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ValidationError(CrmError):
    """Client sent an unusable request (e.g. no email). Raised before any remote call."""

    http_status = 400
    public_message = "Invalid request"


class CrmNotConfigured(CrmError):
    http_status = 500
    public_message = "HubSpot API key not configured"


class RemoteUnavailable(CrmError):
    """Connect error, read timeout or any other transport-level failure."""

    http_status = 503
    public_message = "CRM unavailable"


class RemoteResponseInvalid(CrmError):
    """2xx response whose payload we could not decode or that lacks an id."""

    public_message = "CRM returned an invalid response"


class RemoteCreateFailed(CrmError):
    """Contact create failed with a non-2xx status that is not a conflict."""

    public_message = "Failed to create contact"


class RemoteSearchFailed(RemoteCreateFailed):
    """Search after a conflict answered non-2xx."""

    public_message = "Failed to look up existing contact"


class NotFoundAfterConflict(CrmError):
    """The CRM reported a duplicate but searching by email found no match."""

    public_message = "Contact reported as duplicate but could not be found"

    def __init__(self, email: str, *, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(
            "Contact create returned a conflict but no contact matches the email",
            status_code=status_code,
            body=body,
        )
        self.email = email


class EngagementCreateFailed(CrmError):
    """Note creation failed. The contact stays in place; `contact_id` lets callers retry the note alone."""

    public_message = "Failed to create note"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        contact_id: Optional[str] = None,
    ):
        super().__init__(message, status_code=status_code, body=body)
        self.contact_id = contact_id
