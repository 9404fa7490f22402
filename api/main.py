# api/main.py
# FastAPI front for the HubSpot contact upsert:
# - POST /api/hubspot/create-contact    ensure contact + add note ("created" | "found")
# - POST /api/hubspot/update-contact    same flow, reported as "engagement_added"
# - POST /api/hubspot/contacts/{id}/notes  add a note to an already-resolved contact
# - GET  /api/health, /metrics
# Email is validated here, before anything talks to HubSpot.

import time
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from crmsync.config import settings
from crmsync.errors import CrmError, CrmNotConfigured, EngagementCreateFailed, ValidationError
from crmsync.logging_setup import configure_logging, get_logger
from crmsync.observability import REQUEST_COUNT, REQUEST_LATENCY, metrics_app
from crmsync.orchestrator import CrmServices, build_services, upsert_contact_with_note
from crmsync.utils import mask_email, maybe_redact_pii

APP_NAME = "CRM Upsert"
VERSION = "1.0.0"

configure_logging()
log = get_logger("api")

if not settings.HUBSPOT_API_KEY:
    log.warning("hubspot_api_key_missing", detail="HUBSPOT_API_KEY is not set; HubSpot routes will answer 500")

app = FastAPI(title=APP_NAME, version=VERSION)
app.mount("/metrics", metrics_app)


class ContactNoteRequest(BaseModel):
    # Optional on purpose: a missing email must answer 400 "Email is required", not 422.
    # The whole body is optional too (see the routes), so no body at all is the same case.
    email: Optional[str] = None
    notes: Optional[str] = None


class NoteRequest(BaseModel):
    notes: Optional[str] = None


class UpsertResponse(BaseModel):
    contactId: str
    engagementId: str
    action: str
    engagementCreated: bool = True


class NoteResponse(BaseModel):
    contactId: str
    engagementId: str


def get_services_factory() -> Callable[[], CrmServices]:
    """Dependency seam: tests override this to point the services at a fake HubSpot."""
    return build_services


@app.middleware("http")
async def record_request_metrics(request: Request, call_next):
    t0 = time.perf_counter()
    response = await call_next(request)
    # Route template, not the raw path: contact ids must not become label values.
    route = request.scope.get("route")
    path = getattr(route, "path", request.url.path)
    REQUEST_COUNT.labels(endpoint=path, method=request.method).inc()
    REQUEST_LATENCY.labels(endpoint=path, method=request.method).observe(time.perf_counter() - t0)
    return response


def _require_email(req: Optional[ContactNoteRequest]) -> str:
    email = ((req.email if req else None) or "").strip()
    if not email:
        raise ValidationError("Email is required")
    return email


@app.exception_handler(RequestValidationError)
async def invalid_body_handler(request: Request, exc: RequestValidationError):
    # Same {error, details} shape as every other failure, and 400 rather than FastAPI's 422.
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})


def _error_response(e: Exception, generic: str) -> JSONResponse:
    if isinstance(e, ValidationError):
        return JSONResponse(status_code=e.http_status, content={"error": str(e)})
    if isinstance(e, CrmNotConfigured):
        return JSONResponse(status_code=e.http_status, content={"error": e.public_message})
    if isinstance(e, CrmError):
        log.error(
            "upsert_failed",
            error=type(e).__name__,
            details=str(e),
            remote_status=e.status_code,
            remote_body=maybe_redact_pii(e.body or ""),
        )
        content = {"error": generic, "details": str(e)}
        if isinstance(e, EngagementCreateFailed) and e.contact_id:
            content["contactId"] = e.contact_id
        return JSONResponse(status_code=e.http_status, content=content)
    log.exception("upsert_crashed", err=repr(e))
    return JSONResponse(status_code=500, content={"error": generic, "details": str(e)})


def _run_upsert(req: Optional[ContactNoteRequest], factory: Callable[[], CrmServices]):
    email = _require_email(req)
    notes = req.notes if req else None
    log.info("upsert_request", email=mask_email(email), has_notes=bool(notes))
    services = factory()
    try:
        return upsert_contact_with_note(services.resolver, services.attacher, email, notes)
    finally:
        services.close()


@app.get("/api/health")
def health():
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "hubspotConfigured": bool(settings.HUBSPOT_API_KEY),
        "version": VERSION,
        "config": {"hubspotBaseUrl": settings.HUBSPOT_BASE_URL},
    }


@app.post("/api/hubspot/create-contact", response_model=UpsertResponse)
def create_contact(
    req: Optional[ContactNoteRequest] = Body(None),
    factory=Depends(get_services_factory),
):
    try:
        outcome = _run_upsert(req, factory)
    except Exception as e:
        return _error_response(e, "Failed to create contact and note")
    return UpsertResponse(**outcome.as_response())


@app.post("/api/hubspot/update-contact", response_model=UpsertResponse)
def update_contact(
    req: Optional[ContactNoteRequest] = Body(None),
    factory=Depends(get_services_factory),
):
    try:
        outcome = _run_upsert(req, factory)
    except Exception as e:
        return _error_response(e, "Failed to update contact")
    return UpsertResponse(
        contactId=outcome.contact_id,
        engagementId=outcome.engagement_id,
        action="engagement_added",
    )


@app.post("/api/hubspot/contacts/{contact_id}/notes", response_model=NoteResponse)
def add_note(
    contact_id: str,
    req: Optional[NoteRequest] = Body(None),
    factory=Depends(get_services_factory),
):
    """Retry path: attach a note to a contact id returned by an earlier, partially failed upsert."""
    try:
        if not contact_id.strip():
            raise ValidationError("contact_id is required")
        services = factory()
        try:
            engagement = services.attacher.attach(contact_id, req.notes if req else None)
        finally:
            services.close()
    except Exception as e:
        return _error_response(e, "Failed to create note")
    return NoteResponse(contactId=contact_id, engagementId=engagement.engagement_id)
