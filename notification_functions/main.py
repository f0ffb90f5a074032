"""
HTTP entry points for Eventarc Firestore triggers and Cloud Scheduler jobs.

Each route handles one delivered event. A 2xx response acknowledges it; a 500
response tells the platform the dispatch failed so its retry and alerting
policies apply.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Annotated, Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .config import Settings, settings as default_settings
from .dependencies import Services, build_services, get_services
from .firebase import DocumentChange
from .logging_config import setup_logging
from .mail.reports import ReportEvent
from .notifications.exceptions import InvalidEventError
from .notifications.schemas import (
    ChatMessageEvent,
    CreationEvent,
    DeliveryRequest,
    DispatchOutcome,
    StatusTransitionEvent,
)
from .time_utils import retention_cutoff

logger = logging.getLogger(__name__)


def to_creation_event(change: DocumentChange) -> CreationEvent:
    try:
        record = DeliveryRequest(**change.after())
    except ValidationError as e:
        raise InvalidEventError(f"Invalid notification document: {e}") from e
    return CreationEvent(recordId=change.record_id, record=record)


def to_status_transition_event(change: DocumentChange) -> StatusTransitionEvent:
    before = change.before()
    if before is None:
        raise InvalidEventError("Update event carries no before-image")
    return StatusTransitionEvent(recordId=change.record_id, before=before, after=change.after())


def to_chat_message_event(change: DocumentChange) -> ChatMessageEvent:
    parent_id = change.parent_id
    if not parent_id:
        raise InvalidEventError(f"Message document {change.document.name} has no parent chat")
    return ChatMessageEvent(recordId=change.record_id, parentId=parent_id, message=change.after())


def outcome_response(outcome: DispatchOutcome) -> Dict[str, Any]:
    """Acknowledge a handled event, or re-signal a failed dispatch as a 500"""
    if outcome.is_failed:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=outcome.model_dump(mode="json", exclude_none=True)
        )
    return outcome.model_dump(mode="json", exclude_none=True)


def create_app(services: Optional[Services] = None, config: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        services: Pre-built services; built from config at startup when None
        config: Settings; the module settings when None
    """
    config = config or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(config)
        if app.state.services is None:
            app.state.services = build_services(config)
        logger.info(f"Starting notification functions in {config.environment} environment")
        yield

    app = FastAPI(title="Notification Functions", version="1.0.0", lifespan=lifespan)
    app.state.services = services

    @app.exception_handler(InvalidEventError)
    async def invalid_event_handler(request: Request, exc: InvalidEventError):
        logger.error(f"Rejected malformed event on {request.url.path}: {str(exc)}")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "healthy"}

    @app.post("/events/notifications/created", tags=["Triggers"])
    async def notification_created(change: DocumentChange,
                                   services: Annotated[Services, Depends(get_services)]):
        event = to_creation_event(change)
        outcome = await asyncio.to_thread(services.dispatcher.handle_creation, event)
        return outcome_response(outcome)

    @app.post("/events/chats/updated", tags=["Triggers"])
    async def chat_updated(change: DocumentChange,
                           services: Annotated[Services, Depends(get_services)]):
        event = to_status_transition_event(change)
        outcome = await asyncio.to_thread(services.dispatcher.handle_status_transition, event)
        return outcome_response(outcome)

    @app.post("/events/chats/messages/created", tags=["Triggers"])
    async def chat_message_created(change: DocumentChange,
                                   services: Annotated[Services, Depends(get_services)]):
        event = to_chat_message_event(change)
        outcome = await asyncio.to_thread(services.dispatcher.handle_chat_message, event)
        return outcome_response(outcome)

    @app.post("/events/reports/created", tags=["Triggers"])
    async def report_created(change: DocumentChange,
                             services: Annotated[Services, Depends(get_services)]):
        event = ReportEvent(recordId=change.record_id, report=change.after())
        if services.mailer is None:
            outcome = DispatchOutcome.for_skip("report emails disabled")
            outcome.recordId = event.recordId
            return outcome_response(outcome)
        outcome = await asyncio.to_thread(services.mailer.handle_report_created, event)
        return outcome_response(outcome)

    @app.post("/tasks/cleanup-notifications", tags=["Scheduled"])
    async def cleanup_notifications(services: Annotated[Services, Depends(get_services)]):
        cutoff = retention_cutoff(services.config.notification_retention_days)
        deleted = await asyncio.to_thread(
            services.requests.delete_older_than,
            cutoff,
            services.config.firestore_batch_size,
        )
        return {"deleted": deleted, "cutoff": cutoff.isoformat()}

    return app


app = create_app()
