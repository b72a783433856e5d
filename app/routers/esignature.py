"""
E-signature Router

Provider webhook receiver. Every delivery is answered 200 so the provider
does not retry on application errors; only a bad signature (401) or an
unparseable body (400) is rejected.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.config import settings
from app.services.signature_events import parse_event, signature_from_headers, verify_signature
from app.services.signature_state import signature_machine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/esignature", tags=["esignature"])


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    """
    Apply a provider event to the matching contract.

    Headers:
    - x-signwell-signature (or x-signature): HMAC-SHA256 hex digest of the body
    """
    body = await request.body()

    # Raised before any processing; mapped to 401 / 400 by the app handlers
    verify_signature(body, signature_from_headers(request.headers), settings.SIGNWELL_WEBHOOK_SECRET)
    event = parse_event(body)

    try:
        transition = await signature_machine.apply_event(db, event)
        if transition is not None and transition.changed:
            await db.commit()
            background_tasks.add_task(signature_machine.notify, transition)
    except Exception as e:
        logger.exception(f"Error processing webhook {event.event_type} for {event.document_id}: {e}")
        await db.rollback()
        return JSONResponse({"received": True, "error": "Processing failed"}, status_code=200)

    return {"received": True}


@router.get("/webhook")
async def webhook_probe():
    """Endpoint verification probe."""
    return {"status": "webhook endpoint active"}
