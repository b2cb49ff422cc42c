# sahayak/routers/webhooks_router.py
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from starlette.concurrency import run_in_threadpool

from ..application.services.application_tracker import ApplicationTracker
from ..deps import get_application_tracker
from ..exceptions import ValidationFailed

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/application-status")
async def application_status_webhook(
    request: Request,
    x_webhook_signature: Optional[str] = Header(None),
    tracker: ApplicationTracker = Depends(get_application_tracker),
):
    raw_body = await request.body()
    try:
        payload = json.loads(raw_body or b"null")
    except ValueError:
        raise ValidationFailed("Webhook body must be valid JSON")

    # the tracker does blocking database and portal I/O
    result = await run_in_threadpool(tracker.handle_webhook, payload, x_webhook_signature, raw_body=raw_body)
    if not result.processed:
        logger.info(f"Webhook not processed: {result.message}")
    return {
        "success": True,
        "processed": result.processed,
        "message": result.message,
    }


@router.get("/application-status")
def verify_webhook_endpoint(challenge: Optional[str] = Query(None)):
    # portals call this with a challenge during webhook registration
    if not challenge:
        raise ValidationFailed("challenge is required")
    return {"challenge": challenge}
