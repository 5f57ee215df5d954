"""
Ko-fi webhook receiver.

Every outcome answers 200; Ko-fi redelivers on any other status.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from app.api.dependencies import get_webhook_service
from app.core.exceptions import PayloadError, VerificationError
from app.schemas.kofi import parse_kofi_payload
from app.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)

router = APIRouter()

ACK_RECEIVED = "Webhook received"
ACK_INVALID_TOKEN = "Invalid verification token"
ACK_ERROR = "Error logged"


async def read_webhook_body(request: Request) -> Any:
    """Return the raw Ko-fi payload from a form ``data`` field or a JSON body."""
    content_type = request.headers.get("content-type", "").lower()
    if "application/json" in content_type:
        return await request.body()
    form = await request.form()
    return form.get("data")


@router.post("/kofi-webhook", response_class=PlainTextResponse)
async def kofi_webhook(
    request: Request,
    service: WebhookService = Depends(get_webhook_service),
) -> PlainTextResponse:
    try:
        event = parse_kofi_payload(await read_webhook_body(request))
        logger.info(
            "Received webhook type=%s email=%s transaction=%s",
            event.type,
            event.email,
            event.kofi_transaction_id,
        )
        result = await run_in_threadpool(service.handle, event)
    except VerificationError:
        logger.warning("Invalid verification token from %s", request.client.host if request.client else "unknown")
        return PlainTextResponse(ACK_INVALID_TOKEN)
    except PayloadError as exc:
        logger.warning("Rejected webhook payload: %s", exc)
        return PlainTextResponse(ACK_ERROR)
    except Exception as exc:
        logger.exception("Error processing webhook: %s", exc)
        return PlainTextResponse(ACK_ERROR)

    logger.info("Webhook handled: action=%s email=%s", result.action.value, result.email)
    return PlainTextResponse(ACK_RECEIVED)
