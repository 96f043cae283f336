"""Push notification receiver for chain events."""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from prometheus_client import Counter
from pydantic import ValidationError

from ...application.dtos import ChainNotificationDTO, WebhookAckDTO
from ...application.use_cases.observer import ChainObserver
from ...domain.errors import ConcurrentUpdateError
from ..dependencies import get_chain_observer, get_webhook_secret

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

SIGNATURE_HEADER = "X-Webhook-Signature"

webhook_notifications_total = Counter(
    "webhook_notifications_total",
    "Chain notifications received over the webhook",
    ["status"],
)


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """Constant-time check of a hex HMAC-SHA256 over the raw request body."""
    if not signature:
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature.strip().lower(), expected)


@router.post(
    "/chain",
    response_model=WebhookAckDTO,
    status_code=status.HTTP_202_ACCEPTED,
)
async def receive_chain_notification(
    request: Request,
    observer: ChainObserver = Depends(get_chain_observer),
    webhook_secret: Optional[str] = Depends(get_webhook_secret),
) -> WebhookAckDTO:
    """Apply a pushed transaction notification to the owning payment."""
    body = await request.body()
    if webhook_secret and not verify_signature(
        webhook_secret, body, request.headers.get(SIGNATURE_HEADER)
    ):
        webhook_notifications_total.labels(status="unauthorized").inc()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature"
        )

    try:
        notification = ChainNotificationDTO.model_validate_json(body)
    except ValidationError as e:
        webhook_notifications_total.labels(status="invalid").inc()
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False),
        )

    try:
        payment = await observer.ingest_notification(notification)
    except ConcurrentUpdateError as e:
        webhook_notifications_total.labels(status="conflict").inc()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except Exception as e:
        webhook_notifications_total.labels(status="server_error").inc()
        logger.exception("Failed to apply chain notification")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to apply notification: {str(e)}",
        )

    if payment is None:
        webhook_notifications_total.labels(status="ignored").inc()
        return WebhookAckDTO(status="ignored")

    webhook_notifications_total.labels(status="accepted").inc()
    return WebhookAckDTO(status="accepted", payment_id=payment.id, state=payment.state)
