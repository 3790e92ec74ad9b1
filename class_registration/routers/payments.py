# class_registration/routers/payments.py
import logging
import secrets
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException

from ..core.config import settings
from ..schemas.registration_schemas import PaymentEvent
from ..services.registration_engine import RegistrationEngine
from .dependencies import get_engine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payment Events"])


async def verify_webhook_token(x_webhook_token: Optional[str] = Header(None)):
    """Only the payment bridge holding the shared token may confirm or refund"""
    expected = settings.payment_webhook_token
    if not expected:
        logger.error("Payment event rejected: payment_webhook_token is not configured")
        raise HTTPException(status_code=503, detail="Payment webhook is not configured")
    if not x_webhook_token or not secrets.compare_digest(x_webhook_token, expected):
        logger.warning("Payment event rejected: invalid webhook token")
        raise HTTPException(status_code=401, detail="Invalid webhook token")


@router.post("/events", response_model=dict, dependencies=[Depends(verify_webhook_token)])
async def handle_payment_event(
    event: PaymentEvent,
    engine: RegistrationEngine = Depends(get_engine),
):
    """Entry point for the payment webhook collaborator after it has verified the provider signature"""
    if event.type == "payment_confirmed":
        outcome = await engine.on_payment_confirmed(event.enrollment_id)
    else:
        outcome = await engine.on_payment_refunded(event.enrollment_id)

    outcome.unwrap()
    logger.info(f"Processed {event.type} for enrollment {event.enrollment_id}")
    return {"status": "processed", "type": event.type, "enrollment_id": str(event.enrollment_id)}
