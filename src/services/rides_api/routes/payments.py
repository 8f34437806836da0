# src/services/rides_api/routes/payments.py
"""
Endpoints оплаты:
- POST /payments/create-intent - начать оплату поездки (пассажир)
- POST /payments/webhook - события провайдера (подпись Stripe-Signature)
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request

from src.common.exceptions import NotFoundError
from src.common.logger import log_warning
from src.core.access import Actor
from src.core.billing import PaymentService, verify_webhook
from src.services.rides_api.auth import get_current_actor
from src.services.rides_api.dependencies import get_payment_service
from src.services.rides_api.schemas import (
    ApiResponse,
    ErrorResponse,
    PaymentIntentRequest,
    PaymentIntentResponse,
    WebhookAck,
)

router = APIRouter(
    prefix="/payments",
    tags=["Payments"],
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)

Payments = Annotated[PaymentService, Depends(get_payment_service)]


@router.post(
    "/create-intent",
    response_model=ApiResponse[PaymentIntentResponse],
    summary="Создать платёж",
)
async def create_intent(
    body: PaymentIntentRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    service: Payments,
) -> ApiResponse[PaymentIntentResponse]:
    """Платёж на расчётную стоимость поездки. Возвращает client_secret для клиента."""
    result = await service.create_intent(str(body.ride_id), actor)
    return ApiResponse(
        message="Payment intent created",
        data=PaymentIntentResponse(client_secret=result.client_secret, amount=result.amount),
    )


@router.post("/webhook", response_model=ApiResponse[WebhookAck], summary="Webhook провайдера")
async def webhook(
    request: Request,
    service: Payments,
    stripe_signature: Annotated[str | None, Header(alias="Stripe-Signature")] = None,
) -> ApiResponse[WebhookAck]:
    """
    Проверяет подпись по сырому телу запроса. Неизвестная поездка
    подтверждается без изменений, чтобы провайдер не повторял доставку.
    """
    from src.config import settings

    payload = await request.body()
    event = verify_webhook(
        payload,
        stripe_signature,
        secret=settings.payments.STRIPE_WEBHOOK_SECRET,
        tolerance_seconds=settings.payments.WEBHOOK_TOLERANCE_SECONDS,
    )

    try:
        applied = await service.handle_event(event)
    except NotFoundError:
        await log_warning(f"Событие {event.id} ({event.type}) ссылается на неизвестную поездку")
        applied = False

    return ApiResponse(message="Webhook received", data=WebhookAck(received=True, applied=applied))
