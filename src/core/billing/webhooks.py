# src/core/billing/webhooks.py
"""
Проверка подписи webhook от Stripe.
https://docs.stripe.com/webhooks#verify-official-libraries

Подпись и возраст события проверяет stripe.Webhook.construct_event,
здесь только перевод ошибок SDK в ошибки приложения.
"""

from __future__ import annotations

from typing import Any

import pydantic
import stripe
from pydantic import BaseModel, Field

from src.common.exceptions import ValidationError


class WebhookSignatureError(ValidationError):
    """Подпись webhook невалидна или устарела."""
    default_message = "Invalid webhook signature"


class WebhookEvent(BaseModel):
    """Событие провайдера."""
    id: str = ""
    type: str
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def object(self) -> dict[str, Any]:
        """Объект события (для payment_intent.* это PaymentIntent)."""
        return self.data.get("object", {})


def verify_webhook(
    payload: bytes,
    signature_header: str | None,
    secret: str,
    tolerance_seconds: int = 300,
) -> WebhookEvent:
    """
    Проверяет подпись и возраст события, возвращает распарсенное событие.

    Args:
        payload: Тело запроса как есть, до любого парсинга
        signature_header: Значение заголовка Stripe-Signature
        secret: Секрет webhook endpoint
        tolerance_seconds: Допустимый возраст события, 0 отключает проверку

    Raises:
        WebhookSignatureError: подпись отсутствует, не совпала или устарела
        ValidationError: тело не является событием
    """
    if not secret:
        raise WebhookSignatureError("Webhook secret is not configured")
    if not signature_header:
        raise WebhookSignatureError("Missing webhook signature")

    try:
        stripe.Webhook.construct_event(payload, signature_header, secret, tolerance=tolerance_seconds)
    except stripe.SignatureVerificationError as e:
        raise WebhookSignatureError() from e
    except (ValueError, TypeError) as e:
        raise ValidationError(f"Invalid webhook payload: {e}") from None

    try:
        return WebhookEvent.model_validate_json(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid webhook payload: {e}") from None
