# src/core/billing/__init__.py
"""
Оплата поездок: клиент провайдера, проверка webhook, фиксация оплаты.
"""

from src.core.billing.gateway import PaymentGateway, PaymentIntent
from src.core.billing.service import (
    PaymentIntentResult,
    PaymentService,
    SettlementNotice,
    SettlementResult,
)
from src.core.billing.webhooks import WebhookEvent, WebhookSignatureError, verify_webhook

__all__ = [
    "PaymentGateway",
    "PaymentIntent",
    "PaymentIntentResult",
    "PaymentService",
    "SettlementNotice",
    "SettlementResult",
    "WebhookEvent",
    "WebhookSignatureError",
    "verify_webhook",
]
