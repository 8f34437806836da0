# src/core/billing/gateway.py
"""
Клиент платёжного провайдера (Stripe SDK поверх httpx).
"""

from __future__ import annotations

import stripe
from pydantic import BaseModel

from src.common.exceptions import UnexpectedError
from src.common.logger import log_error


class PaymentIntent(BaseModel):
    """Созданный у провайдера платёж."""
    id: str
    client_secret: str
    amount: int
    currency: str


class PaymentGateway:
    """Создание PaymentIntent в Stripe."""

    def __init__(
        self,
        secret_key: str,
        api_base: str = "https://api.stripe.com",
        timeout: float = 10.0,
        client: stripe.StripeClient | None = None,
    ) -> None:
        self._http_client: stripe.HTTPXClient | None = None
        if client is None:
            self._http_client = stripe.HTTPXClient(timeout=timeout)
            client = stripe.StripeClient(
                secret_key,
                http_client=self._http_client,
                base_addresses={"api": api_base},
            )
        self._client = client

    @classmethod
    def from_settings(cls) -> PaymentGateway:
        from src.config import settings

        return cls(
            secret_key=settings.payments.STRIPE_SECRET_KEY,
            api_base=settings.payments.STRIPE_API_BASE,
            timeout=settings.payments.REQUEST_TIMEOUT,
        )

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.close_async()

    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict[str, str],
    ) -> PaymentIntent:
        """
        Создаёт PaymentIntent на сумму amount (центы).

        Raises:
            UnexpectedError: провайдер недоступен или вернул ошибку
        """
        try:
            intent = await self._client.v1.payment_intents.create_async(params={
                "amount": amount,
                "currency": currency,
                "metadata": metadata,
            })
        except stripe.APIConnectionError as e:
            await log_error(f"Stripe недоступен: {e.user_message or e}", logger_name="billing")
            raise UnexpectedError("Failed to create payment intent") from e
        except stripe.StripeError as e:
            await log_error(
                f"Stripe отклонил создание платежа: {e.http_status} {e.user_message or e}",
                logger_name="billing",
            )
            raise UnexpectedError("Failed to create payment intent") from e

        return PaymentIntent(
            id=intent.id,
            client_secret=intent.client_secret,
            amount=intent.amount,
            currency=intent.currency or currency,
        )
