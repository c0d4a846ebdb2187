"""MercadoPago Checkout Preferences client."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Mapping

import httpx

from ..domain.errors import PaymentGatewayError
from ..domain.repositories import PaymentGateway, PaymentIntent

logger = logging.getLogger(__name__)

PREFERENCES_PATH = "/checkout/preferences"


class MercadoPagoGateway(PaymentGateway):
    def __init__(
        self,
        access_token: str,
        *,
        api_url: str = "https://api.mercadopago.com",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._access_token = access_token
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _build_preference(
        self,
        *,
        amount: Decimal,
        currency: str,
        description: str,
        payer_name: str,
        external_reference: str,
        return_urls: Mapping[str, str],
    ) -> dict[str, Any]:
        return {
            "items": [
                {
                    "title": description,
                    "quantity": 1,
                    "currency_id": currency,
                    "unit_price": float(amount),
                }
            ],
            "payer": {"name": payer_name},
            "back_urls": dict(return_urls),
            "auto_return": "approved",
            "external_reference": external_reference,
        }

    async def create_payment_intent(
        self,
        *,
        amount: Decimal,
        currency: str,
        description: str,
        payer_name: str,
        external_reference: str,
        return_urls: Mapping[str, str],
    ) -> PaymentIntent:
        if not self._access_token:
            raise PaymentGatewayError("MercadoPago access token is not configured")

        preference = self._build_preference(
            amount=amount,
            currency=currency,
            description=description,
            payer_name=payer_name,
            external_reference=external_reference,
            return_urls=return_urls,
        )
        try:
            async with httpx.AsyncClient(
                base_url=self._api_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as http_client:
                response = await http_client.post(
                    PREFERENCES_PATH,
                    json=preference,
                    headers={
                        "Authorization": f"Bearer {self._access_token}",
                        "Content-Type": "application/json",
                    },
                )
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "MercadoPago rejected preference for %s: %s %s",
                external_reference,
                exc.response.status_code,
                exc.response.text,
            )
            raise PaymentGatewayError("payment provider rejected the request") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("MercadoPago request failed for %s: %s", external_reference, exc)
            raise PaymentGatewayError("payment provider unreachable") from exc

        if not isinstance(body, dict):
            logger.error("MercadoPago returned a non-object body for %s: %r", external_reference, body)
            raise PaymentGatewayError("payment provider returned an unexpected response")
        redirect_url = body.get("init_point")
        if not redirect_url:
            raise PaymentGatewayError("payment provider response missing init_point")
        logger.info("Created MercadoPago preference %s for %s", body.get("id"), external_reference)
        return PaymentIntent(
            external_reference=str(body.get("external_reference") or external_reference),
            redirect_url=str(redirect_url),
            preference_id=body.get("id"),
        )
