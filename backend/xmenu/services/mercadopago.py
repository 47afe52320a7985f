"""Cliente HTTP do gateway PIX (Mercado Pago)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings, settings
from ..errors import GatewayUnavailable, InvalidPaymentResponse, PaymentGatewayError
from ..schemas import GatewayPayment

logger = logging.getLogger(__name__)


def _error_message(resp: httpx.Response, fallback: str) -> str:
    try:
        data = resp.json()
    except ValueError:
        return fallback
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or fallback)
    return fallback


class MercadoPagoClient:
    """
    Acesso ao gateway com o access token do lojista.

    O `transport` permite injetar um `httpx.MockTransport` nos testes.
    """

    def __init__(
        self,
        access_token: str,
        *,
        config: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or settings
        self._access_token = access_token
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._config.mp_base_url,
            timeout=self._config.mp_timeout,
            transport=self._transport,
        )

    def _headers(self, idempotency_key: str | None = None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["X-Idempotency-Key"] = idempotency_key
        return headers

    async def create_payment(self, payload: dict[str, Any], idempotency_key: str) -> dict[str, Any]:
        """POST /v1/payments. Devolve o objeto do gateway sem alterações."""
        try:
            async with self._client() as client:
                resp = await client.post(
                    "/v1/payments", headers=self._headers(idempotency_key), json=payload
                )
        except httpx.HTTPError as e:
            logger.warning(f"Mercado Pago indisponível ao criar pagamento: {e}")
            raise GatewayUnavailable() from e

        logger.info(f"Mercado Pago create payment status={resp.status_code}")
        if resp.status_code >= 400:
            logger.error(f"Erro Mercado Pago ao criar pagamento: {resp.text}")
            raise PaymentGatewayError(_error_message(resp, "Erro ao gerar PIX"))

        try:
            data = resp.json()
        except ValueError as e:
            raise InvalidPaymentResponse() from e
        if not isinstance(data, dict) or not data.get("id"):
            logger.error(f"Resposta sem id do Mercado Pago: {resp.text}")
            raise InvalidPaymentResponse()
        return data

    async def get_payment(self, payment_id: str) -> GatewayPayment:
        """GET /v1/payments/{id}, validado como `GatewayPayment`."""
        try:
            async with self._client() as client:
                resp = await client.get(f"/v1/payments/{payment_id}", headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning(f"Mercado Pago indisponível ao consultar {payment_id}: {e}")
            raise GatewayUnavailable() from e

        if resp.status_code >= 400:
            logger.error(f"Erro Mercado Pago ao consultar {payment_id}: {resp.text}")
            raise PaymentGatewayError(
                _error_message(resp, "Erro ao verificar status do pagamento")
            )

        try:
            return GatewayPayment.model_validate(resp.json())
        except ValueError as e:
            logger.error(f"Resposta inválida do Mercado Pago para {payment_id}: {resp.text}")
            raise InvalidPaymentResponse() from e

    async def refund_payment(self, payment_id: str, idempotency_key: str) -> dict[str, Any]:
        """POST /v1/payments/{id}/refunds (estorno total)."""
        try:
            async with self._client() as client:
                resp = await client.post(
                    f"/v1/payments/{payment_id}/refunds",
                    headers=self._headers(idempotency_key),
                    json={},
                )
        except httpx.HTTPError as e:
            raise GatewayUnavailable() from e

        if resp.status_code >= 400:
            raise PaymentGatewayError(_error_message(resp, "Erro ao estornar pagamento"))
        return resp.json()
