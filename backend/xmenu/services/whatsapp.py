"""Envio de mensagens de WhatsApp via Evolution API."""

from __future__ import annotations

import logging

import httpx

from ..config import Settings, settings
from ..errors import NotificationError
from .cpf import only_digits

logger = logging.getLogger(__name__)

COUNTRY_CODE = "55"
PHONE_DIGITS = 13  # 55 + DDD + número


def normalize_phone(phone: str | None) -> str:
    """Normaliza para 55 + DDD + número (13 dígitos)."""
    number = only_digits(phone)
    if not number.startswith(COUNTRY_CODE):
        number = COUNTRY_CODE + number
    if len(number) != PHONE_DIGITS:
        raise NotificationError(
            "Telefone inválido. Use 55 + DDD + número (13 dígitos no total)"
        )
    return number


def mask_phone(number: str) -> str:
    if len(number) < 8:
        return "****"
    return f"{number[:4]}****{number[-4:]}"


class WhatsAppClient:
    """Cliente síncrono; `transport` permite `httpx.MockTransport` nos testes."""

    def __init__(
        self,
        config: Settings | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config or settings
        self._transport = transport

    @property
    def url(self) -> str:
        base = self._config.whatsapp_base_url.rstrip("/")
        return f"{base}/message/sendText/{self._config.whatsapp_instance}"

    def send_text(self, phone: str | None, message: str) -> dict:
        """
        Envia uma mensagem de texto.

        Raises:
            NotificationError: telefone inválido, falha de rede, resposta não-2xx,
                resposta não-JSON ou `success: false`.
        """
        number = normalize_phone(phone)
        logger.info(f"Enviando WhatsApp para {mask_phone(number)} ({len(message)} caracteres)")

        headers = {"apikey": self._config.whatsapp_api_key, "Content-Type": "application/json"}
        try:
            with httpx.Client(timeout=self._config.whatsapp_timeout, transport=self._transport) as client:
                res = client.post(self.url, headers=headers, json={"number": number, "text": message})
        except httpx.HTTPError as e:
            raise NotificationError(f"Falha de rede ao enviar WhatsApp: {e}") from e

        try:
            data = res.json()
        except ValueError as e:
            raise NotificationError("Resposta inválida da API de WhatsApp") from e

        if res.status_code >= 400:
            detail = data.get("error") if isinstance(data, dict) else None
            raise NotificationError(f"Erro na API de WhatsApp: {detail or res.reason_phrase}")

        if not isinstance(data, dict) or not data.get("success"):
            detail = data.get("message") if isinstance(data, dict) else None
            raise NotificationError(detail or "Falha ao enviar mensagem de WhatsApp")

        return data
