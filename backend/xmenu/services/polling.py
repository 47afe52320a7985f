"""Polling explícito do status de pagamento.

Substitui timers globais: cada tarefa é dona do seu ciclo de vida, recebe o id
do pagamento e um sinal de cancelamento, e termina no primeiro status terminal.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from ..config import settings
from ..errors import GatewayUnavailable
from ..schemas import TERMINAL_PAYMENT_STATUSES

logger = logging.getLogger(__name__)

StatusCheck = Callable[[str], Awaitable[Any]]


def _status_of(result: Any) -> str | None:
    if isinstance(result, dict):
        return result.get("status")
    return getattr(result, "status", None)


class PaymentStatusPoller:
    """
    Consulta `check(payment_id)` a cada `interval` segundos.

    Falhas transitórias (`GatewayUnavailable`) são logadas e a consulta é
    repetida no próximo ciclo. Demais erros propagam.
    """

    def __init__(self, check: StatusCheck, interval: float | None = None) -> None:
        self._check = check
        self.interval = settings.payment_poll_interval if interval is None else interval
        self.attempts = 0

    async def _wait(self, cancel: asyncio.Event) -> bool:
        """Dorme um intervalo; True se foi cancelado durante a espera."""
        try:
            await asyncio.wait_for(cancel.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            return False
        return True

    async def run(self, payment_id: str, cancel: asyncio.Event | None = None) -> Any | None:
        """Devolve o último resultado terminal, ou None se cancelado."""
        cancel = cancel or asyncio.Event()
        while not cancel.is_set():
            self.attempts += 1
            try:
                result = await self._check(payment_id)
            except GatewayUnavailable as e:
                logger.warning(f"Consulta do pagamento {payment_id} falhou, tentando de novo: {e.message}")
            else:
                if _status_of(result) in TERMINAL_PAYMENT_STATUSES:
                    return result
            if await self._wait(cancel):
                break
        logger.info(f"Polling do pagamento {payment_id} cancelado após {self.attempts} consultas")
        return None
