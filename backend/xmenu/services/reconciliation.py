"""Reconciliação do status de pagamento (consultada por polling pelo cliente).

Para pagamentos da vitrine, a transição para `approved` cria o pedido e baixa o
estoque uma única vez, mesmo que o cliente continue consultando depois da
aprovação. Para pagamentos de plano (sem `orderData`) é só leitura.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.orm import Session

from ..config import Settings, settings
from ..errors import InsufficientStockError, ValidationError, XMenuError
from ..schemas import GatewayPayment, SimpleStatusRequest, StatusRequest
from .idempotency import generate_idempotency_key
from .mercadopago import MercadoPagoClient
from .notifications import NotificationDispatcher
from .orders import create_order_for_payment

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], MercadoPagoClient]


@dataclass
class ReconciliationResult:
    status: str
    status_detail: str | None = None
    order_id: int | None = None
    order_created: bool = False


def _require_simple(data: SimpleStatusRequest) -> None:
    if not data.payment_id:
        raise ValidationError("ID do pagamento não fornecido")
    if not (data.store_api_key or "").strip():
        raise ValidationError("Chave da API não fornecida")


def _store_id(raw: str | None) -> int:
    if not raw:
        raise ValidationError("ID da loja não fornecido")
    try:
        return int(raw)
    except ValueError:
        raise ValidationError("ID da loja inválido") from None


async def fetch_payment_status(
    data: SimpleStatusRequest, client_factory: ClientFactory = MercadoPagoClient
) -> GatewayPayment:
    """Consulta simples, sem efeitos colaterais."""
    _require_simple(data)
    client = client_factory(data.store_api_key.strip())
    return await client.get_payment(data.payment_id)


async def _refund_after_stock_failure(client: MercadoPagoClient, payment_id: str) -> None:
    try:
        await client.refund_payment(payment_id, generate_idempotency_key())
        logger.warning(f"Pagamento {payment_id} estornado por falta de estoque")
    except XMenuError as e:
        logger.error(f"Falha ao estornar pagamento {payment_id} após falta de estoque: {e.message}")


async def reconcile_payment(
    db: Session,
    data: StatusRequest,
    dispatcher: NotificationDispatcher,
    client_factory: ClientFactory = MercadoPagoClient,
    config: Settings | None = None,
) -> ReconciliationResult:
    """
    Consulta o pagamento e, se aprovado com dados de pedido, finaliza o pedido.

    Raises:
        ValidationError: campos obrigatórios ausentes.
        GatewayUnavailable: falha transitória; o cliente tenta no próximo poll.
        PaymentGatewayError: o gateway recusou a consulta.
        InsufficientStockError / ProductNotFound: pedido não criado, estoque intacto.
    """
    config = config or settings
    _require_simple(data)
    store_id = _store_id(data.store_id)

    client = client_factory(data.store_api_key.strip())
    payment = await client.get_payment(data.payment_id)
    logger.info(f"Pagamento {data.payment_id}: status={payment.status} ({payment.status_detail})")

    result = ReconciliationResult(status=payment.status, status_detail=payment.status_detail)
    if not payment.is_approved or data.order_data is None:
        return result

    try:
        order_id, created = create_order_for_payment(db, data.payment_id, store_id, data.order_data)
    except InsufficientStockError:
        logger.error(
            f"Pagamento {data.payment_id} aprovado mas sem estoque para atender o pedido "
            f"(loja {store_id})"
        )
        if config.refund_on_stock_failure:
            await _refund_after_stock_failure(client, data.payment_id)
        raise

    result.order_id = order_id
    result.order_created = created
    if created:
        dispatcher.order_created(order_id)
    return result
