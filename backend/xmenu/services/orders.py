"""Pedidos: criação idempotente por pagamento, baixa de estoque e status de entrega."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import InsufficientStockError, NotFoundError, ProductNotFound, ValidationError
from ..models import Order, Product, utc_now
from ..schemas import DeliveryStatus, OrderData, OrderItem, OrderStatus

logger = logging.getLogger(__name__)

REQUIRED_CUSTOMER_FIELDS = (
    ("customer_email", "Email do cliente é obrigatório"),
    ("customer_name", "Nome do cliente é obrigatório"),
    ("customer_phone", "Telefone do cliente é obrigatório"),
    ("customer_cpf", "CPF do cliente é obrigatório"),
    ("customer_address", "Endereço do cliente é obrigatório"),
)


def validate_order_data(order_data: OrderData) -> None:
    """Todos os dados do cliente são obrigatórios para gravar o pedido."""
    for field, message in REQUIRED_CUSTOMER_FIELDS:
        if not (getattr(order_data, field) or "").strip():
            raise ValidationError(message)
    if not order_data.products:
        raise ValidationError("O pedido não possui produtos")


class OrderGuard:
    """
    Garante no máximo um pedido por payment_id.

    O polling é level-triggered: o mesmo "pagamento aprovado" chega várias
    vezes, inclusive em requisições concorrentes. A checagem prévia cobre os
    polls sequenciais; a constraint única cobre a corrida entre dois polls.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_existing(self, payment_id: str) -> Order | None:
        return self.db.query(Order).filter(Order.payment_id == payment_id).first()

    def insert(self, order: Order) -> tuple[Order, bool]:
        """Insere (flush, sem commit). Devolve (pedido, criado)."""
        self.db.add(order)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            existing = self.find_existing(order.payment_id)
            if existing is None:
                raise
            logger.info(f"Pedido do pagamento {order.payment_id} já criado por outra requisição")
            return existing, False
        return order, True


def decrement_stock(db: Session, store_id: int, item: OrderItem) -> None:
    """Baixa atômica com piso: só atualiza se houver quantidade suficiente."""
    result = db.execute(
        update(Product)
        .where(
            Product.id == item.id,
            Product.user_id == store_id,
            Product.quantity >= item.quantity,
        )
        .values(quantity=Product.quantity - item.quantity, updated_at=utc_now())
    )
    if result.rowcount == 1:
        return

    product = db.get(Product, item.id)
    if product is None or product.user_id != store_id:
        raise ProductNotFound(f"Produto {item.id} não encontrado")
    raise InsufficientStockError(
        f"Estoque insuficiente para o produto {item.name or product.name}"
    )


def create_order_for_payment(
    db: Session, payment_id: str, store_id: int, order_data: OrderData
) -> tuple[int, bool]:
    """
    Grava o pedido de um pagamento aprovado e dá baixa no estoque.

    Tudo em uma transação: se qualquer item não tiver estoque, nem o pedido nem
    nenhuma baixa são persistidos.

    Returns:
        (order_id, criado). `criado` é False quando o pedido já existia.
    """
    validate_order_data(order_data)

    guard = OrderGuard(db)
    existing = guard.find_existing(payment_id)
    if existing:
        logger.debug(f"Pedido {existing.id} já existe para o pagamento {payment_id}")
        return existing.id, False

    order = Order(
        payment_id=payment_id,
        store_id=store_id,
        customer_name=order_data.customer_name.strip(),
        customer_email=order_data.customer_email.strip(),
        customer_phone=order_data.customer_phone.strip(),
        customer_cpf=order_data.customer_cpf.strip(),
        customer_address=order_data.customer_address.strip(),
        customer_notes=order_data.customer_notes,
        total_amount=order_data.total_amount,
        produtos=[item.model_dump() for item in order_data.products],
        status=OrderStatus.APROVADO.value,
        delivery_status=DeliveryStatus.ENTREGA_PENDENTE.value,
    )

    try:
        order, created = guard.insert(order)
        if not created:
            return order.id, False

        for item in order_data.products:
            decrement_stock(db, store_id, item)

        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Pedido {order.id} criado para o pagamento {payment_id} (loja {store_id})")
    return order.id, True


@dataclass
class DeliveryStatusChange:
    order_id: int
    old_delivery_status: str
    new_delivery_status: str
    status: str


def update_delivery_status(
    db: Session,
    order_id: int,
    new_delivery_status: str,
    reason: str | None = None,
    status: str | None = None,
) -> DeliveryStatusChange:
    """
    Aplica um novo status de entrega escolhido pelo lojista.

    Só valida que o valor é um dos cinco conhecidos; qualquer transição entre
    eles é aceita (inclusive voltar de "entregue").
    """
    valid_delivery = {s.value for s in DeliveryStatus}
    if new_delivery_status not in valid_delivery:
        raise ValidationError("Status de entrega inválido")
    if status is not None and status not in {s.value for s in OrderStatus}:
        raise ValidationError("Status do pedido inválido")

    order = db.get(Order, order_id)
    if not order:
        raise NotFoundError("Pedido não encontrado")

    old_delivery_status = order.delivery_status
    order.delivery_status = new_delivery_status
    if status is not None:
        order.status = status
    if reason is not None:
        order.status_reason = reason
    db.commit()

    logger.info(f"Pedido {order_id}: entrega {old_delivery_status} -> {new_delivery_status}")
    return DeliveryStatusChange(
        order_id=order.id,
        old_delivery_status=old_delivery_status,
        new_delivery_status=new_delivery_status,
        status=order.status,
    )
