"""Notificações (WhatsApp) disparadas após transições de status.

As funções `notify_*` são jobs: levantam `NotificationError` em caso de falha
para que o RQ registre o job como falho. Os fluxos de pagamento e pedido nunca
chamam os jobs diretamente; usam o `NotificationDispatcher`, que engole e loga
qualquer falha.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Callable, Iterator

from redis import Redis
from rq import Queue
from sqlalchemy.orm import Session

from ..config import Settings, settings
from ..database import SessionLocal
from ..errors import NotificationError
from ..models import Order, Profile, Subscription
from .payments import plan_amount
from .whatsapp import WhatsAppClient

logger = logging.getLogger(__name__)

DELIVERY_LABELS = {
    "entrega_pendente": "Entrega Pendente",
    "em_preparacao": "Em Preparação",
    "em_transito": "Em Trânsito",
    "entregue": "Entregue",
    "cancelado": "Cancelado",
}

DELIVERY_EMOJIS = {
    "entrega_pendente": "⏳",
    "em_preparacao": "👨‍🍳",
    "em_transito": "🚚",
    "entregue": "✅",
    "cancelado": "❌",
}


def format_delivery_status(status: str | None) -> str:
    return DELIVERY_LABELS.get((status or "").lower(), status or "")


def delivery_emoji(status: str | None) -> str:
    return DELIVERY_EMOJIS.get((status or "").lower(), "📦")


def format_brl(value: float | None) -> str:
    """R$ 1.234,56"""
    formatted = f"{float(value or 0):,.2f}"
    return "R$ " + formatted.replace(",", "_").replace(".", ",").replace("_", ".")


def format_date(value: datetime | None, with_time: bool = False) -> str:
    if value is None:
        return "-"
    return value.strftime("%d/%m/%Y %H:%M" if with_time else "%d/%m/%Y")


def _product_lines(produtos: list[dict]) -> str:
    lines = []
    for p in produtos or []:
        quantity = int(p.get("quantity") or 0)
        subtotal = float(p.get("price") or 0) * quantity
        lines.append(f"• {p.get('name', '')} ({quantity}x) - {format_brl(subtotal)}")
    return "\n".join(lines)


# === Mensagens ===


def build_delivery_status_message(
    order: Order,
    store_name: str,
    old_status: str | None,
    new_status: str,
    reason: str | None = None,
    now: datetime | None = None,
) -> str:
    first_name = (order.customer_name or "").split(" ")[0]
    reason_block = f"\n📝 Observação:\n{reason}\n" if reason else ""
    return (
        "🔔 Atualização do seu Pedido!\n\n"
        f"Olá {first_name}, seu pedido teve uma atualização!\n\n"
        f"📦 Pedido #{order.payment_id}\n"
        f"🏪 Loja: {store_name}\n"
        f"📅 Data do Pedido: {format_date(order.created_at, with_time=True)}\n\n"
        f"{delivery_emoji(new_status)} Status Atualizado:\n"
        f"{format_delivery_status(old_status)} ➡️ {format_delivery_status(new_status)}\n\n"
        "🛒 Produtos:\n"
        f"{_product_lines(order.produtos)}\n\n"
        f"💰 Valor Total: {format_brl(order.total_amount)}\n"
        f"{reason_block}\n"
        "📍 Endereço de Entrega:\n"
        f"{order.customer_address}\n\n"
        f"Atualizado em: {format_date(now or datetime.now(UTC), with_time=True)}\n\n"
        "Agradecemos a preferência! 😊"
    )


def build_new_order_message(order: Order, store_name: str) -> str:
    first_name = (order.customer_name or "").split(" ")[0]
    return (
        "🛍️ Pedido confirmado!\n\n"
        f"Olá {first_name}, recebemos o seu pagamento.\n\n"
        f"📦 Pedido #{order.payment_id}\n"
        f"🏪 Loja: {store_name}\n\n"
        "🛒 Produtos:\n"
        f"{_product_lines(order.produtos)}\n\n"
        f"💰 Valor Total: {format_brl(order.total_amount)}\n\n"
        "Você receberá novas mensagens a cada atualização da entrega. 😊"
    )


def build_store_order_message(order: Order) -> str:
    return (
        "🔔 Novo pedido recebido!\n\n"
        f"📦 Pedido #{order.payment_id}\n"
        f"👤 Cliente: {order.customer_name} ({order.customer_phone})\n\n"
        "🛒 Produtos:\n"
        f"{_product_lines(order.produtos)}\n\n"
        f"💰 Valor Total: {format_brl(order.total_amount)}\n\n"
        "📍 Endereço de Entrega:\n"
        f"{order.customer_address}"
    )


def build_plan_change_message(
    user_name: str,
    plan_name: str,
    monthly_price: float,
    period: str,
    features: list[str],
    period_start: datetime | None,
    period_end: datetime | None,
) -> str:
    price = plan_amount(monthly_price, period)
    unit = "ano" if period == "annual" else "mês"
    feature_lines = "\n".join(f"• {f}" for f in features or [])
    return (
        f"Olá {user_name}! 🎉\n\n"
        "Seu plano foi atualizado com sucesso!\n\n"
        f"📦 Plano: {plan_name}\n"
        f"💰 Valor: {format_brl(price)}/{unit}\n"
        f"📅 Início: {format_date(period_start)}\n"
        f"📅 Validade: {format_date(period_end)}\n\n"
        "✨ Principais recursos:\n"
        f"{feature_lines}\n\n"
        "Agradecemos a preferência! Se precisar de ajuda, estamos à disposição. 😊"
    )


# === Jobs ===


@contextmanager
def _session(db: Session | None) -> Iterator[Session]:
    if db is not None:
        yield db
        return
    own = SessionLocal()
    try:
        yield own
    finally:
        own.close()


def notify_delivery_status(
    order_id: int,
    old_status: str | None,
    new_status: str,
    reason: str | None = None,
    db: Session | None = None,
    sender: WhatsAppClient | None = None,
) -> None:
    """Avisa o cliente da mudança de status de entrega."""
    if not order_id or not new_status:
        raise NotificationError("Campos obrigatórios: orderId e newDeliveryStatus")

    sender = sender or WhatsAppClient()
    with _session(db) as session:
        order = session.get(Order, order_id)
        if not order:
            raise NotificationError("Pedido não encontrado")
        store_name = order.store.store_name if order.store else ""
        message = build_delivery_status_message(order, store_name or "", old_status, new_status, reason)
        sender.send_text(order.customer_phone, message)
    logger.info(f"Notificação de entrega enviada: pedido {order_id} {old_status} -> {new_status}")


def notify_new_order(
    order_id: int,
    db: Session | None = None,
    sender: WhatsAppClient | None = None,
) -> None:
    """Confirma o pedido ao cliente e avisa a loja."""
    sender = sender or WhatsAppClient()
    with _session(db) as session:
        order = session.get(Order, order_id)
        if not order:
            raise NotificationError("Pedido não encontrado")
        store = order.store
        sender.send_text(order.customer_phone, build_new_order_message(order, (store.store_name if store else "") or ""))
        if store and store.telefone:
            sender.send_text(store.telefone, build_store_order_message(order))
    logger.info(f"Notificação de novo pedido enviada: pedido {order_id}")


def notify_plan_change(
    user_id: int,
    plan_name: str,
    period: str,
    db: Session | None = None,
    sender: WhatsAppClient | None = None,
) -> None:
    """Avisa o lojista que o plano foi atualizado."""
    if not user_id or not plan_name or not period:
        raise NotificationError("Campos obrigatórios: userId, planName e period")
    if period not in ("monthly", "annual"):
        raise NotificationError('Período inválido. Use "monthly" ou "annual"')

    sender = sender or WhatsAppClient()
    with _session(db) as session:
        profile = session.get(Profile, user_id)
        if not profile:
            raise NotificationError("Perfil do usuário não encontrado")
        if not profile.telefone:
            raise NotificationError("Telefone do usuário não encontrado")

        subscription = (
            session.query(Subscription)
            .filter(Subscription.user_id == user_id, Subscription.status == "active")
            .first()
        )
        if not subscription:
            raise NotificationError("Assinatura ativa não encontrada")

        plan = subscription.plan or profile.plan
        message = build_plan_change_message(
            user_name=profile.name,
            plan_name=plan_name,
            monthly_price=plan.price if plan else 0.0,
            period=period,
            features=list(plan.features or []) if plan else [],
            period_start=subscription.current_period_start,
            period_end=subscription.current_period_end,
        )
        sender.send_text(profile.telefone, message)
    logger.info(f"Notificação de plano enviada: usuário {user_id} plano {plan_name}")


# === Dispatcher ===

_redis: Redis | None = None
_queue: Queue | None = None


def get_redis() -> Redis:
    """Retorna conexão Redis (lazy init)."""
    global _redis
    if _redis is None:
        _redis = Redis.from_url(settings.redis_url)
    return _redis


def get_queue() -> Queue:
    """Retorna fila RQ de notificações (lazy init)."""
    global _queue
    if _queue is None:
        _queue = Queue(settings.queue_name, connection=get_redis())
    return _queue


class NotificationDispatcher:
    """
    Canal best-effort: falhas são logadas e nunca propagadas.

    Com `notifications_async` os jobs vão para a fila RQ; sem ele rodam na hora,
    com a sessão da requisição.
    """

    def __init__(
        self,
        db: Session | None = None,
        config: Settings | None = None,
        queue_factory: Callable[[], Queue] = get_queue,
        sender: WhatsAppClient | None = None,
    ) -> None:
        self._db = db
        self._config = config or settings
        self._queue_factory = queue_factory
        self._sender = sender

    def _dispatch(self, job: Callable[..., None], *args) -> bool:
        try:
            if self._config.notifications_async:
                enqueued = self._queue_factory().enqueue(job, *args)
                logger.info(f"Notificação {job.__name__} enfileirada: job {enqueued.id}")
            else:
                job(*args, db=self._db, sender=self._sender)
            return True
        except Exception as e:
            logger.warning(f"Falha ao notificar ({job.__name__}{args}): {e}")
            return False

    def order_created(self, order_id: int) -> bool:
        return self._dispatch(notify_new_order, order_id)

    def delivery_status_changed(
        self, order_id: int, old_status: str | None, new_status: str, reason: str | None = None
    ) -> bool:
        return self._dispatch(notify_delivery_status, order_id, old_status, new_status, reason)

    def plan_changed(self, user_id: int, plan_name: str, period: str) -> bool:
        return self._dispatch(notify_plan_change, user_id, plan_name, period)
