"""Transições de assinatura (criar, trocar de plano, cancelar).

Invariante: no máximo uma assinatura `active` por usuário. Toda transição roda
em uma única transação e confere o invariante antes do commit.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import NotFoundError, SubscriptionInvariantError, ValidationError
from ..models import Plan, Profile, Subscription, SubscriptionPayment
from ..schemas import (
    AdminCustomerPlanRequest,
    ConfirmPlanPaymentRequest,
    PaymentStatus,
    PeriodType,
    RecordPlanPaymentRequest,
    SubscriptionStatus,
)
from .idempotency import generate_numeric_payment_id
from .mercadopago import MercadoPagoClient
from .notifications import NotificationDispatcher
from .payments import plan_amount

logger = logging.getLogger(__name__)

PERIOD_DAYS = {
    PeriodType.MONTHLY.value: 30,
    PeriodType.ANNUAL.value: 365,
}

ClientFactory = Callable[[str], MercadoPagoClient]


def _value(v) -> str:
    return v.value if hasattr(v, "value") else str(v)


def period_bounds(period_type: str, now: datetime | None = None) -> tuple[datetime, datetime]:
    start = now or datetime.now(UTC)
    return start, start + timedelta(days=PERIOD_DAYS[period_type])


def find_approved_payment(
    db: Session,
    user_id: int,
    plan: Plan,
    period_type: str,
    payment_id: str | None = None,
    current_subscription_id: int | None = None,
) -> SubscriptionPayment | None:
    """
    Pagamento aprovado que cobre o plano e o período pedidos.

    Só vale um pagamento do próprio plano, com valor >= preço do período, e que
    ainda não esteja vinculado a outra assinatura do usuário (a assinatura
    `current_subscription_id`, que será reaproveitada, não conta). Sem
    `payment_id`, devolve o mais recente que atende.
    """
    used = select(Subscription.payment_id).where(
        Subscription.user_id == user_id,
        Subscription.payment_id.is_not(None),
    )
    if current_subscription_id is not None:
        used = used.where(Subscription.id != current_subscription_id)

    q = db.query(SubscriptionPayment).filter(
        SubscriptionPayment.user_id == user_id,
        SubscriptionPayment.plan_id == plan.id,
        SubscriptionPayment.status == PaymentStatus.APPROVED.value,
        SubscriptionPayment.amount + 0.005 >= plan_amount(plan.price, period_type),
        SubscriptionPayment.payment_id.not_in(used),
    )
    if payment_id:
        q = q.filter(SubscriptionPayment.payment_id == payment_id)
    return q.order_by(SubscriptionPayment.created_at.desc(), SubscriptionPayment.id.desc()).first()


def current_subscription_id(db: Session, user_id: int) -> int | None:
    """Id da assinatura ativa que uma nova ativação reaproveita."""
    row = (
        db.query(Subscription.id)
        .filter(Subscription.user_id == user_id, Subscription.status == SubscriptionStatus.ACTIVE.value)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .first()
    )
    return row[0] if row else None


def count_active(db: Session, user_id: int) -> int:
    return (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id, Subscription.status == SubscriptionStatus.ACTIVE.value)
        .count()
    )


def _apply_transition(
    db: Session,
    user_id: int,
    plan_id: int,
    status: str,
    period_type: str,
    payment_id: str | None,
    now: datetime,
) -> Subscription:
    # Trava a linha do perfil para serializar transições do mesmo usuário
    user = db.query(Profile).filter(Profile.id == user_id).with_for_update().first()
    if not user:
        raise NotFoundError("Usuário não encontrado")
    plan = db.get(Plan, plan_id)
    if not plan:
        raise NotFoundError("Plano não encontrado")
    if period_type not in PERIOD_DAYS:
        raise ValidationError("Tipo de período inválido")

    active_rows = (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id, Subscription.status == SubscriptionStatus.ACTIVE.value)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .all()
    )

    if status == SubscriptionStatus.CANCELED.value:
        if not active_rows:
            raise NotFoundError("Assinatura ativa não encontrada")
        for row in active_rows:
            row.status = SubscriptionStatus.CANCELED.value
            row.canceled_at = now
        db.flush()
        if count_active(db, user_id) != 0:
            raise SubscriptionInvariantError()
        logger.info(f"Assinatura do usuário {user_id} cancelada")
        return active_rows[0]

    if status != SubscriptionStatus.ACTIVE.value:
        raise ValidationError("Status de assinatura inválido")

    if plan.is_paid:
        payment = find_approved_payment(
            db,
            user_id,
            plan,
            period_type,
            payment_id,
            current_subscription_id=active_rows[0].id if active_rows else None,
        )
        if payment is None:
            raise ValidationError("Nenhum pagamento aprovado encontrado para este plano e período")
        payment_id = payment.payment_id

    start, end = period_bounds(period_type, now)
    if active_rows:
        current, retired = active_rows[0], active_rows[1:]
    else:
        current, retired = Subscription(user_id=user_id, status=SubscriptionStatus.ACTIVE.value), []
        db.add(current)

    for row in retired:
        row.status = SubscriptionStatus.CANCELED.value
        row.canceled_at = now

    old_plan_id = current.plan_id
    current.plan_id = plan.id
    current.period_type = period_type
    current.payment_id = payment_id
    current.current_period_start = start
    current.current_period_end = end
    user.plan_id = plan.id
    db.flush()

    if count_active(db, user_id) != 1:
        raise SubscriptionInvariantError()

    logger.info(
        f"Assinatura do usuário {user_id}: plano {old_plan_id} -> {plan.id} "
        f"({period_type}, pagamento {payment_id})"
    )
    return current


def transition_subscription(
    db: Session,
    user_id: int,
    plan_id: int,
    status: str | SubscriptionStatus,
    period_type: str | PeriodType = PeriodType.MONTHLY,
    payment_id: str | None = None,
    now: datetime | None = None,
) -> Subscription:
    """
    Cria, troca ou cancela a assinatura do usuário de forma atômica.

    Ativar um plano pago exige um `SubscriptionPayment` aprovado do usuário
    (o informado em `payment_id` ou o mais recente). Qualquer assinatura ativa
    anterior é aposentada na mesma transação.
    """
    try:
        subscription = _apply_transition(
            db,
            user_id,
            plan_id,
            _value(status),
            _value(period_type),
            payment_id,
            now or datetime.now(UTC),
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(subscription)
    return subscription


def record_plan_payment(db: Session, data: RecordPlanPaymentRequest) -> SubscriptionPayment:
    """Registra o pagamento de plano como pendente logo após a criação no gateway."""
    existing = (
        db.query(SubscriptionPayment).filter(SubscriptionPayment.payment_id == data.payment_id).first()
    )
    if existing:
        if existing.user_id != data.user_id:
            raise ValidationError("Pagamento pertence a outro usuário")
        return existing

    payment = SubscriptionPayment(
        payment_id=data.payment_id,
        user_id=data.user_id,
        plan_id=data.plan_id,
        status=PaymentStatus.PENDING.value,
        amount=data.amount,
        period_type=data.period_type.value,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def platform_access_token(db: Session) -> str:
    """Access token do gateway da conta que recebe as assinaturas (perfil admin)."""
    admin = (
        db.query(Profile)
        .filter(Profile.is_admin.is_(True), Profile.apikey.is_not(None), Profile.apikey != "")
        .order_by(Profile.id)
        .first()
    )
    if admin is None:
        raise ValidationError("Chave da API não configurada")
    return admin.apikey.strip()


def _upsert_payment(
    db: Session,
    payment_id: str,
    user_id: int,
    plan_id: int,
    status: str,
    amount: float,
    period_type: str,
) -> SubscriptionPayment:
    payment = db.query(SubscriptionPayment).filter(SubscriptionPayment.payment_id == payment_id).first()
    if payment is None:
        payment = SubscriptionPayment(payment_id=payment_id, user_id=user_id)
        db.add(payment)
    elif payment.user_id != user_id:
        raise ValidationError("Pagamento pertence a outro usuário")
    payment.plan_id = plan_id
    payment.status = status
    payment.amount = amount
    payment.period_type = period_type
    db.flush()
    return payment


async def confirm_plan_payment(
    db: Session,
    data: ConfirmPlanPaymentRequest,
    dispatcher: NotificationDispatcher,
    client_factory: ClientFactory = MercadoPagoClient,
) -> tuple[str, Subscription | None]:
    """
    Confirma o pagamento de um plano e aplica a transição de assinatura.

    Plano gratuito não passa pelo gateway. Para plano pago, o status é lido do
    gateway com a chave da plataforma (nunca com uma chave vinda do cliente);
    enquanto não for `approved`, nada muda além do status registrado.

    Returns:
        (status do pagamento, assinatura ativa ou None).
    """
    plan = db.get(Plan, data.plan_id)
    if not plan:
        raise NotFoundError("Plano não encontrado")
    period_type = data.period_type.value

    if not plan.is_paid:
        subscription = transition_subscription(
            db, data.user_id, plan.id, SubscriptionStatus.ACTIVE, period_type, data.payment_id
        )
        dispatcher.plan_changed(data.user_id, plan.name, period_type)
        return PaymentStatus.APPROVED.value, subscription

    gateway_payment = await client_factory(platform_access_token(db)).get_payment(data.payment_id)
    amount = float(gateway_payment.transaction_amount or 0)

    if not gateway_payment.is_approved:
        try:
            _upsert_payment(
                db, data.payment_id, data.user_id, plan.id, gateway_payment.status, amount, period_type
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        return gateway_payment.status, None

    expected = plan_amount(plan.price, period_type)
    if amount + 0.005 < expected:
        logger.error(
            f"Pagamento {data.payment_id} de {amount} não cobre o plano {plan.id} ({expected})"
        )
        raise ValidationError("Valor do pagamento não confere com o plano")

    try:
        _upsert_payment(
            db, data.payment_id, data.user_id, plan.id, PaymentStatus.APPROVED.value, amount, period_type
        )
    except Exception:
        db.rollback()
        raise
    subscription = transition_subscription(
        db, data.user_id, plan.id, SubscriptionStatus.ACTIVE, period_type, data.payment_id
    )
    dispatcher.plan_changed(data.user_id, plan.name, period_type)
    return PaymentStatus.APPROVED.value, subscription


def admin_set_customer_plan(db: Session, data: AdminCustomerPlanRequest) -> Subscription:
    """
    Ativação/cancelamento manual pelo admin.

    Sem pagamento aprovado para um plano pago, cria um pagamento sintético
    aprovado (id numérico de 11 dígitos) antes da transição.
    """
    if not db.get(Profile, data.user_id):
        raise NotFoundError("Usuário não encontrado")
    plan = db.get(Plan, data.plan_id)
    if not plan:
        raise NotFoundError("Plano não encontrado")

    payment_id = None
    activating_paid = data.status == SubscriptionStatus.ACTIVE and plan.is_paid
    if activating_paid:
        payment = find_approved_payment(
            db,
            data.user_id,
            plan,
            data.period_type.value,
            current_subscription_id=current_subscription_id(db, data.user_id),
        )
        if payment is None:
            payment = SubscriptionPayment(
                payment_id=generate_numeric_payment_id(),
                user_id=data.user_id,
                plan_id=plan.id,
                status=PaymentStatus.APPROVED.value,
                amount=plan_amount(plan.price, data.period_type.value),
                period_type=data.period_type.value,
            )
            db.add(payment)
            db.flush()
            logger.info(
                f"Pagamento sintético {payment.payment_id} criado pelo admin para o usuário {data.user_id}"
            )
        payment_id = payment.payment_id

    return transition_subscription(
        db, data.user_id, plan.id, data.status, data.period_type, payment_id
    )
