"""Endpoints de assinatura de planos."""

from typing import Optional

from fastapi import APIRouter, Depends

from ..database import DbSession
from ..dependencies import ensure_owner, get_client_factory, get_dispatcher, require_admin
from ..schemas import (
    AdminCustomerPlanRequest,
    ConfirmPlanPaymentOut,
    ConfirmPlanPaymentRequest,
    RecordPlanPaymentRequest,
    SubscriptionOut,
    SubscriptionPaymentOut,
    SubscriptionTransitionRequest,
)
from ..services.auth import require_bearer
from ..services.notifications import NotificationDispatcher
from ..services.subscriptions import (
    admin_set_customer_plan,
    confirm_plan_payment,
    record_plan_payment,
    transition_subscription,
)

router = APIRouter()


@router.post("/subscriptions/payments", response_model=SubscriptionPaymentOut)
def create_subscription_payment(
    data: RecordPlanPaymentRequest,
    db: DbSession,
    token: Optional[dict] = Depends(require_bearer),
):
    """Registra o pagamento do plano como pendente."""
    ensure_owner(db, token, data.user_id)
    return SubscriptionPaymentOut.model_validate(record_plan_payment(db, data))


@router.post("/subscriptions/confirm", response_model=ConfirmPlanPaymentOut)
async def confirm_subscription_payment(
    data: ConfirmPlanPaymentRequest,
    db: DbSession,
    token: Optional[dict] = Depends(require_bearer),
    client_factory=Depends(get_client_factory),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Chamado quando o polling do plano vê `approved`."""
    ensure_owner(db, token, data.user_id)
    status, subscription = await confirm_plan_payment(db, data, dispatcher, client_factory=client_factory)
    return ConfirmPlanPaymentOut(
        status=status,
        subscription=SubscriptionOut.model_validate(subscription) if subscription else None,
    )


@router.post("/subscriptions/transition", response_model=SubscriptionOut)
def subscription_transition(
    data: SubscriptionTransitionRequest,
    db: DbSession,
    token: Optional[dict] = Depends(require_bearer),
):
    ensure_owner(db, token, data.user_id)
    subscription = transition_subscription(
        db, data.user_id, data.plan_id, data.status, data.period_type, data.payment_id
    )
    return SubscriptionOut.model_validate(subscription)


@router.post("/admin/customer-plan", response_model=SubscriptionOut, dependencies=[Depends(require_admin)])
def set_customer_plan(data: AdminCustomerPlanRequest, db: DbSession):
    """Ativação manual de plano pelo admin."""
    return SubscriptionOut.model_validate(admin_set_customer_plan(db, data))
