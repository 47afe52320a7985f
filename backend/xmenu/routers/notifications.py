"""Endpoints de notificação por WhatsApp (chamados diretamente pelo frontend)."""

from fastapi import APIRouter, Depends

from ..database import DbSession
from ..dependencies import get_whatsapp_sender
from ..schemas import PlanNotificationRequest, StatusNotificationRequest, SuccessOut
from ..services.notifications import notify_delivery_status, notify_plan_change
from ..services.whatsapp import WhatsAppClient

router = APIRouter()


@router.post("/status-notification", response_model=SuccessOut)
def status_notification(
    data: StatusNotificationRequest,
    db: DbSession,
    sender: WhatsAppClient = Depends(get_whatsapp_sender),
):
    """Avisa o cliente da mudança de status de entrega. Falha vira `{error}` 400."""
    notify_delivery_status(
        data.order_id,
        data.old_delivery_status,
        data.new_delivery_status,
        data.reason,
        db=db,
        sender=sender,
    )
    return SuccessOut()


@router.post("/whatsapp-notification", response_model=SuccessOut)
def plan_notification(
    data: PlanNotificationRequest,
    db: DbSession,
    sender: WhatsAppClient = Depends(get_whatsapp_sender),
):
    """Avisa o lojista da troca de plano."""
    notify_plan_change(data.user_id, data.plan_name, data.period, db=db, sender=sender)
    return SuccessOut()
