"""Endpoints de pedidos (ações do lojista)."""

from fastapi import APIRouter, Depends

from ..database import DbSession
from ..dependencies import get_dispatcher
from ..schemas import DeliveryStatusUpdateOut, DeliveryStatusUpdateRequest
from ..services.notifications import NotificationDispatcher
from ..services.orders import update_delivery_status

router = APIRouter()


@router.post("/orders/delivery-status", response_model=DeliveryStatusUpdateOut)
def set_delivery_status(
    data: DeliveryStatusUpdateRequest,
    db: DbSession,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Atualiza o status de entrega e avisa o cliente (best-effort)."""
    change = update_delivery_status(
        db, data.order_id, data.delivery_status, reason=data.reason, status=data.status
    )
    notified = dispatcher.delivery_status_changed(
        change.order_id, change.old_delivery_status, change.new_delivery_status, data.reason
    )
    return DeliveryStatusUpdateOut(
        order_id=change.order_id,
        old_delivery_status=change.old_delivery_status,
        new_delivery_status=change.new_delivery_status,
        status=change.status,
        notified=notified,
    )
