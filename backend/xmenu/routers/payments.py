"""Endpoints de pagamento PIX: criação e consulta/reconciliação de status."""

import logging

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from ..config import settings
from ..database import DbSession
from ..dependencies import get_client_factory, get_dispatcher
from ..schemas import CreatePaymentRequest, SimpleStatusOut, SimpleStatusRequest, StatusOut, StatusRequest
from ..services.notifications import NotificationDispatcher
from ..services.payments import create_pix_payment
from ..services.reconciliation import fetch_payment_status, reconcile_payment

logger = logging.getLogger(__name__)

router = APIRouter()

# Rate limiter
limiter = Limiter(key_func=get_remote_address)


@router.post("/payment")
@limiter.limit(settings.rate_limit)
async def create_store_payment(
    request: Request,
    data: CreatePaymentRequest,
    client_factory=Depends(get_client_factory),
):
    """Checkout da vitrine. Valida só a presença do CPF."""
    return await create_pix_payment(data, plan_flow=False, client_factory=client_factory)


@router.post("/plan-payment")
@limiter.limit(settings.rate_limit)
async def create_plan_payment(
    request: Request,
    data: CreatePaymentRequest,
    client_factory=Depends(get_client_factory),
):
    """Assinatura de plano. Valida o dígito verificador do CPF e o período."""
    return await create_pix_payment(data, plan_flow=True, client_factory=client_factory)


@router.post("/payment-status-simple", response_model=SimpleStatusOut)
async def payment_status_simple(
    data: SimpleStatusRequest,
    client_factory=Depends(get_client_factory),
):
    payment = await fetch_payment_status(data, client_factory=client_factory)
    return SimpleStatusOut(status=payment.status, status_detail=payment.status_detail)


@router.post("/payment-status", response_model=StatusOut)
async def payment_status(
    data: StatusRequest,
    db: DbSession,
    client_factory=Depends(get_client_factory),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Consultado a cada 5s pelo cliente; cria o pedido uma única vez na aprovação."""
    result = await reconcile_payment(db, data, dispatcher, client_factory=client_factory)
    return StatusOut(status=result.status, status_detail=result.status_detail, order_id=result.order_id)
