"""Criação de pagamentos PIX (checkout da vitrine e assinatura de planos).

Os dois fluxos compartilham o mesmo contrato. A única diferença observada é que
o fluxo de planos valida o dígito verificador do CPF e o tipo de período; a
vitrine só exige o CPF preenchido.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable

from ..config import Settings, settings
from ..errors import InvalidCPF, ValidationError
from ..schemas import CreatePaymentRequest, PaymentStatus, PeriodType
from .cpf import mask_cpf, only_digits, validate_cpf
from .idempotency import generate_idempotency_key
from .mercadopago import MercadoPagoClient

logger = logging.getLogger(__name__)

PLAN_DESCRIPTION = "Assinatura XMenu"
STORE_DESCRIPTION = "Pedido XMenu"
FREE_PLAN_DESCRIPTION = "Plano Gratuito"

ANNUAL_DISCOUNT = 0.2

ClientFactory = Callable[[str], MercadoPagoClient]


def annual_price(monthly_price: float) -> float:
    """Preço anual: 12 mensalidades com 20% de desconto."""
    yearly = float(monthly_price) * 12
    return round(yearly - yearly * ANNUAL_DISCOUNT, 2)


def plan_amount(monthly_price: float, period_type: str) -> float:
    if period_type == PeriodType.ANNUAL.value:
        return annual_price(monthly_price)
    return round(float(monthly_price), 2)


def split_name(full_name: str) -> tuple[str, str]:
    """Primeiro nome e o resto; sem sobrenome, repete o primeiro nome."""
    parts = full_name.strip().split(" ")
    first = parts[0]
    last = " ".join(parts[1:]).strip() or first
    return first, last


def build_payment_payload(
    amount: float,
    name: str,
    email: str,
    cpf: str,
    description: str,
    config: Settings | None = None,
) -> dict[str, Any]:
    """Monta o payload de criação de pagamento PIX do gateway."""
    config = config or settings
    first_name, last_name = split_name(name)
    return {
        "transaction_amount": round(float(amount), 2),
        "description": description,
        "payment_method_id": "pix",
        "payer": {
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "identification": {"type": "CPF", "number": only_digits(cpf)},
            "address": {
                "zip_code": config.merchant_zip_code,
                "street_name": config.merchant_street_name,
                "street_number": config.merchant_street_number,
                "neighborhood": config.merchant_neighborhood,
                "city": config.merchant_city,
                "federal_unit": config.merchant_federal_unit,
            },
        },
    }


def free_payment(description: str | None) -> dict[str, Any]:
    """Pagamento sintético aprovado para valor zero (plano gratuito)."""
    return {
        "id": generate_idempotency_key(),
        "status": PaymentStatus.APPROVED.value,
        "description": description or FREE_PLAN_DESCRIPTION,
        "transaction_amount": 0,
        "point_of_interaction": {
            "transaction_data": {
                "qr_code": "",
                "qr_code_base64": "",
                "bank_info": {"collector": {"account_holder_name": "Sistema"}},
            }
        },
    }


def _is_zero(amount: float | None) -> bool:
    return amount is not None and math.isfinite(amount) and amount == 0


def validate_payment_request(data: CreatePaymentRequest, *, plan_flow: bool) -> None:
    """Valida na ordem: valor, cliente, API key, período. O primeiro erro vence."""
    amount = data.amount
    if amount is None or not math.isfinite(amount) or amount <= 0:
        raise ValidationError("Valor inválido")

    customer = data.customer_data
    if not (customer.name or "").strip() or not (customer.email or "").strip() or not (customer.cpf or "").strip():
        raise ValidationError("Dados do cliente incompletos")

    if not (data.store_api_key or "").strip():
        raise ValidationError("API key não configurada")

    if plan_flow and data.period_type not in (PeriodType.MONTHLY.value, PeriodType.ANNUAL.value):
        raise ValidationError("Tipo de período inválido")


async def create_pix_payment(
    data: CreatePaymentRequest,
    *,
    plan_flow: bool,
    idempotency_key: str | None = None,
    client_factory: ClientFactory = MercadoPagoClient,
) -> dict[str, Any]:
    """
    Cria um pagamento PIX no gateway.

    Args:
        data: Request já parseado.
        plan_flow: True para assinatura de planos (valida CPF e período).
        idempotency_key: Reaproveitar apenas em retry da mesma tentativa.
        client_factory: Constrói o cliente do gateway a partir da API key.

    Returns:
        Objeto de pagamento do gateway (com `period_type` no fluxo de planos).
    """
    customer = data.customer_data
    logger.info(
        f"Pagamento solicitado: amount={data.amount} email={customer.email} "
        f"period_type={data.period_type} plan_flow={plan_flow}"
    )

    if plan_flow and not validate_cpf(customer.cpf):
        logger.warning(f"CPF inválido: {mask_cpf(only_digits(customer.cpf))}")
        raise InvalidCPF()

    if _is_zero(data.amount):
        payment = free_payment(data.description)
        if plan_flow:
            payment["period_type"] = data.period_type
        return payment

    validate_payment_request(data, plan_flow=plan_flow)

    default_description = PLAN_DESCRIPTION if plan_flow else STORE_DESCRIPTION
    payload = build_payment_payload(
        amount=data.amount,
        name=customer.name,
        email=customer.email.strip(),
        cpf=customer.cpf,
        description=data.description or default_description,
    )

    client = client_factory(data.store_api_key.strip())
    payment = await client.create_payment(payload, idempotency_key or generate_idempotency_key())
    logger.info(f"Pagamento {payment.get('id')} criado com status {payment.get('status')}")

    if plan_flow:
        payment["period_type"] = data.period_type
    return payment
