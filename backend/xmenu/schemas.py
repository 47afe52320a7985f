"""Schemas Pydantic para validação e serialização.

Os payloads HTTP seguem o formato camelCase do frontend; os campos Python são
snake_case com alias.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


# === Enums ===


class PaymentStatus(str, Enum):
    """Status de um pagamento no gateway."""

    PENDING = "pending"
    APPROVED = "approved"
    AUTHORIZED = "authorized"
    IN_PROCESS = "in_process"
    IN_MEDIATION = "in_mediation"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    CHARGED_BACK = "charged_back"
    ERROR = "error"


TERMINAL_PAYMENT_STATUSES = frozenset(
    {
        PaymentStatus.APPROVED.value,
        PaymentStatus.REJECTED.value,
        PaymentStatus.CANCELLED.value,
        PaymentStatus.ERROR.value,
    }
)


class OrderStatus(str, Enum):
    """Status (grosso) do pedido, definido pelo fluxo de pagamento."""

    PENDENTE = "pendente"
    APROVADO = "aprovado"
    REJEITADO = "rejeitado"
    CANCELADO = "cancelado"
    FINALIZADO = "finalizado"


class DeliveryStatus(str, Enum):
    """Status de entrega, controlado pelo lojista."""

    ENTREGA_PENDENTE = "entrega_pendente"
    EM_PREPARACAO = "em_preparacao"
    EM_TRANSITO = "em_transito"
    ENTREGUE = "entregue"
    CANCELADO = "cancelado"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELED = "canceled"


class PeriodType(str, Enum):
    MONTHLY = "monthly"
    ANNUAL = "annual"


def _coerce_id(v: Any) -> Any:
    if isinstance(v, bool):
        return v
    if isinstance(v, int):
        return str(v)
    return v


# Ids do gateway chegam como número ou string
GatewayId = Annotated[str, BeforeValidator(_coerce_id)]


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# === Gateway ===


class GatewayPayment(BaseModel):
    """Pagamento como devolvido pelo gateway (validado na fronteira)."""

    model_config = ConfigDict(extra="allow")

    id: GatewayId
    status: str = PaymentStatus.PENDING.value
    status_detail: str | None = None
    transaction_amount: float | None = None
    description: str | None = None
    point_of_interaction: dict[str, Any] | None = None

    @property
    def transaction_data(self) -> dict[str, Any]:
        poi = self.point_of_interaction or {}
        return poi.get("transaction_data") or {}

    @property
    def qr_code(self) -> str | None:
        return self.transaction_data.get("qr_code")

    @property
    def is_approved(self) -> bool:
        return self.status == PaymentStatus.APPROVED.value


# === Request Schemas ===


class CustomerData(CamelModel):
    name: str | None = None
    email: str | None = None
    cpf: str | None = None


class CreatePaymentRequest(CamelModel):
    """Request de criação de pagamento PIX (vitrine e planos)."""

    amount: float | None = None
    customer_data: CustomerData = Field(default_factory=CustomerData, alias="customerData")
    store_api_key: str | None = Field(default=None, alias="storeApiKey")
    description: str | None = None
    period_type: str | None = None


class OrderItem(CamelModel):
    id: int
    name: str = ""
    price: float = 0.0
    quantity: int = Field(..., gt=0)
    image_url: str | None = None


class OrderData(CamelModel):
    customer_name: str | None = Field(default=None, alias="customerName")
    customer_email: str | None = Field(default=None, alias="customerEmail")
    customer_phone: str | None = Field(default=None, alias="customerPhone")
    customer_cpf: str | None = Field(default=None, alias="customerCpf")
    customer_address: str | None = Field(default=None, alias="customerAddress")
    customer_notes: str | None = Field(default=None, alias="customerNotes")
    products: list[OrderItem] = Field(default_factory=list)
    total_amount: float = Field(default=0.0, alias="totalAmount")


class SimpleStatusRequest(CamelModel):
    payment_id: GatewayId | None = Field(default=None, alias="paymentId")
    store_api_key: str | None = Field(default=None, alias="storeApiKey")


class StatusRequest(SimpleStatusRequest):
    store_id: GatewayId | None = Field(default=None, alias="storeId")
    order_data: OrderData | None = Field(default=None, alias="orderData")


class StatusNotificationRequest(CamelModel):
    order_id: int | None = Field(default=None, alias="orderId")
    old_status: str | None = Field(default=None, alias="oldStatus")
    new_status: str | None = Field(default=None, alias="newStatus")
    old_delivery_status: str | None = Field(default=None, alias="oldDeliveryStatus")
    new_delivery_status: str | None = Field(default=None, alias="newDeliveryStatus")
    reason: str | None = None


class PlanNotificationRequest(CamelModel):
    user_id: int | None = Field(default=None, alias="userId")
    plan_name: str | None = Field(default=None, alias="planName")
    period: str | None = None


class DeliveryStatusUpdateRequest(CamelModel):
    order_id: int = Field(..., alias="orderId")
    delivery_status: str = Field(..., alias="deliveryStatus")
    status: str | None = None
    reason: str | None = None


class SubscriptionTransitionRequest(CamelModel):
    user_id: int = Field(..., alias="userId")
    plan_id: int = Field(..., alias="planId")
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    period_type: PeriodType = Field(default=PeriodType.MONTHLY, alias="periodType")
    payment_id: GatewayId | None = Field(default=None, alias="paymentId")


class RecordPlanPaymentRequest(CamelModel):
    user_id: int = Field(..., alias="userId")
    plan_id: int = Field(..., alias="planId")
    payment_id: GatewayId = Field(..., alias="paymentId")
    amount: float = 0.0
    period_type: PeriodType = Field(default=PeriodType.MONTHLY, alias="periodType")


class ConfirmPlanPaymentRequest(CamelModel):
    user_id: int = Field(..., alias="userId")
    plan_id: int = Field(..., alias="planId")
    payment_id: GatewayId = Field(..., alias="paymentId")
    period_type: PeriodType = Field(default=PeriodType.MONTHLY, alias="periodType")


class AdminCustomerPlanRequest(CamelModel):
    user_id: int = Field(..., alias="userId")
    plan_id: int = Field(..., alias="planId")
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    period_type: PeriodType = Field(default=PeriodType.MONTHLY, alias="periodType")


# === Response Schemas ===


class SimpleStatusOut(BaseModel):
    status: str
    status_detail: str | None = None


class StatusOut(SimpleStatusOut):
    model_config = ConfigDict(populate_by_name=True)

    order_id: int | None = Field(default=None, alias="orderId")


class SuccessOut(BaseModel):
    success: bool = True


class DeliveryStatusUpdateOut(CamelModel):
    order_id: int = Field(..., alias="orderId")
    old_delivery_status: str = Field(..., alias="oldDeliveryStatus")
    new_delivery_status: str = Field(..., alias="newDeliveryStatus")
    status: str
    notified: bool


class SubscriptionOut(CamelModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: int
    user_id: int = Field(..., alias="userId")
    plan_id: int = Field(..., alias="planId")
    status: str
    period_type: str = Field(..., alias="periodType")
    payment_id: GatewayId | None = Field(default=None, alias="paymentId")
    current_period_start: datetime | None = Field(default=None, alias="currentPeriodStart")
    current_period_end: datetime | None = Field(default=None, alias="currentPeriodEnd")


class ConfirmPlanPaymentOut(BaseModel):
    status: str
    subscription: SubscriptionOut | None = None


class SubscriptionPaymentOut(CamelModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    payment_id: GatewayId = Field(..., alias="paymentId")
    user_id: int = Field(..., alias="userId")
    plan_id: int | None = Field(default=None, alias="planId")
    status: str
    amount: float
    period_type: str = Field(..., alias="periodType")


class HealthResponse(BaseModel):
    """Response do health check."""

    status: str
    db: bool
    redis: bool
