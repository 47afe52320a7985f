"""Models SQLAlchemy do XMenu."""

from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


def utc_now() -> datetime:
    """Retorna datetime atual em UTC."""
    return datetime.now(UTC)


# =============================================================================
# LOJISTAS / USUÁRIOS
# =============================================================================


class Profile(Base):
    """Perfil do usuário (lojista). Também é a loja do catálogo."""

    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    cpf = Column(String(14), nullable=True)
    telefone = Column(String(20), nullable=True)

    store_name = Column(String(255), nullable=True)
    endereco = Column(String(255), nullable=True)
    # Access token do Mercado Pago do lojista
    apikey = Column(String(255), nullable=True)

    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="SET NULL"), nullable=True, index=True)
    is_admin = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    # Relationships
    plan = relationship("Plan")
    products = relationship("Product", back_populates="owner", cascade="all, delete-orphan")
    subscriptions = relationship("Subscription", back_populates="user", cascade="all, delete-orphan")


class Plan(Base):
    """Plano de assinatura. Preço mensal; anual tem 20% de desconto."""

    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    price = Column(Float, nullable=False, default=0.0)
    description = Column(Text, nullable=True)
    features = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    @property
    def is_paid(self) -> bool:
        return float(self.price or 0) > 0


# =============================================================================
# CATÁLOGO
# =============================================================================


class Product(Base):
    """Item de estoque do lojista."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Float, nullable=False, default=0.0)
    quantity = Column(Integer, nullable=False, default=0)  # nunca negativo
    description = Column(Text, nullable=True)
    category = Column(String(120), nullable=True, index=True)
    tags = Column(JSON, nullable=False, default=list)
    image_url = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    owner = relationship("Profile", back_populates="products")

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
    )


# =============================================================================
# PEDIDOS
# =============================================================================


class Order(Base):
    """Pedido da vitrine, criado uma única vez por pagamento aprovado."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(String(80), nullable=False)
    store_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)

    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(20), nullable=False)
    customer_cpf = Column(String(14), nullable=False)
    customer_address = Column(String(500), nullable=False)
    customer_notes = Column(Text, nullable=True)

    total_amount = Column(Float, nullable=False)
    produtos = Column(JSON, nullable=False, default=list)  # [{id, name, price, quantity, image_url}]

    status = Column(String(20), nullable=False, default="pendente", index=True)
    delivery_status = Column(String(30), nullable=False, default="entrega_pendente", index=True)
    status_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now, index=True)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    store = relationship("Profile")

    __table_args__ = (
        UniqueConstraint("payment_id", name="uq_orders_payment_id"),
        Index("ix_orders_store_created", "store_id", "created_at"),
    )


# =============================================================================
# ASSINATURAS
# =============================================================================


class Subscription(Base):
    """Assinatura de plano. No máximo uma ativa por usuário."""

    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, index=True)  # active|canceled
    period_type = Column(String(20), nullable=False, default="monthly")  # monthly|annual
    payment_id = Column(String(80), nullable=True)

    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    canceled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    user = relationship("Profile", back_populates="subscriptions")
    plan = relationship("Plan")

    __table_args__ = (
        Index("ix_subscriptions_user_status", "user_id", "status"),
    )


class SubscriptionPayment(Base):
    """Pagamento de assinatura; prova de que um plano pago foi pago."""

    __tablename__ = "subscription_payments"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(String(80), nullable=False)
    user_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=True, index=True)
    status = Column(String(30), nullable=False, index=True)  # pending|approved|rejected|...
    amount = Column(Float, nullable=False, default=0.0)
    period_type = Column(String(20), nullable=False, default="monthly")
    created_at = Column(DateTime(timezone=True), default=utc_now, index=True)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    __table_args__ = (
        UniqueConstraint("payment_id", name="uq_subscription_payments_payment_id"),
        Index("ix_subscription_payments_user_status_created", "user_id", "status", "created_at"),
    )
