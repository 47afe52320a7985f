"""Configuração de fixtures para testes."""

import json
import os

# Antes de importar o app: banco em memória e sem segredo JWT
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_JWT_SECRET"] = ""
os.environ["RATE_LIMIT_REQUESTS"] = "1000"

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from xmenu.config import settings
from xmenu.database import Base, get_db
from xmenu.dependencies import get_client_factory, get_dispatcher, get_whatsapp_sender
from xmenu.errors import NotificationError
from xmenu.main import app
from xmenu.models import Plan, Product, Profile
from xmenu.services.mercadopago import MercadoPagoClient
from xmenu.services.notifications import NotificationDispatcher


# Banco de dados em memória para testes
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

STORE_API_KEY = "TEST-0000-store-token"
PLATFORM_API_KEY = "TEST-9999-platform-token"
VALID_CPF = "11144477735"


class FakeMercadoPago:
    """Gateway em memória servido via `httpx.MockTransport`."""

    def __init__(self):
        self.payments: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.refunds: list[str] = []
        self.tokens: list[str] = []
        self.next_id = 1001
        # (status_code, body) para forçar a resposta do POST /v1/payments
        self.create_response: tuple[int, dict] | None = None
        self.offline = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.offline:
            raise httpx.ConnectError("gateway offline", request=request)

        path = request.url.path
        if request.method == "POST" and path == "/v1/payments":
            if self.create_response is not None:
                status_code, body = self.create_response
                return httpx.Response(status_code, json=body)
            body = json.loads(request.content)
            payment_id = self.next_id
            self.next_id += 1
            payment = {
                "id": payment_id,
                "status": "pending",
                "status_detail": "pending_waiting_transfer",
                "transaction_amount": body["transaction_amount"],
                "description": body["description"],
                "point_of_interaction": {
                    "transaction_data": {
                        "qr_code": f"00020126PIX{payment_id}",
                        "qr_code_base64": "aVZCT1J3MEtHZ28=",
                    }
                },
            }
            self.payments[str(payment_id)] = payment
            return httpx.Response(201, json=payment)

        if request.method == "POST" and path.endswith("/refunds"):
            payment_id = path.split("/")[3]
            self.refunds.append(payment_id)
            self.payments[payment_id]["status"] = "refunded"
            return httpx.Response(201, json={"id": 1, "payment_id": int(payment_id)})

        if request.method == "GET" and path.startswith("/v1/payments/"):
            payment_id = path.rsplit("/", 1)[1]
            if payment_id not in self.payments:
                return httpx.Response(404, json={"message": "Payment not found"})
            return httpx.Response(200, json=self.payments[payment_id])

        return httpx.Response(404, json={"message": "not found"})

    def add(self, payment_id, status="pending", amount=49.90, detail=None):
        self.payments[str(payment_id)] = {
            "id": int(payment_id),
            "status": status,
            "status_detail": detail or status,
            "transaction_amount": amount,
        }

    def approve(self, payment_id):
        self.payments[str(payment_id)]["status"] = "approved"
        self.payments[str(payment_id)]["status_detail"] = "accredited"

    def factory(self, access_token: str) -> MercadoPagoClient:
        self.tokens.append(access_token)
        return MercadoPagoClient(access_token, transport=httpx.MockTransport(self.handler))

    def count(self, method: str, prefix: str = "/v1/payments") -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path.startswith(prefix))


class FakeWhatsApp:
    """Registra as mensagens em vez de enviá-las."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    def send_text(self, phone, message):
        if self.fail:
            raise NotificationError("Erro na API de WhatsApp: Service Unavailable")
        self.sent.append((phone, message))
        return {"success": True}


@pytest.fixture(scope="function")
def db_session():
    """Cria uma sessão de banco de dados para testes."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def gateway():
    return FakeMercadoPago()


@pytest.fixture
def whatsapp():
    return FakeWhatsApp()


@pytest.fixture
def inline_settings():
    """Configurações com notificações síncronas (sem Redis)."""
    return settings.model_copy(update={"notifications_async": False})


@pytest.fixture
def dispatcher(db_session, inline_settings, whatsapp):
    return NotificationDispatcher(db=db_session, config=inline_settings, sender=whatsapp)


@pytest.fixture(scope="function")
def client(db_session, gateway, dispatcher, whatsapp):
    """Cria um cliente de teste com banco isolado e serviços externos falsos."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_client_factory] = lambda: gateway.factory
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_whatsapp_sender] = lambda: whatsapp
    with TestClient(app, headers={"Authorization": "Bearer test-token"}) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def plans(db_session):
    """Planos gratuito, básico e pro."""
    free = Plan(name="Gratuito", price=0.0, features=["Até 10 produtos"])
    basic = Plan(name="Básico", price=29.90, features=["Até 100 produtos", "Suporte por email"])
    pro = Plan(name="Pro", price=59.90, features=["Produtos ilimitados", "Suporte prioritário"])
    db_session.add_all([free, basic, pro])
    db_session.commit()
    return {"free": free, "basic": basic, "pro": pro}


@pytest.fixture
def store(db_session):
    """Lojista com access token do gateway configurado."""
    profile = Profile(
        name="Maria Souza",
        email="maria@loja.com",
        cpf=VALID_CPF,
        telefone="(11) 98888-7777",
        store_name="Empório da Maria",
        apikey=STORE_API_KEY,
    )
    db_session.add(profile)
    db_session.commit()
    return profile


@pytest.fixture
def platform_admin(db_session):
    """Admin da plataforma: a conta do gateway que recebe as assinaturas."""
    admin = Profile(name="Financeiro XMenu", email="financeiro@xmenu.com", is_admin=True, apikey=PLATFORM_API_KEY)
    db_session.add(admin)
    db_session.commit()
    return admin


@pytest.fixture
def products(db_session, store):
    items = [
        Product(user_id=store.id, name="Pizza Margherita", price=49.90, quantity=10),
        Product(user_id=store.id, name="Refrigerante 2L", price=12.00, quantity=1),
    ]
    db_session.add_all(items)
    db_session.commit()
    return items


@pytest.fixture
def order_data(products):
    """Payload `orderData` enviado pela vitrine."""
    pizza = products[0]
    return {
        "customerName": "João da Silva",
        "customerEmail": "a@b.com",
        "customerPhone": "11 91234-5678",
        "customerCpf": VALID_CPF,
        "customerAddress": "Rua das Flores, 100 - Centro",
        "customerNotes": "Sem cebola",
        "products": [
            {"id": pizza.id, "name": pizza.name, "price": 49.90, "quantity": 2, "image_url": None}
        ],
        "totalAmount": 99.80,
    }
