"""Testes para notificações de WhatsApp."""

import json
from datetime import datetime
from unittest.mock import MagicMock

import httpx
import pytest

from xmenu.errors import NotificationError
from xmenu.models import Order, Subscription
from xmenu.services.notifications import (
    NotificationDispatcher,
    build_delivery_status_message,
    format_brl,
    format_delivery_status,
    notify_delivery_status,
    notify_new_order,
    notify_plan_change,
)
from xmenu.services.whatsapp import WhatsAppClient, normalize_phone


def make_order(db_session, store):
    order = Order(
        payment_id="5001",
        store_id=store.id,
        customer_name="João da Silva",
        customer_email="a@b.com",
        customer_phone="(11) 91234-5678",
        customer_cpf="11144477735",
        customer_address="Rua das Flores, 100",
        total_amount=99.80,
        produtos=[{"id": 1, "name": "Pizza Margherita", "price": 49.90, "quantity": 2}],
        status="aprovado",
    )
    db_session.add(order)
    db_session.commit()
    return order


class TestFormatting:
    def test_format_brl(self):
        assert format_brl(1234.5) == "R$ 1.234,50"
        assert format_brl(49.9) == "R$ 49,90"
        assert format_brl(None) == "R$ 0,00"

    def test_delivery_labels(self):
        assert format_delivery_status("em_transito") == "Em Trânsito"
        assert format_delivery_status("desconhecido") == "desconhecido"

    def test_delivery_message(self, db_session, store):
        order = make_order(db_session, store)
        message = build_delivery_status_message(
            order, "Empório da Maria", "entrega_pendente", "em_transito", "Saiu às 18h",
            now=datetime(2026, 10, 19, 18, 30),
        )
        assert "Olá João" in message
        assert "Entrega Pendente ➡️ Em Trânsito" in message
        assert "• Pizza Margherita (2x) - R$ 99,80" in message
        assert "Saiu às 18h" in message
        assert "19/10/2026 18:30" in message


class TestPhone:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("(11) 91234-5678", "5511912345678"),
            ("5511912345678", "5511912345678"),
            ("+55 11 91234-5678", "5511912345678"),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_phone(raw) == expected

    @pytest.mark.parametrize("raw", ["1234", "", None, "55119123456789"])
    def test_invalid(self, raw):
        with pytest.raises(NotificationError):
            normalize_phone(raw)


class TestWhatsAppClient:
    """Testes para o cliente da Evolution API."""

    def client(self, handler):
        return WhatsAppClient(transport=httpx.MockTransport(handler))

    def test_sends_text(self):
        captured = {}

        def handler(request):
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            captured["apikey"] = request.headers.get("apikey")
            return httpx.Response(200, json={"success": True})

        self.client(handler).send_text("11 91234-5678", "Olá")

        assert captured["url"].endswith("/message/sendText/Eazy%20Listas")
        assert captured["body"] == {"number": "5511912345678", "text": "Olá"}
        assert captured["apikey"] is not None

    def test_non_2xx(self):
        client = self.client(lambda request: httpx.Response(500, json={"error": "boom"}))
        with pytest.raises(NotificationError) as exc:
            client.send_text("11912345678", "Olá")
        assert "boom" in exc.value.message

    def test_non_json(self):
        client = self.client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(NotificationError):
            client.send_text("11912345678", "Olá")

    def test_success_false(self):
        client = self.client(lambda request: httpx.Response(200, json={"success": False, "message": "instância offline"}))
        with pytest.raises(NotificationError) as exc:
            client.send_text("11912345678", "Olá")
        assert exc.value.message == "instância offline"


class TestJobs:
    def test_delivery_status(self, db_session, store, whatsapp):
        order = make_order(db_session, store)
        notify_delivery_status(order.id, "entrega_pendente", "entregue", db=db_session, sender=whatsapp)
        phone, message = whatsapp.sent[0]
        assert phone == "(11) 91234-5678"
        assert "Entregue" in message

    def test_delivery_status_missing_order(self, db_session, whatsapp):
        with pytest.raises(NotificationError):
            notify_delivery_status(42, None, "entregue", db=db_session, sender=whatsapp)

    def test_new_order_notifies_customer_and_store(self, db_session, store, whatsapp):
        order = make_order(db_session, store)
        notify_new_order(order.id, db=db_session, sender=whatsapp)
        assert [phone for phone, _ in whatsapp.sent] == ["(11) 91234-5678", store.telefone]

    def test_plan_change_requires_active_subscription(self, db_session, store, whatsapp):
        with pytest.raises(NotificationError) as exc:
            notify_plan_change(store.id, "Pro", "monthly", db=db_session, sender=whatsapp)
        assert exc.value.message == "Assinatura ativa não encontrada"

    def test_plan_change_rejects_period(self, db_session, store, whatsapp):
        with pytest.raises(NotificationError):
            notify_plan_change(store.id, "Pro", "weekly", db=db_session, sender=whatsapp)

    def test_plan_change_message(self, db_session, store, plans, whatsapp):
        db_session.add(
            Subscription(
                user_id=store.id,
                plan_id=plans["pro"].id,
                status="active",
                period_type="annual",
                current_period_start=datetime(2026, 10, 19),
                current_period_end=datetime(2027, 10, 19),
            )
        )
        db_session.commit()

        notify_plan_change(store.id, "Pro", "annual", db=db_session, sender=whatsapp)

        message = whatsapp.sent[0][1]
        assert "Olá Maria Souza!" in message
        assert "R$ 575,04/ano" in message
        assert "Validade: 19/10/2027" in message
        assert "• Suporte prioritário" in message


class TestNotificationDispatcher:
    """Canal best-effort: nunca propaga falhas."""

    def test_enqueues_job(self, db_session):
        queue = MagicMock()
        queue.enqueue.return_value.id = "job-1"
        dispatcher = NotificationDispatcher(db=db_session, queue_factory=lambda: queue)

        assert dispatcher.order_created(10) is True
        queue.enqueue.assert_called_once_with(notify_new_order, 10)

    def test_enqueue_failure_is_swallowed(self, db_session):
        def broken():
            raise ConnectionError("redis down")

        dispatcher = NotificationDispatcher(db=db_session, queue_factory=broken)
        assert dispatcher.delivery_status_changed(10, "entrega_pendente", "entregue") is False

    def test_inline_failure_is_swallowed(self, db_session, inline_settings, whatsapp):
        dispatcher = NotificationDispatcher(db=db_session, config=inline_settings, sender=whatsapp)
        assert dispatcher.order_created(999) is False

    def test_inline_send(self, db_session, store, inline_settings, whatsapp):
        order = make_order(db_session, store)
        dispatcher = NotificationDispatcher(db=db_session, config=inline_settings, sender=whatsapp)
        assert dispatcher.delivery_status_changed(order.id, "entrega_pendente", "em_preparacao") is True
        assert len(whatsapp.sent) == 1
