"""Testes para criação de pedidos, baixa de estoque e status de entrega."""

import pytest

from xmenu.errors import InsufficientStockError, NotFoundError, ProductNotFound, ValidationError
from xmenu.models import Order, Product
from xmenu.schemas import OrderData, OrderItem
from xmenu.services.orders import (
    OrderGuard,
    create_order_for_payment,
    decrement_stock,
    update_delivery_status,
)


def quantities(db_session):
    db_session.expire_all()
    return {p.id: p.quantity for p in db_session.query(Product).all()}


def make_order(store_id, payment_id="5001", **fields):
    values = dict(
        payment_id=payment_id,
        store_id=store_id,
        customer_name="João da Silva",
        customer_email="a@b.com",
        customer_phone="11912345678",
        customer_cpf="11144477735",
        customer_address="Rua das Flores, 100",
        total_amount=99.80,
        produtos=[],
        status="aprovado",
    )
    values.update(fields)
    return Order(**values)


class TestCreateOrderForPayment:
    """Testes para criação idempotente do pedido."""

    def test_creates_order_and_decrements_stock(self, db_session, store, products, order_data):
        data = OrderData.model_validate(order_data)
        order_id, created = create_order_for_payment(db_session, "5001", store.id, data)

        assert created is True
        order = db_session.get(Order, order_id)
        assert order.status == "aprovado"
        assert order.delivery_status == "entrega_pendente"
        assert order.produtos[0]["quantity"] == 2
        assert quantities(db_session)[products[0].id] == 8

    def test_second_call_is_noop(self, db_session, store, products, order_data):
        """Dois "aprovado" para o mesmo pagamento: um pedido, uma baixa."""
        data = OrderData.model_validate(order_data)
        first_id, _ = create_order_for_payment(db_session, "5001", store.id, data)
        second_id, created = create_order_for_payment(db_session, "5001", store.id, data)

        assert second_id == first_id
        assert created is False
        assert db_session.query(Order).count() == 1
        assert quantities(db_session)[products[0].id] == 8

    def test_insufficient_stock_rolls_back_everything(self, db_session, store, products, order_data):
        """Sem estoque para um item: nenhum pedido e nenhuma baixa."""
        order_data["products"].append(
            {"id": products[1].id, "name": "Refrigerante 2L", "price": 12.0, "quantity": 3}
        )
        before = quantities(db_session)

        with pytest.raises(InsufficientStockError) as exc:
            create_order_for_payment(db_session, "5001", store.id, OrderData.model_validate(order_data))

        assert exc.value.to_dict() == {
            "error": "Estoque insuficiente para o produto Refrigerante 2L",
            "code": "INSUFFICIENT_STOCK",
        }
        assert db_session.query(Order).count() == 0
        assert quantities(db_session) == before

    def test_unknown_product(self, db_session, store, products, order_data):
        order_data["products"][0]["id"] = 999
        with pytest.raises(ProductNotFound):
            create_order_for_payment(db_session, "5001", store.id, OrderData.model_validate(order_data))
        assert db_session.query(Order).count() == 0

    @pytest.mark.parametrize(
        "field,message",
        [
            ("customerEmail", "Email do cliente é obrigatório"),
            ("customerName", "Nome do cliente é obrigatório"),
            ("customerAddress", "Endereço do cliente é obrigatório"),
        ],
    )
    def test_requires_customer_fields(self, db_session, store, order_data, field, message):
        order_data[field] = "  "
        with pytest.raises(ValidationError) as exc:
            create_order_for_payment(db_session, "5001", store.id, OrderData.model_validate(order_data))
        assert exc.value.message == message


class TestOrderGuard:
    def test_recovers_from_concurrent_insert(self, db_session, store):
        """A constraint única resolve a corrida entre dois polls."""
        existing = make_order(store.id)
        db_session.add(existing)
        db_session.commit()

        order, created = OrderGuard(db_session).insert(make_order(store.id))

        assert created is False
        assert order.id == existing.id
        assert db_session.query(Order).count() == 1


class TestDecrementStock:
    def test_never_goes_negative(self, db_session, store, products):
        soda = products[1]
        with pytest.raises(InsufficientStockError):
            decrement_stock(db_session, store.id, OrderItem(id=soda.id, name="", quantity=2))
        db_session.rollback()
        assert quantities(db_session)[soda.id] == 1

    def test_exact_quantity(self, db_session, store, products):
        soda = products[1]
        decrement_stock(db_session, store.id, OrderItem(id=soda.id, quantity=1))
        db_session.commit()
        assert quantities(db_session)[soda.id] == 0

    def test_other_store_product(self, db_session, store, products):
        with pytest.raises(ProductNotFound):
            decrement_stock(db_session, store.id + 1, OrderItem(id=products[0].id, quantity=1))


class TestUpdateDeliveryStatus:
    def test_updates_status(self, db_session, store):
        order = make_order(store.id)
        db_session.add(order)
        db_session.commit()

        change = update_delivery_status(db_session, order.id, "em_transito", reason="Saiu às 18h")

        assert change.old_delivery_status == "entrega_pendente"
        assert change.new_delivery_status == "em_transito"
        db_session.refresh(order)
        assert order.delivery_status == "em_transito"
        assert order.status_reason == "Saiu às 18h"

    def test_any_transition_allowed(self, db_session, store):
        """O lojista pode voltar de "entregue"."""
        order = make_order(store.id, delivery_status="entregue")
        db_session.add(order)
        db_session.commit()

        change = update_delivery_status(db_session, order.id, "em_preparacao")
        assert change.new_delivery_status == "em_preparacao"

    def test_can_finalize_order(self, db_session, store):
        order = make_order(store.id)
        db_session.add(order)
        db_session.commit()

        change = update_delivery_status(db_session, order.id, "entregue", status="finalizado")
        assert change.status == "finalizado"

    def test_rejects_unknown_status(self, db_session, store):
        order = make_order(store.id)
        db_session.add(order)
        db_session.commit()
        with pytest.raises(ValidationError):
            update_delivery_status(db_session, order.id, "extraviado")

    def test_unknown_order(self, db_session):
        with pytest.raises(NotFoundError):
            update_delivery_status(db_session, 42, "entregue")
