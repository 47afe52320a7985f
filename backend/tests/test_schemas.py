"""Testes para schemas Pydantic."""

import pytest
from pydantic import ValidationError

from xmenu.schemas import (
    ConfirmPlanPaymentOut,
    ConfirmPlanPaymentRequest,
    CreatePaymentRequest,
    GatewayPayment,
    OrderData,
    StatusOut,
    StatusRequest,
    SubscriptionTransitionRequest,
)


class TestCreatePaymentRequest:
    def test_camel_case_payload(self):
        req = CreatePaymentRequest.model_validate(
            {
                "amount": 49.9,
                "customerData": {"name": "João", "email": "a@b.com", "cpf": "11144477735"},
                "storeApiKey": "TEST-token",
                "period_type": "monthly",
            }
        )
        assert req.customer_data.email == "a@b.com"
        assert req.store_api_key == "TEST-token"
        assert req.period_type == "monthly"

    def test_missing_customer_data_defaults_empty(self):
        req = CreatePaymentRequest.model_validate({"amount": 10})
        assert req.customer_data.name is None


class TestStatusRequest:
    def test_numeric_ids_become_strings(self):
        """O gateway devolve ids numéricos; o frontend repassa como vier."""
        req = StatusRequest.model_validate({"paymentId": 123456789, "storeId": 7})
        assert req.payment_id == "123456789"
        assert req.store_id == "7"

    def test_order_data(self):
        req = StatusRequest.model_validate(
            {
                "paymentId": "1",
                "orderData": {
                    "customerName": "João",
                    "products": [{"id": 3, "name": "Pizza", "price": 49.9, "quantity": 2}],
                    "totalAmount": 99.8,
                },
            }
        )
        assert isinstance(req.order_data, OrderData)
        assert req.order_data.products[0].quantity == 2

    def test_rejects_non_positive_quantity(self):
        with pytest.raises(ValidationError):
            OrderData.model_validate({"products": [{"id": 3, "quantity": 0}]})


class TestGatewayPayment:
    def test_qr_code(self):
        payment = GatewayPayment.model_validate(
            {
                "id": 1001,
                "status": "pending",
                "point_of_interaction": {"transaction_data": {"qr_code": "000201"}},
                "date_created": "2026-10-19T10:00:00.000-04:00",
            }
        )
        assert payment.id == "1001"
        assert payment.qr_code == "000201"
        assert payment.is_approved is False

    def test_missing_id(self):
        with pytest.raises(ValidationError):
            GatewayPayment.model_validate({"status": "approved"})


class TestResponses:
    def test_status_out_alias(self):
        out = StatusOut(status="approved", status_detail="accredited", order_id=5)
        assert out.model_dump(by_alias=True) == {
            "status": "approved",
            "status_detail": "accredited",
            "orderId": 5,
        }

    def test_transition_request_rejects_unknown_period(self):
        with pytest.raises(ValidationError):
            SubscriptionTransitionRequest.model_validate({"userId": 1, "planId": 2, "periodType": "weekly"})

    def test_confirm_out_without_subscription(self):
        """Pagamento ainda pendente: sem assinatura na resposta."""
        assert ConfirmPlanPaymentOut(status="pending").model_dump() == {"status": "pending", "subscription": None}

    def test_confirm_request_has_no_api_key(self):
        req = ConfirmPlanPaymentRequest.model_validate(
            {"userId": 1, "planId": 2, "paymentId": 7001, "storeApiKey": "TEST-1234"}
        )
        assert req.payment_id == "7001"
        assert not hasattr(req, "store_api_key")
