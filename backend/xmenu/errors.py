"""Taxonomia de erros do domínio de pagamentos.

Todas as mensagens são exibíveis diretamente ao usuário (português); detalhes
técnicos ficam apenas no log do servidor.
"""

from __future__ import annotations


class XMenuError(Exception):
    """Erro base: carrega mensagem, código opcional e status HTTP."""

    status_code: int = 400
    code: str | None = None
    default_message: str = "Erro ao processar a requisição"

    def __init__(self, message: str | None = None, *, code: str | None = None) -> None:
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body: dict = {"error": self.message}
        if self.code:
            body["code"] = self.code
        return body


class ValidationError(XMenuError):
    default_message = "Dados inválidos"


class InvalidCPF(ValidationError):
    code = "INVALID_CPF"
    default_message = "CPF inválido"


class AuthError(XMenuError):
    status_code = 401
    default_message = "Cabeçalho de autorização ausente"


class ForbiddenError(XMenuError):
    status_code = 403
    default_message = "Acesso negado"


class NotFoundError(XMenuError):
    status_code = 404
    default_message = "Registro não encontrado"


class ProductNotFound(NotFoundError):
    default_message = "Produto não encontrado"


class PaymentGatewayError(XMenuError):
    """O gateway recusou a requisição; a mensagem dele é repassada."""

    code = "PAYMENT_ERROR"
    default_message = "Erro ao gerar PIX"


class InvalidPaymentResponse(PaymentGatewayError):
    """Gateway respondeu 2xx com um payload inutilizável."""

    default_message = "Resposta de pagamento inválida"


class GatewayUnavailable(XMenuError):
    """Falha de rede com o gateway. Transitória: o cliente tenta de novo no próximo poll."""

    status_code = 503
    default_message = "Serviço de pagamento indisponível, tente novamente"


class InsufficientStockError(XMenuError):
    status_code = 409
    code = "INSUFFICIENT_STOCK"
    default_message = "Estoque insuficiente"


class SubscriptionInvariantError(XMenuError):
    status_code = 409
    default_message = "Mais de uma assinatura ativa para o usuário"


class NotificationError(XMenuError):
    default_message = "Erro ao enviar notificação"
