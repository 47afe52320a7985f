"""Geração de chaves de idempotência para o gateway de pagamento.

Contrato com quem chama: cada NOVA tentativa de checkout usa uma chave nova;
um retry da mesma tentativa, antes de qualquer resposta do gateway, deve
reaproveitar a chave para não cobrar duas vezes.
"""

import secrets
import time

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(number: int) -> str:
    if number < 0:
        raise ValueError("number must be non-negative")
    if number == 0:
        return "0"
    out = []
    while number:
        number, rem = divmod(number, 36)
        out.append(_ALPHABET[rem])
    return "".join(reversed(out))


def generate_idempotency_key() -> str:
    """Fragmento aleatório em base 36 + timestamp (ms) em base 36."""
    random_part = to_base36(secrets.randbits(52))
    time_part = to_base36(time.time_ns() // 1_000_000)
    return random_part + time_part


def generate_numeric_payment_id() -> str:
    """Id numérico de 11 dígitos para pagamentos sintéticos (ativação manual pelo admin)."""
    return str(10_000_000_000 + secrets.randbelow(90_000_000_000))
