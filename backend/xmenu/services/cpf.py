"""Validação de CPF (dígitos verificadores módulo 11)."""

import re

_NON_DIGITS = re.compile(r"\D")


def only_digits(value: str | None) -> str:
    """Remove tudo que não for dígito."""
    return _NON_DIGITS.sub("", value or "")


def _check_digit(digits: str, first_weight: int) -> int:
    total = sum(int(d) * w for d, w in zip(digits, range(first_weight, 1, -1)))
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def validate_cpf(value: str | None) -> bool:
    """
    Valida um CPF.

    Aceita o número com ou sem máscara. Rejeita tamanho diferente de 11 e
    sequências de um único dígito repetido (ex: 111.111.111-11).
    """
    cpf = only_digits(value)
    if len(cpf) != 11 or len(set(cpf)) == 1:
        return False

    first = _check_digit(cpf[:9], 10)
    if first != int(cpf[9]):
        return False

    second = _check_digit(cpf[:10], 11)
    return second == int(cpf[10])


def mask_cpf(value: str | None) -> str:
    """Mascara o CPF para log: 123***45."""
    cpf = value or ""
    if len(cpf) < 5:
        return "***"
    return f"{cpf[:3]}***{cpf[-2:]}"
