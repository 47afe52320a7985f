"""Autenticação em nível de plataforma (header Bearer)."""

from typing import Optional

import jwt
from fastapi import Request

from ..config import settings
from ..errors import AuthError


def decode_token(token: str, secret: str, algorithm: str) -> dict:
    """Decodifica e valida o JWT da plataforma."""
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"verify_aud": False},
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expirado")
    except jwt.InvalidTokenError:
        raise AuthError("Token inválido")


def require_bearer(request: Request) -> Optional[dict]:
    """
    Dependency: exige `Authorization: Bearer <token>`.

    Com `AUTH_JWT_SECRET` configurado o token é verificado e o payload devolvido;
    sem ele, basta o header estar presente (a plataforma valida antes).
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise AuthError()

    token = auth_header.split(" ", 1)[1].strip()
    if not token:
        raise AuthError()

    if not settings.auth_jwt_secret:
        return None
    return decode_token(token, settings.auth_jwt_secret, settings.auth_jwt_algorithm)
