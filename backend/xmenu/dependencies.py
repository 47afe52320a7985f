"""Dependencies compartilhadas pelos routers (substituíveis nos testes)."""

from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from .config import settings
from .database import DbSession
from .errors import AuthError, ForbiddenError
from .models import Profile
from .services.auth import require_bearer
from .services.mercadopago import MercadoPagoClient
from .services.notifications import NotificationDispatcher
from .services.whatsapp import WhatsAppClient


def get_client_factory():
    """Fábrica do cliente do gateway a partir da API key do lojista."""
    return MercadoPagoClient


def get_dispatcher(db: DbSession) -> NotificationDispatcher:
    return NotificationDispatcher(db=db)


def get_whatsapp_sender() -> WhatsAppClient:
    return WhatsAppClient()


def _caller(db: Session, payload: Optional[dict]) -> Optional[Profile]:
    email = (payload or {}).get("email")
    return db.query(Profile).filter(Profile.email == email).first() if email else None


def require_admin(db: DbSession, payload: Optional[dict] = Depends(require_bearer)) -> Optional[Profile]:
    """Com JWT verificado, o email do token precisa ser de um perfil admin."""
    if not settings.auth_jwt_secret:
        return None
    admin = _caller(db, payload)
    if not admin or not admin.is_admin:
        raise AuthError("Acesso restrito ao administrador")
    return admin


def ensure_owner(db: Session, payload: Optional[dict], user_id: int) -> None:
    """
    Com JWT verificado, só o próprio usuário (ou um admin) mexe na assinatura dele.

    O dono é reconhecido pelo email do token ou pelo `sub` igual ao id do perfil.
    """
    if not settings.auth_jwt_secret:
        return
    caller = _caller(db, payload)
    if caller is None and str((payload or {}).get("sub", "")).isdigit():
        caller = db.get(Profile, int(payload["sub"]))
    if caller is None:
        raise ForbiddenError("Usuário do token não encontrado")
    if caller.id != user_id and not caller.is_admin:
        raise ForbiddenError("Acesso negado à assinatura de outro usuário")
