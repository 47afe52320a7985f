"""XMenu API - Aplicação principal FastAPI."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from redis import Redis
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from .config import settings
from .database import Base, engine
from .errors import XMenuError
from .routers import notifications_router, orders_router, payments_router, subscriptions_router
from .routers.payments import limiter
from .schemas import HealthResponse
from .services.auth import require_bearer

# === Logging ===

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

API_PREFIX = "/functions/v1"


# === Lifespan ===


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Gerencia o ciclo de vida da aplicação."""
    logger.info("Iniciando XMenu API...")

    # Startup: criar tabelas (em produção, usar Alembic)
    if not settings.is_production:
        logger.info(f"Ambiente {settings.env}: criando tabelas...")
        Base.metadata.create_all(bind=engine)

    logger.info("API iniciada com sucesso!")
    yield

    logger.info("Encerrando XMenu API...")


# === App ===

app = FastAPI(
    title="XMenu API",
    description="Pagamentos PIX, pedidos, assinaturas de planos e notificações do XMenu",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
)

# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# === Middleware ===

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


@app.middleware("http")
async def unhandled_exception_middleware(request: Request, call_next):
    """
    Converte exceções não tratadas em 500 `{error}`.

    Precisa ser registrado antes do CORSMiddleware (fica por dentro dele).
    """
    try:
        return await call_next(request)
    except Exception as exc:
        logger.exception(f"Erro não tratado: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Erro interno do servidor"
                if settings.is_production
                else str(exc)
            },
        )


# Chamado direto do navegador (vitrine pública e painel do lojista)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


# === Exception Handlers ===


@app.exception_handler(XMenuError)
async def xmenu_exception_handler(request: Request, exc: XMenuError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning(f"{request.url.path}: {exc.message}")
    else:
        logger.info(f"{request.url.path}: {exc.status_code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(f"{request.url.path}: payload inválido {exc.errors()}")
    return JSONResponse(status_code=400, content={"error": "Dados inválidos"})


# === Routers ===

authenticated = [Depends(require_bearer)]

app.include_router(payments_router, prefix=API_PREFIX, tags=["payments"], dependencies=authenticated)
app.include_router(notifications_router, prefix=API_PREFIX, tags=["notifications"], dependencies=authenticated)
app.include_router(orders_router, prefix=API_PREFIX, tags=["orders"], dependencies=authenticated)
app.include_router(subscriptions_router, prefix=API_PREFIX, tags=["subscriptions"], dependencies=authenticated)


@app.options(f"{API_PREFIX}/{{path:path}}", include_in_schema=False)
def cors_options(path: str) -> Response:
    """Responde OPTIONS sem `Access-Control-Request-Method` (não é preflight)."""
    return Response(status_code=200, headers=CORS_HEADERS)


# === Health Check ===


@app.get("/health", response_model=HealthResponse, tags=["health"])
def health_check() -> HealthResponse:
    """Verifica a saúde da aplicação e suas dependências."""
    # DB check
    db_ok = False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        db_ok = True
    except Exception as e:
        logger.warning(f"Health check DB falhou: {e}")

    # Redis check
    redis_ok = False
    try:
        r = Redis.from_url(settings.redis_url)
        r.ping()
        redis_ok = True
    except Exception as e:
        logger.warning(f"Health check Redis falhou: {e}")

    if db_ok and redis_ok:
        status = "ok"
    elif db_ok or redis_ok:
        status = "degraded"
    else:
        status = "down"

    return HealthResponse(status=status, db=db_ok, redis=redis_ok)


@app.get("/", tags=["root"])
def root() -> dict:
    """Endpoint raiz com informações básicas da API."""
    return {
        "app": "XMenu API",
        "version": "1.0.0",
        "docs": "/docs" if settings.is_development else None,
        "health": "/health",
    }
