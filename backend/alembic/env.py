"""Ambiente do Alembic para o banco do XMenu.

A URL vem de `sqlalchemy.url` quando informada (testes, `alembic -x`), senão
de `DATABASE_URL` via `xmenu.config`.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from xmenu import models  # noqa: F401  (registra as tabelas em Base.metadata)
from xmenu.config import settings
from xmenu.database import Base, _engine_options

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def database_url() -> str:
    return (
        context.get_x_argument(as_dictionary=True).get("url")
        or config.get_main_option("sqlalchemy.url")
        or settings.database_url
    )


def configure_options() -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "compare_server_default": True,
        "render_as_batch": database_url().startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Gera o SQL das migrações sem conectar no banco."""
    context.configure(
        url=database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **configure_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = database_url()
    # Sem pool: a migração abre uma conexão e sai
    connect_args = _engine_options(url).get("connect_args", {})
    engine = create_engine(url, poolclass=pool.NullPool, connect_args=connect_args)

    with engine.connect() as connection:
        context.configure(connection=connection, **configure_options())
        with context.begin_transaction():
            context.run_migrations()
    engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
