"""Worker RQ para envio das notificações de WhatsApp.

Os jobs enfileirados pelo `NotificationDispatcher` são as funções `notify_*`
de `xmenu.services.notifications`; cada uma abre a própria sessão do banco.
"""

import logging

from redis import Redis
from rq import Queue, Worker

from xmenu.config import settings

# Logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_worker(redis_conn: Redis | None = None) -> Worker:
    """Monta o worker da fila de notificações."""
    redis_conn = redis_conn or Redis.from_url(settings.redis_url)
    queues = [Queue(settings.queue_name, connection=redis_conn)]
    return Worker(queues, connection=redis_conn, name=f"worker-{settings.queue_name}")


def main():
    """Entrypoint para rodar o worker RQ."""
    logger.info(f"Iniciando worker RQ. Queue: {settings.queue_name}")
    worker = build_worker()
    worker.work(with_scheduler=True, logging_level=settings.log_level.upper())


if __name__ == "__main__":
    main()
