"""
Celery worker entry point
Consumes the notifications queue (WhatsApp booking confirmations)
"""
import logging
from celery.signals import worker_ready, worker_shutdown

from slotbook.config.celery_config import celery_app
from slotbook.config.settings import get_settings
from slotbook.utils.my_logging import setup_logging

setup_logging()
logger = logging.getLogger(__name__)
settings = get_settings()


@worker_ready.connect
def on_worker_ready(sender=None, **kwargs):
    booking_tasks = sorted(name for name in celery_app.tasks if name.startswith("slotbook."))
    logger.info(f"Notification worker ready ({settings.ENVIRONMENT}), tasks: {booking_tasks}")
    if not settings.WHATSAPP_ENABLED:
        logger.warning("WHATSAPP_ENABLED is false; confirmations will be skipped unless a tenant enables them")


@worker_shutdown.connect
def on_worker_shutdown(sender=None, **kwargs):
    logger.info("Notification worker stopped")


if __name__ == "__main__":
    celery_app.worker_main([
        "worker",
        "--loglevel=info",
        "--queues=notifications",
        "--concurrency=2",
    ])
