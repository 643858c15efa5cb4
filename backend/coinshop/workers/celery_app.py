"""
CoinShop - Celery Application

Celery configuration for worker deployments. The API process runs the same
auction sweep in-process via APScheduler; run one or the other.
"""

from celery import Celery
from celery.schedules import crontab

from coinshop.core.config import settings

# Create Celery app
celery_app = Celery(
    "coinshop",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["coinshop.workers.tasks"],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    # Result backend settings
    result_expires=3600,  # Results expire after 1 hour

    task_routes={
        "coinshop.workers.tasks.close_expired_auctions": {"queue": "auctions"},
        "coinshop.workers.tasks.refresh_metal_prices": {"queue": "default"},
        "coinshop.workers.tasks.expire_stale_offers": {"queue": "default"},
    },

    # Beat schedule for periodic tasks
    beat_schedule={
        "close-expired-auctions-every-minute": {
            "task": "coinshop.workers.tasks.close_expired_auctions",
            "schedule": crontab(),  # every minute
            "options": {"queue": "auctions"},
        },
        "refresh-metal-prices-every-5-minutes": {
            "task": "coinshop.workers.tasks.refresh_metal_prices",
            "schedule": crontab(minute="*/5"),
            "options": {"queue": "default"},
        },
        "expire-stale-offers-every-5-minutes": {
            "task": "coinshop.workers.tasks.expire_stale_offers",
            "schedule": crontab(minute="*/5"),
            "options": {"queue": "default"},
        },
    },
)


if __name__ == "__main__":
    celery_app.start()
