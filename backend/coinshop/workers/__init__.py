"""CoinShop Workers - Celery app and periodic tasks."""
