"""Environment-driven settings for the ordering engine.

Values are read on every call so tests can flip them with ``monkeypatch.setenv``.
"""

import os


def environment() -> str:
    return (os.getenv("ENV") or os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower()


def order_number_prefix() -> str:
    return os.getenv("ORDER_NUMBER_PREFIX", "EF")


def redis_url() -> str:
    return os.getenv("REDIS_URL", "redis://localhost:6379/0")


def sequence_adapter() -> str:
    return os.getenv("ORDER_SEQUENCE_ADAPTER", "memory")


def stock_ledger_adapter() -> str:
    return os.getenv("STOCK_LEDGER_ADAPTER", "memory")


def checkout_deadline_seconds() -> float:
    return float(os.getenv("CHECKOUT_DEADLINE_SECONDS", "30"))


def checkout_max_retries() -> int:
    return int(os.getenv("CHECKOUT_MAX_RETRIES", "3"))


def checkout_retry_base_delay() -> float:
    return float(os.getenv("CHECKOUT_RETRY_BASE_DELAY", "0.05"))


def payment_webhook_secret() -> str:
    return os.getenv("PAYMENT_WEBHOOK_SECRET", "")
