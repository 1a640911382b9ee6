"""Catalogue adapter factory.

Provides get_catalogue() / set_catalogue() to swap implementations:
- InMemoryCatalogue for development and testing
- RedisCatalogue when STOCK_LEDGER_ADAPTER=redis
"""

from catalogue.ledger.memory_adapter import InMemoryCatalogue
from catalogue.ledger.port import ProductDirectory, StockLedger
from ordering import config

_current_catalogue = None


def get_catalogue():
    """Return the active catalogue adapter (product directory and stock ledger)."""
    global _current_catalogue
    if _current_catalogue is None:
        adapter = config.stock_ledger_adapter()
        if adapter == "memory":
            _current_catalogue = InMemoryCatalogue()
        elif adapter == "redis":
            from catalogue.ledger.redis_adapter import RedisCatalogue

            _current_catalogue = RedisCatalogue.from_url(config.redis_url())
        else:
            raise ValueError(f"Unknown stock ledger adapter: {adapter}")
    return _current_catalogue


def get_stock_ledger() -> StockLedger:
    return get_catalogue()


def get_product_directory() -> ProductDirectory:
    return get_catalogue()


def set_catalogue(catalogue) -> None:
    """Override the active catalogue (useful for tests)."""
    global _current_catalogue
    _current_catalogue = catalogue


def reset_catalogue() -> None:
    global _current_catalogue
    _current_catalogue = None
