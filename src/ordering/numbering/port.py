"""Order sequence port: an atomic per-day counter."""

from abc import ABC, abstractmethod


class OrderSequence(ABC):
    @abstractmethod
    def next_value(self, scope: str) -> int:
        """Atomically increment the counter for ``scope`` and return the new value (1-based)."""
        ...
