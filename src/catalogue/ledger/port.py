"""Catalogue collaborator ports: stock ledger and product directory.

The checkout engine never touches stock counts or product records directly.
It goes through these two interfaces, which are owned by the catalogue
service. Adapters must make ``reserve`` a single conditional operation
(check status, check quantity, decrement) and must make both ``reserve``
and ``release`` idempotent per reservation key.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class ProductStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SOLD_OUT = "sold_out"
    DRAFT = "draft"


class ReservationStatus(Enum):
    OK = "ok"
    INSUFFICIENT = "insufficient"
    UNAVAILABLE = "unavailable"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class ProductSnapshot:
    """Point-in-time view of a product as the directory reports it."""

    product_id: str
    seller_id: str
    price: float
    status: str = ProductStatus.ACTIVE.value
    shipping_cost: float = 0.0
    name: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE.value


@dataclass(frozen=True)
class ReservationResult:
    """Outcome of a reserve call."""

    status: ReservationStatus
    product_id: str
    quantity: int
    key: str

    @property
    def ok(self) -> bool:
        return self.status == ReservationStatus.OK


class ProductDirectory(ABC):
    """Read-only product lookup."""

    @abstractmethod
    def get(self, product_id: str) -> ProductSnapshot | None:
        """Return the product, or None when it does not exist."""
        ...


class StockLedger(ABC):
    """Per-product available quantity with atomic reserve/release."""

    @abstractmethod
    def reserve(self, product_id: str, quantity: int, key: str) -> ReservationResult:
        """Decrement stock by ``quantity`` iff the product is active and has enough.

        Repeating a reserve with a key that already holds a reservation
        returns OK without decrementing again.
        """
        ...

    @abstractmethod
    def release(self, product_id: str, quantity: int, key: str) -> bool:
        """Return the stock held under ``key``.

        Returns True when stock was incremented. Returns False, changing
        nothing, when the key was already released or never reserved.
        """
        ...

    @abstractmethod
    def available(self, product_id: str) -> int:
        """Current available quantity (0 for unknown products)."""
        ...
