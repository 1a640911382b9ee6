"""In-memory catalogue for development and testing.

Implements both the product directory and the stock ledger. A single lock
guards every read-check-write, which is what makes ``reserve`` atomic here.
Transient store failures can be injected to exercise retry paths, in the
same spirit as the fake payment gateway's ``configure``.
"""

import threading
from dataclasses import dataclass, replace

import structlog

from catalogue.ledger.port import (
    ProductDirectory,
    ProductSnapshot,
    ProductStatus,
    ReservationResult,
    ReservationStatus,
    StockLedger,
)
from ordering.errors import TransientStoreError

logger = structlog.get_logger(__name__)


@dataclass
class _ReservationRecord:
    product_id: str
    quantity: int
    released: bool = False


class InMemoryCatalogue(ProductDirectory, StockLedger):
    """Thread-safe in-memory products, stock counts and reservation keys."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._products: dict[str, ProductSnapshot] = {}
        self._stock: dict[str, int] = {}
        self._reservations: dict[str, _ReservationRecord] = {}
        self._failures: dict[str, int] = {"reserve": 0, "release": 0}
        self.calls: list[dict] = []

    # -------------------------------------------------------------------
    # Seeding and test controls
    # -------------------------------------------------------------------
    def add_product(
        self,
        product_id,
        price,
        stock,
        seller_id="seller-1",
        status=ProductStatus.ACTIVE.value,
        shipping_cost=0.0,
        name="",
    ) -> ProductSnapshot:
        product = ProductSnapshot(
            product_id=str(product_id),
            seller_id=str(seller_id),
            price=float(price),
            status=status,
            shipping_cost=float(shipping_cost),
            name=name or str(product_id),
        )
        with self._lock:
            self._products[product.product_id] = product
            self._stock[product.product_id] = int(stock)
        return product

    def set_status(self, product_id, status) -> None:
        with self._lock:
            self._products[str(product_id)] = replace(self._products[str(product_id)], status=status)

    def set_price(self, product_id, price) -> None:
        with self._lock:
            self._products[str(product_id)] = replace(self._products[str(product_id)], price=float(price))

    def fail_next(self, operation: str, times: int = 1) -> None:
        """Make the next ``times`` calls to ``operation`` raise TransientStoreError."""
        self._failures[operation] = times

    def reservation_keys(self, include_released=False) -> list[str]:
        with self._lock:
            return [k for k, r in self._reservations.items() if include_released or not r.released]

    def _maybe_fail(self, operation: str) -> None:
        if self._failures.get(operation, 0) > 0:
            self._failures[operation] -= 1
            raise TransientStoreError("StoreUnavailable", f"Simulated {operation} failure")

    # -------------------------------------------------------------------
    # ProductDirectory
    # -------------------------------------------------------------------
    def get(self, product_id):
        with self._lock:
            return self._products.get(str(product_id))

    # -------------------------------------------------------------------
    # StockLedger
    # -------------------------------------------------------------------
    def available(self, product_id):
        with self._lock:
            return self._stock.get(str(product_id), 0)

    def reserve(self, product_id, quantity, key):
        product_id = str(product_id)
        self.calls.append({"method": "reserve", "product_id": product_id, "quantity": quantity, "key": key})
        with self._lock:
            self._maybe_fail("reserve")

            existing = self._reservations.get(key)
            if existing is not None and not existing.released:
                return ReservationResult(ReservationStatus.OK, product_id, quantity, key)

            product = self._products.get(product_id)
            if product is None:
                status = ReservationStatus.NOT_FOUND
            elif not product.is_active:
                status = ReservationStatus.UNAVAILABLE
            elif self._stock[product_id] < quantity:
                status = ReservationStatus.INSUFFICIENT
            else:
                self._stock[product_id] -= quantity
                self._reservations[key] = _ReservationRecord(product_id=product_id, quantity=quantity)
                status = ReservationStatus.OK

        if status != ReservationStatus.OK:
            logger.info("stock_reservation_refused", product_id=product_id, quantity=quantity, reason=status.value)
        return ReservationResult(status, product_id, quantity, key)

    def release(self, product_id, quantity, key):
        product_id = str(product_id)
        self.calls.append({"method": "release", "product_id": product_id, "quantity": quantity, "key": key})
        with self._lock:
            self._maybe_fail("release")

            record = self._reservations.get(key)
            if record is None or record.released:
                return False

            self._stock[record.product_id] += record.quantity
            record.released = True
        return True
