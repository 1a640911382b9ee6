"""Redis-backed catalogue: product hashes plus Lua check-and-decrement."""

import redis
import structlog
from redis.exceptions import ConnectionError, TimeoutError

from catalogue.ledger import scripts
from catalogue.ledger.port import (
    ProductDirectory,
    ProductSnapshot,
    ReservationResult,
    ReservationStatus,
    StockLedger,
)
from ordering.errors import TransientStoreError

logger = structlog.get_logger(__name__)

# Released markers only need to outlive retries of the release itself
RELEASED_MARKER_TTL_SECONDS = 30 * 24 * 3600

_RESULT_CODES = {
    scripts.RESERVED: ReservationStatus.OK,
    scripts.INSUFFICIENT: ReservationStatus.INSUFFICIENT,
    scripts.UNAVAILABLE: ReservationStatus.UNAVAILABLE,
    scripts.NOT_FOUND: ReservationStatus.NOT_FOUND,
}


def _product_key(product_id) -> str:
    return f"product:{product_id}"


def _reservation_key(key) -> str:
    return f"reservation:{key}"


class RedisCatalogue(ProductDirectory, StockLedger):
    def __init__(self, client: redis.Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCatalogue":
        pool = redis.ConnectionPool.from_url(url, decode_responses=True, socket_timeout=5, retry_on_timeout=True)
        return cls(redis.Redis(connection_pool=pool))

    def _call(self, operation, func):
        try:
            return func()
        except (ConnectionError, TimeoutError) as exc:
            logger.warning("catalogue_store_unavailable", operation=operation, error=str(exc))
            raise TransientStoreError("StoreUnavailable", f"Stock ledger {operation} failed: {exc}") from exc

    def add_product(self, product: ProductSnapshot, stock: int) -> None:
        self._call(
            "add_product",
            lambda: self.client.hset(
                _product_key(product.product_id),
                mapping={
                    "stock": int(stock),
                    "status": product.status,
                    "price": product.price,
                    "seller_id": product.seller_id,
                    "shipping_cost": product.shipping_cost,
                    "name": product.name,
                },
            ),
        )

    def get(self, product_id):
        data = self._call("get", lambda: self.client.hgetall(_product_key(product_id)))
        if not data:
            return None
        return ProductSnapshot(
            product_id=str(product_id),
            seller_id=data["seller_id"],
            price=float(data["price"]),
            status=data["status"],
            shipping_cost=float(data.get("shipping_cost") or 0),
            name=data.get("name", ""),
        )

    def available(self, product_id):
        value = self._call("available", lambda: self.client.hget(_product_key(product_id), "stock"))
        return int(value) if value is not None else 0

    def reserve(self, product_id, quantity, key):
        code = self._call(
            "reserve",
            lambda: self.client.eval(
                scripts.RESERVE_SCRIPT,
                2,
                _product_key(product_id),
                _reservation_key(key),
                quantity,
            ),
        )
        status = _RESULT_CODES[int(code)]
        if status != ReservationStatus.OK:
            logger.info("stock_reservation_refused", product_id=str(product_id), quantity=quantity, reason=status.value)
        return ReservationResult(status, str(product_id), quantity, key)

    def release(self, product_id, quantity, key):
        code = self._call(
            "release",
            lambda: self.client.eval(
                scripts.RELEASE_SCRIPT,
                2,
                _product_key(product_id),
                _reservation_key(key),
                RELEASED_MARKER_TTL_SECONDS,
            ),
        )
        return int(code) == 1
