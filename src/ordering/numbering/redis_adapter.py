"""Redis per-day counters using INCR, which is atomic across processes."""

import redis
import structlog
from redis.exceptions import ConnectionError, TimeoutError

from ordering.errors import TransientStoreError
from ordering.numbering.port import OrderSequence

logger = structlog.get_logger(__name__)

# A day's counter only needs to survive that day; keep a margin for clock skew
COUNTER_TTL_SECONDS = 48 * 3600


class RedisOrderSequence(OrderSequence):
    def __init__(self, client: redis.Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisOrderSequence":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def next_value(self, scope):
        key = f"order-seq:{scope}"
        try:
            pipe = self.client.pipeline(transaction=True)
            pipe.incr(key)
            pipe.expire(key, COUNTER_TTL_SECONDS)
            value, _ = pipe.execute()
        except (ConnectionError, TimeoutError) as exc:
            logger.warning("order_sequence_unavailable", scope=scope, error=str(exc))
            raise TransientStoreError("StoreUnavailable", f"Order sequence unavailable: {exc}") from exc
        return int(value)
