"""Order numbering factory.

get_order_numbers() builds the service over the sequence adapter chosen by
ORDER_SEQUENCE_ADAPTER ("memory" by default, or "redis").
"""

from ordering import config
from ordering.numbering.memory_adapter import InMemoryOrderSequence
from ordering.numbering.service import OrderNumberService

_current_service: OrderNumberService | None = None


def get_order_numbers() -> OrderNumberService:
    global _current_service
    if _current_service is None:
        adapter = config.sequence_adapter()
        if adapter == "memory":
            sequence = InMemoryOrderSequence()
        elif adapter == "redis":
            from ordering.numbering.redis_adapter import RedisOrderSequence

            sequence = RedisOrderSequence.from_url(config.redis_url())
        else:
            raise ValueError(f"Unknown order sequence adapter: {adapter}")
        _current_service = OrderNumberService(sequence)
    return _current_service


def set_order_numbers(service: OrderNumberService) -> None:
    global _current_service
    _current_service = service


def reset_order_numbers() -> None:
    global _current_service
    _current_service = None
