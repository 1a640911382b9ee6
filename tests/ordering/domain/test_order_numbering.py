"""Tests for order number formatting and the sequence adapters."""

import threading
from datetime import UTC, datetime
from unittest import mock

import pytest
from ordering.errors import ConflictError, TransientStoreError
from ordering.numbering.memory_adapter import InMemoryOrderSequence
from ordering.numbering.redis_adapter import COUNTER_TTL_SECONDS, RedisOrderSequence
from ordering.numbering.service import OrderNumberService
from redis.exceptions import ConnectionError as RedisConnectionError


def _service(day=datetime(2026, 3, 14, tzinfo=UTC), prefix="EF", sequence=None):
    return OrderNumberService(sequence or InMemoryOrderSequence(), prefix=prefix, clock=lambda: day)


class TestOrderNumberFormat:
    def test_first_number_of_the_day(self):
        assert _service().next_number() == "EF2603140001"

    def test_numbers_increase(self):
        service = _service()
        assert [service.next_number() for _ in range(3)] == [
            "EF2603140001",
            "EF2603140002",
            "EF2603140003",
        ]

    def test_sequence_restarts_each_day(self):
        sequence = InMemoryOrderSequence()
        _service(sequence=sequence).next_number()
        _service(sequence=sequence).next_number()

        next_day = _service(day=datetime(2026, 3, 15, tzinfo=UTC), sequence=sequence)
        assert next_day.next_number() == "EF2603150001"

    def test_prefix_from_environment(self, monkeypatch):
        monkeypatch.setenv("ORDER_NUMBER_PREFIX", "MK")
        service = OrderNumberService(InMemoryOrderSequence(), clock=lambda: datetime(2026, 1, 2, tzinfo=UTC))
        assert service.next_number() == "MK2601020001"

    def test_matches_pattern(self):
        service = _service()
        assert service.pattern().match(service.next_number())
        assert not service.pattern().match("XX2603140001")

    def test_exhausted_day_is_conflict(self):
        sequence = mock.Mock()
        sequence.next_value.return_value = 10000
        with pytest.raises(ConflictError) as exc:
            _service(sequence=sequence).next_number()
        assert exc.value.kind == "SequenceExhausted"


class TestConcurrentAllocation:
    def test_hundred_concurrent_numbers_are_unique(self):
        service = _service()
        numbers = []
        lock = threading.Lock()

        def allocate():
            number = service.next_number()
            with lock:
                numbers.append(number)

        threads = [threading.Thread(target=allocate) for _ in range(100)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(numbers) == 100
        assert len(set(numbers)) == 100
        assert all(service.pattern().match(n) for n in numbers)


class TestRedisOrderSequence:
    def test_increments_scoped_counter_with_ttl(self):
        client = mock.Mock()
        pipe = client.pipeline.return_value
        pipe.execute.return_value = [7, True]

        assert RedisOrderSequence(client).next_value("EF:260314") == 7
        pipe.incr.assert_called_once_with("order-seq:EF:260314")
        pipe.expire.assert_called_once_with("order-seq:EF:260314", COUNTER_TTL_SECONDS)

    def test_connection_failure_is_transient(self):
        client = mock.Mock()
        client.pipeline.return_value.execute.side_effect = RedisConnectionError("down")

        with pytest.raises(TransientStoreError) as exc:
            RedisOrderSequence(client).next_value("EF:260314")
        assert exc.value.kind == "StoreUnavailable"
