"""Tests for the order/item status lattice, cascade and derived order status."""

import pytest
from ordering.errors import ConflictError, ValidationError
from ordering.order.status import (
    ItemStatus,
    OrderStatus,
    assert_order_transition,
    can_transition_item,
    can_transition_order,
    cascade_item_status,
    derive_order_status,
    item_status_for,
    parse_order_status,
)


class TestParseOrderStatus:
    def test_known_value(self):
        assert parse_order_status("shipped") == OrderStatus.SHIPPED

    @pytest.mark.parametrize("value", ["teleported", "SHIPPED", "", None])
    def test_unknown_value_is_invalid_status(self, value):
        with pytest.raises(ValidationError) as exc:
            parse_order_status(value)
        assert exc.value.kind == "InvalidStatus"


class TestOrderTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.PENDING, OrderStatus.CONFIRMED),
            (OrderStatus.CONFIRMED, OrderStatus.PROCESSING),
            (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
            (OrderStatus.PENDING, OrderStatus.SHIPPED),
            (OrderStatus.PENDING, OrderStatus.CANCELLED),
            (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
            (OrderStatus.SHIPPED, OrderStatus.RETURNED),
            (OrderStatus.DELIVERED, OrderStatus.RETURNED),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition_order(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.SHIPPED, OrderStatus.CONFIRMED),
            (OrderStatus.DELIVERED, OrderStatus.SHIPPED),
            (OrderStatus.PENDING, OrderStatus.PENDING),
            (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
            (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
            (OrderStatus.PENDING, OrderStatus.RETURNED),
            (OrderStatus.CANCELLED, OrderStatus.CONFIRMED),
            (OrderStatus.RETURNED, OrderStatus.DELIVERED),
            (OrderStatus.CANCELLED, OrderStatus.RETURNED),
        ],
    )
    def test_rejected(self, current, target):
        assert not can_transition_order(current, target)

    def test_assert_raises_invalid_transition(self):
        with pytest.raises(ConflictError) as exc:
            assert_order_transition("shipped", "confirmed")
        assert exc.value.kind == "InvalidTransition"

    def test_cannot_cancel_once_an_item_shipped(self):
        with pytest.raises(ConflictError) as exc:
            assert_order_transition("processing", "cancelled", ["shipped", "pending"])
        assert exc.value.kind == "InvalidTransition"

    def test_cancel_allowed_when_no_item_shipped(self):
        assert_order_transition("processing", "cancelled", ["confirmed", "pending"])


class TestItemTransitions:
    def test_forward_moves(self):
        assert can_transition_item(ItemStatus.PENDING, ItemStatus.CONFIRMED)
        assert can_transition_item(ItemStatus.CONFIRMED, ItemStatus.DELIVERED)

    def test_backward_moves_rejected(self):
        assert not can_transition_item(ItemStatus.DELIVERED, ItemStatus.SHIPPED)

    def test_cancel_only_before_shipment(self):
        assert can_transition_item(ItemStatus.CONFIRMED, ItemStatus.CANCELLED)
        assert not can_transition_item(ItemStatus.SHIPPED, ItemStatus.CANCELLED)

    def test_return_only_after_shipment(self):
        assert can_transition_item(ItemStatus.DELIVERED, ItemStatus.RETURNED)
        assert not can_transition_item(ItemStatus.PENDING, ItemStatus.RETURNED)

    def test_terminal_items_never_move(self):
        assert not can_transition_item(ItemStatus.CANCELLED, ItemStatus.CONFIRMED)
        assert not can_transition_item(ItemStatus.RETURNED, ItemStatus.DELIVERED)

    def test_processing_has_no_item_counterpart(self):
        with pytest.raises(ConflictError):
            item_status_for(OrderStatus.PROCESSING)


class TestCascade:
    def test_confirmed_moves_pending_items(self):
        assert cascade_item_status("pending", "confirmed") == ItemStatus.CONFIRMED

    def test_processing_does_not_cascade(self):
        assert cascade_item_status("pending", "processing") is None

    def test_shipped_does_not_move_items_already_delivered(self):
        assert cascade_item_status("delivered", "shipped") is None

    def test_cancelled_moves_unshipped_items(self):
        assert cascade_item_status("confirmed", "cancelled") == ItemStatus.CANCELLED

    def test_terminal_items_are_left_alone(self):
        assert cascade_item_status("cancelled", "delivered") is None


class TestDeriveOrderStatus:
    def test_least_advanced_live_item_wins(self):
        assert derive_order_status(["shipped", "pending"]) == OrderStatus.PENDING
        assert derive_order_status(["shipped", "delivered"]) == OrderStatus.SHIPPED

    def test_terminal_items_are_ignored_while_others_live(self):
        assert derive_order_status(["cancelled", "delivered"]) == OrderStatus.DELIVERED

    def test_all_cancelled(self):
        assert derive_order_status(["cancelled", "cancelled"]) == OrderStatus.CANCELLED

    def test_any_returned_when_all_terminal(self):
        assert derive_order_status(["returned", "cancelled"]) == OrderStatus.RETURNED
