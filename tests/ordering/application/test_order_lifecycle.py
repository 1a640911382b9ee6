"""Application tests for seller status updates, buyer cancellation and returns."""

from datetime import UTC, datetime

import pytest
from ordering.errors import AuthorizationError, ConflictError, NotFoundError, TransientStoreError, ValidationError
from ordering.order.cancellation import cancel_order, release_order_stock, release_pending_stock
from ordering.order.fulfillment import update_order_status
from ordering.order.queries import get_order, list_orders


@pytest.fixture(autouse=True)
def products(catalogue):
    catalogue.add_product("P1", price=10.0, stock=5, seller_id="seller-a")
    catalogue.add_product("P2", price=20.0, stock=5, seller_id="seller-b")
    catalogue.add_product("P3", price=7.0, stock=5, seller_id="seller-a")
    return catalogue


@pytest.fixture()
def shared_order(checkout):
    """One order with items from two sellers."""
    return checkout(lines=[("P1", 2), ("P2", 1)])


@pytest.fixture()
def solo_order(checkout):
    """One order whose items all belong to seller-a."""
    return checkout(lines=[("P1", 2), ("P3", 1)])


def _item(order, product_id):
    return next(i for i in order.items if str(i.product_id) == product_id)


class TestGetOrder:
    def test_buyer_and_sellers_can_read(self, shared_order):
        for user in ("buyer-1", "seller-a", "seller-b"):
            assert get_order(shared_order.id, user).id == shared_order.id

    def test_stranger_is_unauthorized(self, shared_order):
        with pytest.raises(AuthorizationError) as exc:
            get_order(shared_order.id, "seller-z")
        assert exc.value.kind == "Unauthorized"

    def test_unknown_order(self):
        with pytest.raises(NotFoundError) as exc:
            get_order("missing", "buyer-1")
        assert exc.value.kind == "OrderNotFound"


class TestSoleSellerUpdates:
    def test_confirm_cascades(self, solo_order):
        order = update_order_status(solo_order.id, "seller-a", "confirmed")
        assert order.status == "confirmed"
        assert {i.status for i in order.items} == {"confirmed"}

    def test_full_fulfillment_path(self, solo_order):
        for status in ("confirmed", "processing", "shipped", "delivered"):
            order = update_order_status(solo_order.id, "seller-a", status)

        assert order.status == "delivered"
        assert [e.status for e in order.history()] == [
            "pending",
            "confirmed",
            "processing",
            "shipped",
            "delivered",
        ]

    def test_timeline_grows_by_one_per_update(self, solo_order):
        before = len(solo_order.timeline)
        order = update_order_status(solo_order.id, "seller-a", "confirmed", note="Accepted")
        assert len(order.timeline) == before + 1
        assert order.history()[-1].note == "Accepted"

    def test_tracking_number_and_estimated_delivery(self, solo_order):
        eta = datetime(2026, 3, 20, tzinfo=UTC)
        order = update_order_status(
            solo_order.id, "seller-a", "shipped", tracking_number="TRK-9", estimated_delivery=eta
        )
        assert {i.tracking_number for i in order.items} == {"TRK-9"}
        assert order.estimated_delivery == eta

    def test_backward_move_is_invalid_transition(self, solo_order):
        update_order_status(solo_order.id, "seller-a", "shipped")
        with pytest.raises(ConflictError) as exc:
            update_order_status(solo_order.id, "seller-a", "confirmed")
        assert exc.value.kind == "InvalidTransition"
        assert get_order(solo_order.id, "buyer-1").status == "shipped"

    def test_unknown_status(self, solo_order):
        with pytest.raises(ValidationError) as exc:
            update_order_status(solo_order.id, "seller-a", "misplaced")
        assert exc.value.kind == "InvalidStatus"

    def test_buyer_cannot_update_status(self, solo_order):
        with pytest.raises(AuthorizationError):
            update_order_status(solo_order.id, "buyer-1", "confirmed")

    def test_seller_cancellation_restores_stock(self, solo_order, products):
        update_order_status(solo_order.id, "seller-a", "processing")
        order = update_order_status(solo_order.id, "seller-a", "cancelled", note="Out of stock")

        assert order.status == "cancelled"
        assert not order.stock_release_pending
        assert products.available("P1") == 5
        assert products.available("P3") == 5


class TestMultiSellerUpdates:
    def test_seller_moves_only_own_items(self, shared_order):
        order = update_order_status(shared_order.id, "seller-a", "shipped", tracking_number="TRK-A")

        assert _item(order, "P1").status == "shipped"
        assert _item(order, "P1").tracking_number == "TRK-A"
        assert _item(order, "P2").status == "pending"
        assert order.status == "pending"

    def test_order_status_follows_slowest_seller(self, shared_order):
        update_order_status(shared_order.id, "seller-a", "delivered")
        order = update_order_status(shared_order.id, "seller-b", "shipped")
        assert order.status == "shipped"

        order = update_order_status(shared_order.id, "seller-b", "delivered")
        assert order.status == "delivered"

    def test_processing_is_rejected_for_shared_orders(self, shared_order):
        with pytest.raises(ConflictError):
            update_order_status(shared_order.id, "seller-a", "processing")

    def test_one_seller_cancels_own_items(self, shared_order, products):
        order = update_order_status(shared_order.id, "seller-b", "cancelled")

        assert _item(order, "P2").status == "cancelled"
        assert _item(order, "P1").status == "pending"
        assert order.status == "pending"
        assert products.available("P2") == 5
        assert products.available("P1") == 3

    def test_each_update_is_one_timeline_entry(self, shared_order):
        update_order_status(shared_order.id, "seller-a", "confirmed")
        order = update_order_status(shared_order.id, "seller-b", "confirmed")
        assert len(order.timeline) == 3


class TestBuyerCancellation:
    def test_cancel_restores_stock(self, shared_order, products):
        assert (products.available("P1"), products.available("P2")) == (3, 4)

        order = cancel_order(shared_order.id, "buyer-1")

        assert order.status == "cancelled"
        assert order.cancellation_reason == "Cancelled by buyer"
        assert {i.status for i in order.items} == {"cancelled"}
        assert products.available("P1") == 5
        assert products.available("P2") == 5

    def test_cancel_confirmed_order(self, solo_order, products):
        update_order_status(solo_order.id, "seller-a", "confirmed")
        order = cancel_order(solo_order.id, "buyer-1", reason="Found it cheaper")
        assert order.cancellation_reason == "Found it cheaper"
        assert products.available("P1") == 5

    def test_only_buyer_can_cancel(self, shared_order):
        with pytest.raises(AuthorizationError):
            cancel_order(shared_order.id, "seller-a")

    def test_cannot_cancel_after_processing(self, solo_order):
        update_order_status(solo_order.id, "seller-a", "processing")
        with pytest.raises(ConflictError) as exc:
            cancel_order(solo_order.id, "buyer-1")
        assert exc.value.kind == "InvalidTransition"

    def test_cannot_cancel_shipped_order(self, solo_order):
        update_order_status(solo_order.id, "seller-a", "shipped")
        with pytest.raises(ConflictError):
            cancel_order(solo_order.id, "buyer-1")

    def test_cancel_twice_is_rejected(self, shared_order, products):
        cancel_order(shared_order.id, "buyer-1")
        with pytest.raises(ConflictError):
            cancel_order(shared_order.id, "buyer-1")
        assert products.available("P1") == 5

    def test_interrupted_release_resumes_on_retry(self, shared_order, products):
        products.fail_next("release", times=50)
        with pytest.raises(TransientStoreError):
            cancel_order(shared_order.id, "buyer-1")

        interrupted = get_order(shared_order.id, "buyer-1")
        assert interrupted.status == "cancelled"
        assert interrupted.stock_release_pending
        assert products.available("P1") == 3

        products.fail_next("release", times=0)
        order = cancel_order(shared_order.id, "buyer-1")

        assert not order.stock_release_pending
        assert products.available("P1") == 5
        assert products.available("P2") == 5
        assert len(order.timeline) == 2

    def test_release_is_not_repeated(self, shared_order, products):
        cancel_order(shared_order.id, "buyer-1")
        release_order_stock(shared_order.id)
        assert products.available("P1") == 5


class TestReturns:
    def test_return_after_delivery_restores_stock(self, solo_order, products):
        update_order_status(solo_order.id, "seller-a", "delivered")
        order = update_order_status(solo_order.id, "seller-a", "returned", note="Damaged")

        assert order.status == "returned"
        assert {i.status for i in order.items} == {"returned"}
        assert products.available("P1") == 5

    def test_return_before_shipment_is_invalid(self, solo_order):
        with pytest.raises(ConflictError):
            update_order_status(solo_order.id, "seller-a", "returned")

    def test_partial_return_on_shared_order(self, shared_order, products):
        update_order_status(shared_order.id, "seller-a", "delivered")
        update_order_status(shared_order.id, "seller-b", "delivered")
        order = update_order_status(shared_order.id, "seller-b", "returned")

        assert _item(order, "P2").status == "returned"
        assert order.status == "delivered"
        assert products.available("P2") == 5
        assert products.available("P1") == 3


class TestInterruptedSellerRelease:
    def test_sole_seller_repeats_cancel_to_finish_release(self, solo_order, products):
        products.fail_next("release", times=50)
        with pytest.raises(TransientStoreError):
            update_order_status(solo_order.id, "seller-a", "cancelled")

        interrupted = get_order(solo_order.id, "seller-a")
        assert interrupted.status == "cancelled"
        assert interrupted.stock_release_pending
        assert products.available("P1") == 3

        products.fail_next("release", times=0)
        order = update_order_status(solo_order.id, "seller-a", "cancelled")

        assert not order.stock_release_pending
        assert products.available("P1") == 5
        assert products.available("P3") == 5
        assert len(order.timeline) == 2

    def test_shared_order_seller_repeats_cancel(self, shared_order, products):
        products.fail_next("release", times=50)
        with pytest.raises(TransientStoreError):
            update_order_status(shared_order.id, "seller-a", "cancelled")
        assert products.available("P1") == 3

        products.fail_next("release", times=0)
        order = update_order_status(shared_order.id, "seller-a", "cancelled")

        assert _item(order, "P1").status == "cancelled"
        assert _item(order, "P2").status == "pending"
        assert order.status == "pending"
        assert not order.stock_release_pending
        assert products.available("P1") == 5
        assert products.available("P2") == 4

    def test_next_update_finishes_owed_release_first(self, shared_order, products):
        products.fail_next("release", times=50)
        with pytest.raises(TransientStoreError):
            update_order_status(shared_order.id, "seller-a", "cancelled")

        products.fail_next("release", times=0)
        order = update_order_status(shared_order.id, "seller-b", "shipped")

        assert _item(order, "P2").status == "shipped"
        assert not order.stock_release_pending
        assert products.available("P1") == 5

    def test_returned_items_resume_the_same_way(self, solo_order, products):
        update_order_status(solo_order.id, "seller-a", "delivered")
        products.fail_next("release", times=50)
        with pytest.raises(TransientStoreError):
            update_order_status(solo_order.id, "seller-a", "returned")

        products.fail_next("release", times=0)
        order = update_order_status(solo_order.id, "seller-a", "returned")

        assert order.status == "returned"
        assert products.available("P1") == 5


class TestReleasePendingStock:
    def test_sweep_releases_owed_stock(self, shared_order, products):
        products.fail_next("release", times=50)
        with pytest.raises(TransientStoreError):
            update_order_status(shared_order.id, "seller-b", "cancelled")

        products.fail_next("release", times=0)
        assert release_pending_stock() == 1

        assert products.available("P2") == 5
        assert not get_order(shared_order.id, "buyer-1").stock_release_pending

    def test_sweep_with_nothing_owed(self, shared_order, products):
        cancel_order(shared_order.id, "buyer-1")
        assert release_pending_stock() == 0
        assert products.available("P1") == 5

    def test_sweep_keeps_orders_it_could_not_finish(self, shared_order, products):
        products.fail_next("release", times=50)
        with pytest.raises(TransientStoreError):
            cancel_order(shared_order.id, "buyer-1")

        assert release_pending_stock() == 0
        assert get_order(shared_order.id, "buyer-1").stock_release_pending


class TestParticipationIndex:
    def test_status_updates_refresh_index_rows(self, shared_order):
        update_order_status(shared_order.id, "seller-a", "confirmed")
        update_order_status(shared_order.id, "seller-b", "confirmed")

        for user, role in (("buyer-1", "buyer"), ("seller-a", "seller"), ("seller-b", "seller")):
            orders, pagination = list_orders(user, role=role, status_filter="confirmed")
            assert [o.id for o in orders] == [shared_order.id]
            assert pagination["total"] == 1

    def test_cancelled_order_moves_in_index(self, shared_order):
        cancel_order(shared_order.id, "buyer-1")

        assert list_orders("buyer-1", status_filter="pending")[1]["total"] == 0
        assert list_orders("seller-b", role="seller", status_filter="cancelled")[1]["total"] == 1
