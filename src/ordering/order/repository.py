"""Repository for the Order aggregate."""

from ordering.domain import ordering
from ordering.order.order import Order


@ordering.repository(part_of=Order)
class OrderRepository:
    def by_number(self, order_number) -> Order | None:
        return self._dao.query.filter(order_number=order_number).all().first

    def owing_stock(self) -> list[Order]:
        """Orders with cancelled or returned items not yet released to the ledger."""
        return self._dao.query.filter(stock_release_owed=True).all().items
