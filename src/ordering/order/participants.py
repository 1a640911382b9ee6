"""Order participation index: one row per (order, participant, role).

Buyers and sellers list their orders through this index. Rows are written
by the same command handlers that persist the order, inside the same unit
of work, so the index never lags the order it describes.
"""

from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering


class ParticipantRole:
    BUYER = "buyer"
    SELLER = "seller"


@ordering.projection
class OrderParticipation:
    participation_id = String(identifier=True, required=True, max_length=255)
    order_id = Identifier(required=True)
    participant_id = Identifier(required=True)
    role = String(required=True, max_length=10)
    order_number = String(required=True, max_length=20)
    status = String(required=True, max_length=20)
    total = Float()
    item_count = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()


def _rows_for(order):
    yield ParticipantRole.BUYER, str(order.buyer_id), order.items
    for seller_id in order.seller_ids:
        yield ParticipantRole.SELLER, seller_id, order.items_for_seller(seller_id)


def sync_participation(order) -> None:
    """Upsert the index rows for ``order``."""
    repo = current_domain.repository_for(OrderParticipation)
    for role, participant_id, items in _rows_for(order):
        participation_id = f"{order.id}:{participant_id}:{role}"
        try:
            row = repo.get(participation_id)
        except ObjectNotFoundError:
            row = OrderParticipation(
                participation_id=participation_id,
                order_id=str(order.id),
                participant_id=participant_id,
                role=role,
                order_number=order.order_number,
                status=order.status,
                created_at=order.created_at,
            )
        row.status = order.status
        row.total = order.totals.total
        row.item_count = sum(i.quantity for i in items)
        row.updated_at = order.updated_at
        repo.add(row)


def participation_page(criteria, ordering_key, offset, limit):
    """One page of index rows matching ``criteria``, sorted by ``ordering_key``."""
    return (
        current_domain.repository_for(OrderParticipation)
        ._dao.query.filter(**criteria)
        .order_by(ordering_key)
        .offset(offset)
        .limit(limit)
        .all()
    )
