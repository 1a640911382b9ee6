"""Ordering bounded context: shopping carts, checkout and the order lifecycle.

Carts and orders are plain CQRS aggregates persisted through repositories.
Stock and order numbers live behind adapters outside the domain
(``catalogue.ledger`` and ``ordering.numbering``).
"""

from protean.domain import Domain

ordering = Domain(name="ordering")
