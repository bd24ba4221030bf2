"""Ordering bounded context: orders, payment reconciliation and carts.

Handles the order lifecycle (CQRS), settlement of payments confirmed by the
webhook and redirect gateways, stock restoration on cancellation, guest
order access and shopping cart merging at login.
"""

from protean.domain import Domain

from ordering.utils.logging import configure_logging, get_logger

configure_logging()

ordering = Domain(name="ordering")

logger = get_logger(__name__)
