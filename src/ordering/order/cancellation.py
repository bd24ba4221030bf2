"""Order cancellation — command and handler.

The order and the stock it returns are written in one unit of work: either
the order is saved as cancelled with every line credited back, or nothing
changes. Repeating the command on a cancelled order credits nothing.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import logger, ordering
from ordering.order.order import Order
from ordering.stock.ledger import StockLedger


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    cancelled_by = String(required=True, max_length=50)
    reason = String(max_length=500)


def cancel_and_restock(order, cancelled_by, reason=None):
    """Cancel ``order`` and credit its lines back to stock.

    Must run inside the unit of work that saves ``order``. Returns False
    when the order was already cancelled.
    """
    lines = order.cancel(cancelled_by=cancelled_by, reason=reason)
    if lines is None:
        logger.info("order_already_cancelled", order_id=str(order.id))
        return False

    ledger = StockLedger()
    for product_id, quantity in lines:
        ledger.credit(product_id, quantity)

    if order.is_paid:
        logger.warning(
            "cancelled_order_requires_refund",
            order_id=str(order.id),
            receipt_id=order.payment_result.receipt_id,
            amount=order.pricing.total_price,
        )
    logger.info("order_cancelled", order_id=str(order.id), cancelled_by=cancelled_by)
    return True


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        cancelled = cancel_and_restock(order, command.cancelled_by, command.reason)
        if cancelled:
            repo.add(order)
        return cancelled
