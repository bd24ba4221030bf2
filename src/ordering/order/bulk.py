"""Bulk order status update.

Each order is changed in its own unit of work; one order failing never
rolls back or blocks the others. The caller receives a result per order.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from ordering.domain import logger
from ordering.order.fulfillment import AdvanceOrderStatus
from ordering.order.order import Order
from ordering.shared.concurrency import process_with_retry
from ordering.shared.errors import OrderingError


def bulk_update_status(order_ids, status, reason=None):
    """Move every order in ``order_ids`` to ``status``.

    Returns a list of ``{"order_id", "success", "status" | "error"}`` dicts in
    request order, duplicates collapsed.
    """
    results = []

    for order_id in dict.fromkeys(str(order_id) for order_id in order_ids):
        try:
            process_with_retry(AdvanceOrderStatus(order_id=order_id, status=status, reason=reason))
            order = current_domain.repository_for(Order).get(order_id)
            results.append({"order_id": order_id, "success": True, "status": order.status})
        except ObjectNotFoundError:
            results.append({"order_id": order_id, "success": False, "error": "Order not found"})
        except ValidationError as exc:
            results.append({"order_id": order_id, "success": False, "error": _first_message(exc.messages)})
        except OrderingError as exc:
            logger.warning("bulk_status_update_failed", order_id=order_id, status=status, error=exc.message)
            results.append({"order_id": order_id, "success": False, "error": exc.message})
        except Exception:
            logger.error("bulk_status_update_crashed", order_id=order_id, status=status, exc_info=True)
            results.append({"order_id": order_id, "success": False, "error": "Unexpected error"})

    succeeded = sum(1 for result in results if result["success"])
    logger.info("bulk_status_update_completed", status=status, succeeded=succeeded, failed=len(results) - succeeded)
    return results


def _first_message(messages):
    for field_messages in messages.values():
        if field_messages:
            return field_messages[0]
    return "Invalid request"
