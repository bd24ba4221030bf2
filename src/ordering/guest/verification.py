"""Guest order lookup: exchange an email address and order id for an access token."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.domain import logger
from ordering.guest.access import issue_guest_token
from ordering.guest.throttle import check_verification_attempt
from ordering.order.order import Order

NOT_FOUND_MESSAGE = "Order not found or access denied"


def verify_guest_order(email: str, order_id: str) -> str:
    """Return a fresh guest token when ``email`` placed guest order ``order_id``.

    A missing order, an account order and an email mismatch are reported
    identically so the endpoint cannot be used to probe order ids.
    """
    check_verification_attempt(email)

    try:
        order = current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError:
        order = None

    if (
        order is None
        or not order.is_guest_order
        or order.guest_contact.email.strip().lower() != email.strip().lower()
    ):
        logger.info("guest_verification_rejected", order_id=order_id)
        raise ObjectNotFoundError(NOT_FOUND_MESSAGE)

    logger.info("guest_verification_succeeded", order_id=order_id)
    return issue_guest_token(
        order.id,
        {"email": order.guest_contact.email, "phone": order.guest_contact.phone},
    )
