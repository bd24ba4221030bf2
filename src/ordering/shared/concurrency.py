"""Optimistic concurrency for command dispatch.

Protean versions every aggregate: saving an aggregate whose version no
longer matches the stored one raises ``ExpectedVersionError`` and rolls the
unit of work back. ``process_with_retry`` re-dispatches the command so the
handler re-reads fresh state, and gives up with
``ConcurrentModificationError`` once the attempts are spent.
"""

from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain

from ordering.config import get_settings
from ordering.domain import logger
from ordering.shared.errors import ConcurrentModificationError


def process_with_retry(command, attempts: int | None = None):
    """Process ``command`` synchronously, retrying on version conflicts.

    Returns whatever the command handler returns.
    """
    attempts = attempts or get_settings().max_write_attempts

    for attempt in range(1, attempts + 1):
        try:
            return current_domain.process(command, asynchronous=False)
        except ExpectedVersionError as exc:
            logger.warning(
                "concurrent_write_detected",
                command=command.__class__.__name__,
                attempt=attempt,
                error=str(exc),
            )

    raise ConcurrentModificationError(
        f"{command.__class__.__name__} lost {attempts} consecutive write races",
        command=command.__class__.__name__,
    )
