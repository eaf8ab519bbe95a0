from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Sequence

from apps.helpdesk.metrics import MetricsRegistry, register_default_metrics
from apps.helpdesk.metrics.definitions import BULK_ITEMS_TOTAL

from .errors import LifecycleError, PersistenceError
from .models import BulkItemResult, BulkOperationResult, Ticket

logger = logging.getLogger(__name__)

TicketRef = Ticket | str


def _reference(item: TicketRef) -> tuple[str, str | None]:
    if isinstance(item, Ticket):
        return item.id, item.number
    return str(item), None


class BulkOperationCoordinator:
    """Apply one single-ticket operation across a user-curated selection.

    Items are processed strictly in input order and one at a time, so per-item
    attribution and result ordering stay deterministic and no two items of a
    batch race on the same ticket. A failing item is recorded and the batch
    carries on; nothing already applied is rolled back.
    """

    def __init__(self, *, metrics: MetricsRegistry | None = None) -> None:
        self._metrics = register_default_metrics(metrics)

    async def run(
        self,
        operation: str,
        tickets: Sequence[TicketRef],
        apply: Callable[[str], Awaitable[Any]],
    ) -> BulkOperationResult:
        counter = self._metrics.counter(BULK_ITEMS_TOTAL)
        items: list[BulkItemResult] = []
        for item in tickets:
            ticket_id, ticket_number = _reference(item)
            try:
                data = await apply(ticket_id)
            except LifecycleError as exc:
                logger.info("Bulk %s skipped ticket %s: %s", operation, ticket_number or ticket_id, exc.message)
                error: LifecycleError = exc
            except Exception as exc:
                logger.exception("Bulk %s failed on ticket %s", operation, ticket_number or ticket_id)
                error = PersistenceError.wrap(f"{operation} ticket {ticket_id}", exc)
            else:
                persisted = getattr(data, "ticket", None)
                if ticket_number is None and persisted is not None:
                    ticket_number = persisted.number
                items.append(
                    BulkItemResult(ticket_id=ticket_id, ticket_number=ticket_number, success=True, data=data)
                )
                counter.inc(labels={"operation": operation, "outcome": "success"})
                continue

            items.append(BulkItemResult(ticket_id=ticket_id, ticket_number=ticket_number, success=False, error=error))
            counter.inc(labels={"operation": operation, "outcome": error.code})

        result = BulkOperationResult(operation=operation, items=items)
        logger.info("Bulk %s finished: %s", operation, result.describe())
        return result
