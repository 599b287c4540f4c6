"""Stock restoration compensation records.

When settlement cannot put stock back (the product row is gone), the restore
is recorded here as ``Pending`` instead of being dropped. An operator or a
scheduled job later issues ``RetryStockRestorations`` to apply every pending
record whose product exists again.
"""

import json
from datetime import UTC, datetime
from enum import Enum

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from storefront.domain import storefront
from storefront.stock.events import StockRestorationDeferred
from storefront.stock.product import Product
from storefront.utils.queries import fetch_all

logger = structlog.get_logger(__name__)


class RestorationStatus(Enum):
    PENDING = "Pending"
    APPLIED = "Applied"


@storefront.aggregate
class StockRestoration:
    order_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    status = String(choices=RestorationStatus, default=RestorationStatus.PENDING.value)
    attempts = Integer(default=0)
    last_error = String(max_length=500)
    created_at = DateTime()
    applied_at = DateTime()

    @classmethod
    def defer(cls, order_id, product_id, quantity, reason):
        restoration = cls(
            order_id=order_id,
            product_id=product_id,
            quantity=quantity,
            status=RestorationStatus.PENDING.value,
            attempts=0,
            last_error=reason[:500] if reason else None,
            created_at=datetime.now(UTC),
        )
        restoration.raise_(
            StockRestorationDeferred(
                restoration_id=str(restoration.id),
                order_id=str(order_id),
                product_id=str(product_id),
                quantity=quantity,
                reason=restoration.last_error,
            )
        )
        return restoration

    @property
    def is_pending(self) -> bool:
        return self.status == RestorationStatus.PENDING.value

    def mark_applied(self):
        self.status = RestorationStatus.APPLIED.value
        self.attempts = (self.attempts or 0) + 1
        self.last_error = None
        self.applied_at = datetime.now(UTC)

    def mark_failed(self, reason):
        self.attempts = (self.attempts or 0) + 1
        self.last_error = reason[:500] if reason else None


def pending_restorations() -> list[StockRestoration]:
    repo = current_domain.repository_for(StockRestoration)
    return fetch_all(repo._dao.query.filter(status=RestorationStatus.PENDING.value))


@storefront.command(part_of="StockRestoration")
class RetryStockRestorations:
    requested_by = String(max_length=100, default="system")
    restoration_ids = Text()  # JSON array of ids; limits the retry to those records


@storefront.command_handler(part_of=StockRestoration)
class StockRestorationCommandHandler:
    @handle(RetryStockRestorations)
    def retry(self, command: RetryStockRestorations) -> int:
        """Apply every pending restoration whose product exists. Returns the count applied.

        With ``restoration_ids`` only those records are retried, so a caller that locked
        their products never touches a restoration recorded after it took the locks.
        """
        restoration_repo = current_domain.repository_for(StockRestoration)
        product_repo = current_domain.repository_for(Product)

        applied = 0
        wanted = set(json.loads(command.restoration_ids)) if command.restoration_ids else None
        for restoration in pending_restorations():
            if wanted is not None and str(restoration.id) not in wanted:
                continue
            try:
                product = product_repo.get(restoration.product_id)
            except ObjectNotFoundError:
                restoration.mark_failed(f"Product {restoration.product_id} not found")
                restoration_repo.add(restoration)
                continue

            product.restore_stock(restoration.quantity, order_id=restoration.order_id)
            restoration.mark_applied()
            product_repo.add(product)
            restoration_repo.add(restoration)
            applied += 1

            logger.info(
                "Applied deferred stock restoration",
                restoration_id=str(restoration.id),
                product_id=str(restoration.product_id),
                quantity=restoration.quantity,
            )

        return applied
