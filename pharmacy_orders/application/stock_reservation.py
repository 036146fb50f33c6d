import logging
from typing import Iterable, List

from pharmacy_orders.domain.exceptions import DomainException
from pharmacy_orders.domain.models import StockAdjustment, StockLine
from pharmacy_orders.application.medicine_catalog import MedicineCatalog

logger = logging.getLogger(__name__)


class StockReservationCoordinator:
    """Applies a batch of per-medicine stock changes as one logical unit.

    The store gives no transaction spanning several medicines, so a batch is
    a saga: each line is its own guarded write, and a failure undoes the lines
    already applied before the error reaches the caller.
    """

    def __init__(self, catalog: MedicineCatalog):
        self._catalog = catalog

    async def reserve(self, lines: Iterable[StockLine]) -> List[StockAdjustment]:
        applied: List[StockAdjustment] = []
        for line in lines:
            try:
                adjustment = await self._catalog.adjust_stock(line.medicine_id, -line.quantity)
            except DomainException as e:
                logger.warning(
                    f"Reservation of {line.quantity} x {line.medicine_id} failed: {e}; "
                    f"rolling back {len(applied)} applied line(s)"
                )
                await self.compensate(applied)
                raise
            applied.append(adjustment)
        return applied

    async def compensate(self, applied: Iterable[StockAdjustment]) -> None:
        """Undo reservations, newest first."""
        for adjustment in reversed(list(applied)):
            try:
                await self._catalog.adjust_stock(adjustment.medicine_id, -adjustment.delta)
            except DomainException as e:
                logger.error(
                    f"Compensation failed for medicine {adjustment.medicine_id} "
                    f"(quantity {-adjustment.delta}): {e}"
                )

    async def release(self, lines: Iterable[StockLine]) -> List[StockAdjustment]:
        """Best-effort restock; a failing line does not stop the others."""
        released: List[StockAdjustment] = []
        for line in lines:
            try:
                released.append(await self._catalog.adjust_stock(line.medicine_id, line.quantity))
            except DomainException as e:
                logger.error(
                    f"Release of {line.quantity} x {line.medicine_id} failed: {e}; "
                    f"stock needs reconciliation"
                )
        return released
