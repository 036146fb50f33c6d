import logging
from decimal import Decimal
from typing import List, Optional

from pharmacy_orders.domain.exceptions import (
    AuthorizationError, InsufficientStockError, MedicineInactiveError, MedicineNotFoundError,
    ValidationError,
)
from pharmacy_orders.domain.models import Medicine, Principal, PrincipalKind, StockAdjustment

logger = logging.getLogger(__name__)


class MedicineCatalog:
    """Owns per-medicine stock records.

    Every stock change goes through adjust_stock, which runs in its own
    transaction and relies on the repository's conditional update for the
    non-negativity guard.
    """

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def get_medicine(self, medicine_id: str) -> Medicine:
        async with self._uow() as uow:
            medicine = await uow.medicines.get_by_id(medicine_id)
        if medicine is None:
            raise MedicineNotFoundError(medicine_id)
        if not medicine.is_active:
            raise MedicineInactiveError(medicine_id)
        return medicine

    async def get_price(self, medicine_id: str) -> Decimal:
        medicine = await self.get_medicine(medicine_id)
        return medicine.price

    async def get_pharmacy_id(self, medicine_id: str) -> str:
        medicine = await self.get_medicine(medicine_id)
        return medicine.pharmacy_id

    async def adjust_stock(self, medicine_id: str, delta: int) -> StockAdjustment:
        async with self._uow() as uow:
            adjustment = await uow.medicines.adjust_stock(medicine_id, delta)
            if adjustment is None:
                # Nothing was written; find out why inside the same transaction.
                medicine = await uow.medicines.get_by_id(medicine_id)
                if medicine is None:
                    raise MedicineNotFoundError(medicine_id)
                if not medicine.is_active:
                    raise MedicineInactiveError(medicine_id)
                raise InsufficientStockError(medicine_id, medicine.stock.current_quantity, -delta)

            if delta < 0 and adjustment.is_low_stock:
                await uow.outbox.create(
                    event_type="stock.low",
                    event_data={
                        "medicine_id": medicine_id,
                        "current_quantity": adjustment.new_quantity,
                        "min_threshold": adjustment.min_threshold
                    },
                    aggregate_id=medicine_id
                )
            await uow.commit()

        logger.info(
            f"Stock for medicine {medicine_id} changed by {delta}, now {adjustment.new_quantity}"
        )
        if adjustment.is_low_stock:
            logger.warning(
                f"Medicine {medicine_id} is low on stock: {adjustment.new_quantity} <= {adjustment.min_threshold}"
            )
        return adjustment

    async def list_low_stock(self, principal: Principal, pharmacy_id: Optional[str] = None) -> List[Medicine]:
        if not principal.is_admin:
            if principal.kind != PrincipalKind.PHARMACY:
                raise AuthorizationError("Only administrators and pharmacies can view low stock")
            if pharmacy_id and pharmacy_id != principal.id:
                raise AuthorizationError("Not authorized to view this pharmacy's stock")
            pharmacy_id = principal.id
        async with self._uow() as uow:
            return await uow.medicines.list_low_stock(pharmacy_id)


class AdjustMedicineStockUseCase:
    """Administrator add/subtract on a medicine's stock"""

    OPERATIONS = {"add": 1, "subtract": -1}

    def __init__(self, catalog: MedicineCatalog):
        self._catalog = catalog

    async def __call__(
        self, medicine_id: str, quantity: int, operation: str, principal: Principal
    ) -> StockAdjustment:
        if not principal.is_admin:
            raise AuthorizationError("Only administrators can adjust stock")
        if operation not in self.OPERATIONS:
            raise ValidationError(f"Invalid operation type '{operation}'")
        if quantity <= 0:
            raise ValidationError("Quantity must be positive")
        return await self._catalog.adjust_stock(medicine_id, self.OPERATIONS[operation] * quantity)
