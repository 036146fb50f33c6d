import asyncio
from decimal import Decimal

import pytest

from pharmacy_orders.application.medicine_catalog import AdjustMedicineStockUseCase
from pharmacy_orders.domain.exceptions import (
    AuthorizationError, InsufficientStockError, MedicineInactiveError, MedicineNotFoundError,
    ValidationError,
)


class TestLookups:
    async def test_price_and_pharmacy(self, catalog, seed_medicine):
        await seed_medicine("m1", pharmacy_id="ph-1", price="12.50")

        assert await catalog.get_price("m1") == Decimal("12.50")
        assert await catalog.get_pharmacy_id("m1") == "ph-1"

    async def test_unknown_medicine(self, catalog):
        with pytest.raises(MedicineNotFoundError):
            await catalog.get_price("missing")

    async def test_inactive_medicine_is_not_orderable(self, catalog, seed_medicine):
        await seed_medicine("m1", is_active=False)
        with pytest.raises(MedicineInactiveError):
            await catalog.get_pharmacy_id("m1")


class TestAdjustStock:
    async def test_decrement_and_increment(self, catalog, seed_medicine, stock_of):
        await seed_medicine("m1", quantity=20)

        adjustment = await catalog.adjust_stock("m1", -5)
        assert adjustment.new_quantity == 15
        assert await stock_of("m1") == 15

        await catalog.adjust_stock("m1", 3)
        assert await stock_of("m1") == 18

    async def test_insufficient_stock_changes_nothing(self, catalog, seed_medicine, stock_of):
        await seed_medicine("m1", quantity=4)

        with pytest.raises(InsufficientStockError) as exc_info:
            await catalog.adjust_stock("m1", -5)

        assert exc_info.value.available == 4
        assert exc_info.value.requested == 5
        assert await stock_of("m1") == 4

    async def test_can_drain_to_zero(self, catalog, seed_medicine, stock_of):
        await seed_medicine("m1", quantity=3)
        await catalog.adjust_stock("m1", -3)
        assert await stock_of("m1") == 0

    async def test_unknown_and_inactive(self, catalog, seed_medicine, stock_of):
        await seed_medicine("m-off", quantity=5, is_active=False)

        with pytest.raises(MedicineNotFoundError):
            await catalog.adjust_stock("missing", -1)
        with pytest.raises(MedicineInactiveError):
            await catalog.adjust_stock("m-off", -1)
        assert await stock_of("m-off") == 5

    async def test_concurrent_decrements_never_overshoot(self, catalog, seed_medicine, stock_of):
        await seed_medicine("m1", quantity=10)

        results = await asyncio.gather(
            catalog.adjust_stock("m1", -6),
            catalog.adjust_stock("m1", -7),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], InsufficientStockError)
        assert await stock_of("m1") in (4, 3)

    async def test_low_stock_emits_event(self, catalog, seed_medicine, outbox_events):
        await seed_medicine("m1", quantity=12, min_threshold=10)

        await catalog.adjust_stock("m1", -1)
        assert await outbox_events("stock.low") == []

        adjustment = await catalog.adjust_stock("m1", -2)
        assert adjustment.is_low_stock

        events = await outbox_events("stock.low")
        assert len(events) == 1
        assert events[0]["aggregate_id"] == "m1"
        assert events[0]["event_data"]["current_quantity"] == 9

    async def test_restock_does_not_emit_low_stock(self, catalog, seed_medicine, outbox_events):
        await seed_medicine("m1", quantity=2, min_threshold=10)
        await catalog.adjust_stock("m1", 1)
        assert await outbox_events("stock.low") == []


class TestLowStockListing:
    async def test_admin_sees_all_pharmacies(self, catalog, seed_medicine, admin):
        await seed_medicine("a", pharmacy_id="ph-1", quantity=3)
        await seed_medicine("b", pharmacy_id="ph-2", quantity=1)
        await seed_medicine("c", pharmacy_id="ph-2", quantity=50)
        await seed_medicine("d", pharmacy_id="ph-2", quantity=0, is_active=False)

        medicines = await catalog.list_low_stock(admin)

        assert [m.id for m in medicines] == ["b", "a"]

    async def test_pharmacy_is_scoped_to_itself(self, catalog, seed_medicine, pharmacy_ph1):
        await seed_medicine("a", pharmacy_id="ph-1", quantity=3)
        await seed_medicine("b", pharmacy_id="ph-2", quantity=1)

        medicines = await catalog.list_low_stock(pharmacy_ph1)
        assert [m.id for m in medicines] == ["a"]

        with pytest.raises(AuthorizationError):
            await catalog.list_low_stock(pharmacy_ph1, pharmacy_id="ph-2")

    async def test_customers_cannot_view(self, catalog, customer):
        with pytest.raises(AuthorizationError):
            await catalog.list_low_stock(customer)


class TestAdminStockUpdate:
    async def test_add_and_subtract(self, catalog, seed_medicine, stock_of, admin):
        await seed_medicine("m1", quantity=10)
        use_case = AdjustMedicineStockUseCase(catalog)

        await use_case("m1", 5, "add", admin)
        result = await use_case("m1", 12, "subtract", admin)

        assert result.new_quantity == 3
        assert result.is_low_stock
        assert await stock_of("m1") == 3

    async def test_subtract_below_zero_is_rejected(self, catalog, seed_medicine, stock_of, admin):
        await seed_medicine("m1", quantity=2)
        with pytest.raises(InsufficientStockError):
            await AdjustMedicineStockUseCase(catalog)("m1", 3, "subtract", admin)
        assert await stock_of("m1") == 2

    @pytest.mark.parametrize("quantity,operation", [(0, "add"), (-1, "add"), (1, "multiply")])
    async def test_bad_input(self, catalog, seed_medicine, admin, quantity, operation):
        await seed_medicine("m1")
        with pytest.raises(ValidationError):
            await AdjustMedicineStockUseCase(catalog)("m1", quantity, operation, admin)

    async def test_only_admins(self, catalog, seed_medicine, pharmacy_ph1):
        await seed_medicine("m1")
        with pytest.raises(AuthorizationError):
            await AdjustMedicineStockUseCase(catalog)("m1", 1, "add", pharmacy_ph1)
