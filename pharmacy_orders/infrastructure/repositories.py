import uuid
from typing import Optional, List
from datetime import datetime, timezone
from sqlalchemy import select, insert, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pharmacy_orders.domain.exceptions import DuplicateOrderError, StaleOrderError
from pharmacy_orders.domain.models import (
    Coordinates, DeliveryAddress, DeliveryType, Medicine, Order, OrderLine, OrderStatus,
    PaymentStatus, StockAdjustment, StockLevel, TrackingEntry,
)
from pharmacy_orders.infrastructure.db_schema import (
    medicines_tbl, orders_tbl, order_lines_tbl, order_tracking_tbl, outbox_events_tbl,
)
from pharmacy_orders.application.interfaces import MedicineRepository, OrderRepository, OutboxRepository


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SQLAlchemyMedicineRepository(MedicineRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, medicine_id: str) -> Optional[Medicine]:
        result = await self._session.execute(
            select(medicines_tbl).where(medicines_tbl.c.id == medicine_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def adjust_stock(self, medicine_id: str, delta: int) -> Optional[StockAdjustment]:
        # Guard and write are one statement: concurrent decrements cannot overshoot.
        quantity = medicines_tbl.c.current_quantity
        stmt = (
            update(medicines_tbl)
            .where(
                medicines_tbl.c.id == medicine_id,
                medicines_tbl.c.is_active.is_(True),
                quantity + delta >= 0,
            )
            .values(
                current_quantity=quantity + delta,
                updated_at=datetime.now(timezone.utc)
            )
            .returning(medicines_tbl.c.current_quantity, medicines_tbl.c.min_threshold)
        )
        result = await self._session.execute(stmt)
        row = result.fetchone()
        if row is None:
            return None
        return StockAdjustment(
            medicine_id=medicine_id,
            delta=delta,
            new_quantity=row.current_quantity,
            min_threshold=row.min_threshold
        )

    async def list_low_stock(self, pharmacy_id: Optional[str] = None) -> List[Medicine]:
        stmt = (
            select(medicines_tbl)
            .where(
                medicines_tbl.c.is_active.is_(True),
                medicines_tbl.c.current_quantity <= medicines_tbl.c.min_threshold,
            )
            .order_by(medicines_tbl.c.current_quantity.asc(), medicines_tbl.c.id.asc())
        )
        if pharmacy_id:
            stmt = stmt.where(medicines_tbl.c.pharmacy_id == pharmacy_id)
        result = await self._session.execute(stmt)
        return [self._to_domain(row) for row in result.fetchall()]

    def _to_domain(self, row) -> Medicine:
        return Medicine(
            id=row.id,
            pharmacy_id=row.pharmacy_id,
            name=row.name,
            price=row.price,
            stock=StockLevel(
                current_quantity=row.current_quantity,
                min_threshold=row.min_threshold,
                unit=row.unit
            ),
            is_active=row.is_active
        )


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        orders = await self._fetch(select(orders_tbl).where(orders_tbl.c.id == order_id))
        return orders[0] if orders else None

    async def get_by_idempotency_key(self, customer_id: str, key: str) -> Optional[Order]:
        orders = await self._fetch(
            select(orders_tbl).where(
                orders_tbl.c.customer_id == customer_id,
                orders_tbl.c.idempotency_key == key
            )
        )
        return orders[0] if orders else None

    async def create(self, order: Order) -> None:
        stmt = insert(orders_tbl).values(
            id=order.id,
            customer_id=order.customer_id,
            pharmacy_id=order.pharmacy_id,
            pharmacy_name=order.pharmacy_name,
            subtotal=order.subtotal,
            tax=order.tax,
            delivery_fee=order.delivery_fee,
            total_amount=order.total_amount,
            delivery_type=order.delivery_type,
            delivery_address=order.delivery_address.model_dump(mode="json"),
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            status=order.status,
            estimated_delivery_time=order.estimated_delivery_time,
            actual_delivery_time=order.actual_delivery_time,
            idempotency_key=order.idempotency_key,
            version=order.version,
            created_at=order.created_at,
            updated_at=order.updated_at
        )
        try:
            await self._session.execute(stmt)
        except IntegrityError:
            if order.idempotency_key:
                raise DuplicateOrderError(order.idempotency_key)
            raise

        await self._session.execute(
            insert(order_lines_tbl),
            [
                {
                    "order_id": order.id,
                    "position": position,
                    "medicine_id": line.medicine_id,
                    "quantity": line.quantity,
                    "unit_price": line.unit_price,
                }
                for position, line in enumerate(order.lines)
            ]
        )

    async def list_for_customer(self, customer_id: str) -> List[Order]:
        return await self._fetch(
            select(orders_tbl)
            .where(orders_tbl.c.customer_id == customer_id)
            .order_by(orders_tbl.c.created_at.desc())
        )

    async def list_for_pharmacy(self, pharmacy_id: str) -> List[Order]:
        return await self._fetch(
            select(orders_tbl)
            .where(orders_tbl.c.pharmacy_id == pharmacy_id)
            .order_by(orders_tbl.c.created_at.desc())
        )

    async def list_all(self) -> List[Order]:
        return await self._fetch(select(orders_tbl).order_by(orders_tbl.c.created_at.desc()))

    async def update_state(self, order: Order, expected_version: int) -> None:
        await self._bump_version(
            order,
            expected_version,
            status=order.status,
            payment_status=order.payment_status,
            actual_delivery_time=order.actual_delivery_time,
        )

    async def append_tracking(self, order: Order, entry: TrackingEntry, expected_version: int) -> None:
        # Winning the version bump makes this writer the only one at this position.
        await self._bump_version(order, expected_version)
        await self._session.execute(
            insert(order_tracking_tbl).values(
                order_id=order.id,
                position=len(order.tracking),
                status=entry.status,
                latitude=entry.location.latitude if entry.location else None,
                longitude=entry.location.longitude if entry.location else None,
                timestamp=entry.timestamp
            )
        )
        order.tracking.append(entry)

    async def _bump_version(self, order: Order, expected_version: int, **values) -> None:
        now = datetime.now(timezone.utc)
        stmt = (
            update(orders_tbl)
            .where(
                orders_tbl.c.id == order.id,
                orders_tbl.c.version == expected_version
            )
            .values(version=expected_version + 1, updated_at=now, **values)
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            raise StaleOrderError(order.id)
        order.version = expected_version + 1
        order.updated_at = now

    async def _fetch(self, stmt) -> List[Order]:
        rows = (await self._session.execute(stmt)).fetchall()
        if not rows:
            return []
        order_ids = [row.id for row in rows]

        lines: dict[str, list[OrderLine]] = {order_id: [] for order_id in order_ids}
        line_rows = await self._session.execute(
            select(order_lines_tbl)
            .where(order_lines_tbl.c.order_id.in_(order_ids))
            .order_by(order_lines_tbl.c.order_id, order_lines_tbl.c.position)
        )
        for row in line_rows:
            lines[row.order_id].append(
                OrderLine(medicine_id=row.medicine_id, quantity=row.quantity, unit_price=row.unit_price)
            )

        tracking: dict[str, list[TrackingEntry]] = {order_id: [] for order_id in order_ids}
        tracking_rows = await self._session.execute(
            select(order_tracking_tbl)
            .where(order_tracking_tbl.c.order_id.in_(order_ids))
            .order_by(order_tracking_tbl.c.order_id, order_tracking_tbl.c.position)
        )
        for row in tracking_rows:
            location = None
            if row.latitude is not None and row.longitude is not None:
                location = Coordinates(latitude=row.latitude, longitude=row.longitude)
            tracking[row.order_id].append(
                TrackingEntry(status=row.status, location=location, timestamp=_aware(row.timestamp))
            )

        return [self._to_domain(row, lines[row.id], tracking[row.id]) for row in rows]

    def _to_domain(self, row, lines, tracking) -> Order:
        """DB row → Domain"""
        return Order(
            id=row.id,
            customer_id=row.customer_id,
            pharmacy_id=row.pharmacy_id,
            pharmacy_name=row.pharmacy_name,
            lines=lines,
            subtotal=row.subtotal,
            tax=row.tax,
            delivery_fee=row.delivery_fee,
            total_amount=row.total_amount,
            delivery_type=DeliveryType(row.delivery_type),
            delivery_address=DeliveryAddress(**row.delivery_address),
            payment_method=row.payment_method,
            payment_status=PaymentStatus(row.payment_status),
            status=OrderStatus(row.status),
            estimated_delivery_time=_aware(row.estimated_delivery_time),
            actual_delivery_time=_aware(row.actual_delivery_time),
            tracking=tracking,
            idempotency_key=row.idempotency_key,
            version=row.version,
            created_at=_aware(row.created_at),
            updated_at=_aware(row.updated_at)
        )


class SQLAlchemyOutboxRepository(OutboxRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, event_type: str, event_data: dict, aggregate_id: str) -> str:
        event_id = str(uuid.uuid4())
        stmt = insert(outbox_events_tbl).values(
            id=event_id,
            event_type=event_type,
            event_data=event_data,  # JSON column serializes it
            aggregate_id=aggregate_id,
            status="pending",
            created_at=datetime.now(timezone.utc)
        )
        await self._session.execute(stmt)
        return event_id

    async def get_pending(self, limit: int = 10) -> List[dict]:
        result = await self._session.execute(
            select(outbox_events_tbl)
            .where(outbox_events_tbl.c.status == "pending")
            .order_by(outbox_events_tbl.c.created_at.asc())
            .limit(limit)
        )
        rows = result.fetchall()

        return [
            {
                "id": row.id,
                "event_type": row.event_type,
                "event_data": row.event_data,
                "aggregate_id": row.aggregate_id
            }
            for row in rows
        ]

    async def mark_as_published(self, event_id: str) -> None:
        stmt = (
            update(outbox_events_tbl)
            .where(outbox_events_tbl.c.id == event_id)
            .values(status="published", published_at=datetime.now(timezone.utc))
        )
        await self._session.execute(stmt)
