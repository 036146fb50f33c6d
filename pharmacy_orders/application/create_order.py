import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
import uuid

from pydantic import BaseModel, Field

from pharmacy_orders.domain.models import (
    DeliveryAddress, DeliveryTerms, DeliveryType, Order, OrderLine, OrderStatus, PaymentStatus,
    StockLine,
)
from pharmacy_orders.domain.exceptions import (
    CrossPharmacyMixError, DuplicateOrderError, EmptyCartError, PharmacyNotFoundError,
    UnsupportedPaymentMethodError,
)
from pharmacy_orders.application.interfaces import PharmacyDirectory
from pharmacy_orders.application.medicine_catalog import MedicineCatalog
from pharmacy_orders.application.stock_reservation import StockReservationCoordinator


logger = logging.getLogger(__name__)


class CreateOrderDTO(BaseModel):
    customer_id: str
    items: List[StockLine] = Field(default_factory=list)
    delivery_type: DeliveryType
    delivery_address: DeliveryAddress
    payment_method: str
    idempotency_key: Optional[str] = None


def order_event(order: Order) -> dict:
    return {
        "order_id": order.id,
        "customer_id": order.customer_id,
        "pharmacy_id": order.pharmacy_id,
        "status": order.status.value,
        "payment_status": order.payment_status.value,
        "total_amount": str(order.total_amount),
        "items": [
            {"medicine_id": line.medicine_id, "quantity": line.quantity}
            for line in order.lines
        ]
    }


class CreateOrderUseCase:
    """Turns a cart into a persisted order; stock is reserved all-or-nothing."""

    def __init__(
        self,
        unit_of_work,
        catalog: MedicineCatalog,
        reservations: StockReservationCoordinator,
        pharmacy_directory: PharmacyDirectory,
        delivery_terms: DeliveryTerms,
        payment_methods=("cod",)
    ):
        self._uow = unit_of_work
        self._catalog = catalog
        self._reservations = reservations
        self._pharmacies = pharmacy_directory
        self._terms = delivery_terms
        self._payment_methods = frozenset(payment_methods)

    async def __call__(self, order_data: CreateOrderDTO) -> Order:
        logger.info(
            f"Creating order for customer {order_data.customer_id}, {len(order_data.items)} item(s)"
        )

        if not order_data.items:
            raise EmptyCartError()

        # 1. Idempotency
        if order_data.idempotency_key:
            async with self._uow() as uow:
                existing = await uow.orders.get_by_idempotency_key(
                    order_data.customer_id, order_data.idempotency_key
                )
            if existing:
                logger.info(f"Order already exists: {existing.id}")
                return existing

        # 2. Cart validation against the catalog
        lines: List[OrderLine] = []
        pharmacy_ids = []
        for item in order_data.items:
            medicine = await self._catalog.get_medicine(item.medicine_id)
            pharmacy_ids.append(medicine.pharmacy_id)
            lines.append(
                OrderLine(
                    medicine_id=item.medicine_id,
                    quantity=item.quantity,
                    unit_price=medicine.price
                )
            )
        if len(set(pharmacy_ids)) != 1:
            raise CrossPharmacyMixError(pharmacy_ids)
        pharmacy_id = pharmacy_ids[0]

        if order_data.payment_method not in self._payment_methods:
            raise UnsupportedPaymentMethodError(order_data.payment_method)

        pharmacy = await self._pharmacies.get_pharmacy(pharmacy_id)
        if pharmacy is None or not pharmacy.is_active:
            raise PharmacyNotFoundError(pharmacy_id)

        # 3. Server-side pricing
        subtotal = sum((line.line_total for line in lines), Decimal("0"))
        tax = self._terms.tax(subtotal)
        delivery_fee = self._terms.fee(order_data.delivery_type)

        # 4. Reservation; a failure here leaves no stock change behind
        applied = await self._reservations.reserve(lines)

        # 5. Persist
        now = datetime.now(timezone.utc)
        order = Order(
            id=str(uuid.uuid4()),
            customer_id=order_data.customer_id,
            pharmacy_id=pharmacy_id,
            pharmacy_name=pharmacy.name,
            lines=lines,
            subtotal=subtotal,
            tax=tax,
            delivery_fee=delivery_fee,
            total_amount=subtotal + tax + delivery_fee,
            delivery_type=order_data.delivery_type,
            delivery_address=order_data.delivery_address,
            payment_method=order_data.payment_method,
            payment_status=PaymentStatus.PENDING,
            status=OrderStatus.PENDING,
            estimated_delivery_time=self._terms.eta(order_data.delivery_type, now),
            idempotency_key=order_data.idempotency_key,
            created_at=now,
            updated_at=now
        )
        try:
            async with self._uow() as uow:
                await uow.orders.create(order)
                await uow.outbox.create(
                    event_type="order.created",
                    event_data=order_event(order),
                    aggregate_id=order.id
                )
                await uow.commit()
        except DuplicateOrderError:
            # Lost a race on the same idempotency key; the winner holds the stock.
            await self._reservations.compensate(applied)
            async with self._uow() as uow:
                existing = await uow.orders.get_by_idempotency_key(
                    order_data.customer_id, order_data.idempotency_key
                )
            if existing is None:
                raise
            logger.info(f"Order already exists: {existing.id}")
            return existing
        except Exception:
            logger.error(f"Persisting order {order.id} failed, releasing reserved stock")
            await self._reservations.compensate(applied)
            raise

        logger.info(f"Order created: {order.id}, total {order.total_amount}")
        return order
