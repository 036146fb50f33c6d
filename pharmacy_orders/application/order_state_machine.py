import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from pharmacy_orders.domain.models import (
    Coordinates, DeliveryTerms, DeliveryType, Order, OrderStatus, Principal, TrackingEntry,
)
from pharmacy_orders.domain.exceptions import (
    AuthorizationError, InvalidStateTransitionError, OrderNotFoundError, ValidationError,
)
from pharmacy_orders.application.create_order import order_event
from pharmacy_orders.application.stock_reservation import StockReservationCoordinator

logger = logging.getLogger(__name__)


def _can_change_status(order: Order, principal: Principal) -> None:
    if not (principal.is_admin or principal.is_pharmacy(order.pharmacy_id)):
        raise AuthorizationError("Not authorized to update this order")


def _can_cancel(order: Order, principal: Principal) -> None:
    if not (principal.is_customer(order.customer_id) or principal.is_pharmacy(order.pharmacy_id)):
        raise AuthorizationError("Not authorized to cancel this order")


class OrderStateMachine:
    """Drives orders through their lifecycle.

    pending -> confirmed -> processing -> out-for-delivery -> delivered, and
    any non-terminal state -> cancelled. Each write is checked against the
    version the order was read at, so of two racing transitions only one
    commits. Cancellation restocks after its status change has committed,
    which keeps a lost race from restocking twice.
    """

    def __init__(self, unit_of_work, reservations: StockReservationCoordinator, delivery_terms: DeliveryTerms):
        self._uow = unit_of_work
        self._reservations = reservations
        self._terms = delivery_terms

    def estimated_delivery_time(self, delivery_type: DeliveryType, now: Optional[datetime] = None) -> datetime:
        return self._terms.eta(delivery_type, now or datetime.now(timezone.utc))

    async def set_status(self, order_id: str, new_status, principal: Principal) -> Order:
        try:
            new_status = OrderStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown order status '{new_status}'")
        return await self._transition(order_id, new_status, principal, _can_change_status)

    async def cancel(self, order_id: str, principal: Principal) -> Order:
        return await self._transition(order_id, OrderStatus.CANCELLED, principal, _can_cancel)

    async def append_tracking(
        self,
        order_id: str,
        status: str,
        principal: Principal,
        location: Optional[Coordinates] = None
    ) -> Order:
        if not status or not status.strip():
            raise ValidationError("Tracking status is required")

        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            if not principal.is_pharmacy(order.pharmacy_id):
                raise AuthorizationError("Only the owning pharmacy can update tracking")

            entry = TrackingEntry(status=status.strip(), location=location, timestamp=datetime.now(timezone.utc))
            await uow.orders.append_tracking(order, entry, expected_version=order.version)
            await uow.commit()

        logger.info(f"Tracking '{entry.status}' appended to order {order_id}")
        return order

    async def _transition(
        self,
        order_id: str,
        new_status: OrderStatus,
        principal: Principal,
        authorize: Callable[[Order, Principal], None]
    ) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            authorize(order, principal)
            if order.is_terminal():
                raise InvalidStateTransitionError(
                    f"Order {order_id} is already {order.status.value}"
                )

            previous = order.status
            expected_version = order.version
            order.transition_to(new_status)
            await uow.orders.update_state(order, expected_version)

            event = order_event(order)
            event["previous_status"] = previous.value
            await uow.outbox.create(
                event_type="order.cancelled" if new_status == OrderStatus.CANCELLED else "order.status_changed",
                event_data=event,
                aggregate_id=order.id
            )
            await uow.commit()

        logger.info(f"Order {order_id}: {previous.value} -> {new_status.value} by {principal.kind.value} {principal.id}")

        if new_status == OrderStatus.CANCELLED:
            released = await self._reservations.release(order.stock_lines())
            if len(released) != len(order.lines):
                logger.error(
                    f"Order {order_id} cancelled with {len(order.lines) - len(released)} line(s) not restocked"
                )
        return order
