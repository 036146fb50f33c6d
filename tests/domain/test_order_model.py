from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from pharmacy_orders.domain.exceptions import InvalidStateTransitionError
from pharmacy_orders.domain.models import (
    DeliveryAddress, DeliveryTerms, DeliveryType, Order, OrderLine, OrderStatus, PaymentStatus,
    Principal, PrincipalKind, StockLevel,
)


def make_order(status=OrderStatus.PENDING) -> Order:
    now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    return Order(
        id="order-1",
        customer_id="cust-1",
        pharmacy_id="ph-1",
        lines=[OrderLine(medicine_id="m1", quantity=2, unit_price=Decimal("5.00"))],
        subtotal=Decimal("10.00"),
        tax=Decimal("1.00"),
        delivery_fee=Decimal("4.99"),
        total_amount=Decimal("15.99"),
        delivery_type=DeliveryType.STANDARD,
        delivery_address=DeliveryAddress(street="1 Main St", city="Springfield", state="IL", zip_code="62701"),
        payment_method="cod",
        status=status,
        estimated_delivery_time=now + timedelta(minutes=45),
        created_at=now,
        updated_at=now,
    )


class TestTransitions:
    @pytest.mark.parametrize("target", [
        OrderStatus.CONFIRMED,
        OrderStatus.PROCESSING,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    ])
    def test_pending_moves_forward_or_cancels(self, target):
        assert make_order().can_transition_to(target)

    @pytest.mark.parametrize("current,target", [
        (OrderStatus.CONFIRMED, OrderStatus.PENDING),
        (OrderStatus.PROCESSING, OrderStatus.CONFIRMED),
        (OrderStatus.OUT_FOR_DELIVERY, OrderStatus.OUT_FOR_DELIVERY),
        (OrderStatus.PENDING, OrderStatus.PENDING),
    ])
    def test_backward_and_self_moves_are_rejected(self, current, target):
        order = make_order(current)
        with pytest.raises(InvalidStateTransitionError):
            order.transition_to(target)
        assert order.status == current

    @pytest.mark.parametrize("terminal", [OrderStatus.DELIVERED, OrderStatus.CANCELLED])
    @pytest.mark.parametrize("target", list(OrderStatus))
    def test_terminal_states_are_closed(self, terminal, target):
        order = make_order(terminal)
        assert order.is_terminal()
        assert not order.can_transition_to(target)

    def test_delivery_completes_payment_and_stamps_time(self):
        order = make_order(OrderStatus.OUT_FOR_DELIVERY)
        now = datetime(2024, 1, 1, 13, 0, tzinfo=timezone.utc)

        order.transition_to(OrderStatus.DELIVERED, now=now)

        assert order.status == OrderStatus.DELIVERED
        assert order.actual_delivery_time == now
        assert order.payment_status == PaymentStatus.COMPLETED
        assert order.updated_at == now

    def test_cancellation_leaves_payment_pending(self):
        order = make_order(OrderStatus.PROCESSING)
        order.transition_to(OrderStatus.CANCELLED)
        assert order.payment_status == PaymentStatus.PENDING
        assert order.actual_delivery_time is None

    def test_stock_lines_drop_prices(self):
        lines = make_order().stock_lines()
        assert [(line.medicine_id, line.quantity) for line in lines] == [("m1", 2)]


class TestDeliveryTerms:
    def test_fees_by_delivery_type(self):
        terms = DeliveryTerms()
        assert terms.fee(DeliveryType.EMERGENCY) == Decimal("9.99")
        assert terms.fee(DeliveryType.STANDARD) == Decimal("4.99")

    def test_eta_offsets(self):
        terms = DeliveryTerms()
        now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert terms.eta(DeliveryType.EMERGENCY, now) == now + timedelta(minutes=10)
        assert terms.eta(DeliveryType.STANDARD, now) == now + timedelta(minutes=45)

    def test_tax_rounds_half_up_to_cents(self):
        terms = DeliveryTerms()
        assert terms.tax(Decimal("25.00")) == Decimal("2.50")
        assert terms.tax(Decimal("0.05")) == Decimal("0.01")


def test_low_stock_is_inclusive_of_threshold():
    assert StockLevel(current_quantity=10, min_threshold=10).is_low_stock
    assert not StockLevel(current_quantity=11, min_threshold=10).is_low_stock


def test_principal_ownership_checks():
    pharmacy = Principal(kind=PrincipalKind.PHARMACY, id="ph-1")
    assert pharmacy.is_pharmacy("ph-1")
    assert not pharmacy.is_pharmacy("ph-2")
    assert not pharmacy.is_customer("ph-1")
    assert Principal(kind=PrincipalKind.ADMIN, id="a").is_admin
