from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from pharmacy_orders.domain.exceptions import InvalidStateTransitionError


CENT = Decimal("0.01")


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    OUT_FOR_DELIVERY = "out-for-delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Linear happy path; CANCELLED is reachable from any non-terminal state.
ORDER_FLOW = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)
TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


class DeliveryType(str, Enum):
    EMERGENCY = "emergency"
    STANDARD = "standard"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PrincipalKind(str, Enum):
    CUSTOMER = "customer"
    PHARMACY = "pharmacy"
    ADMIN = "admin"


class Principal(BaseModel):
    """Authenticated caller, resolved once by the auth layer"""
    model_config = ConfigDict(frozen=True)

    kind: PrincipalKind
    id: str

    @property
    def is_admin(self) -> bool:
        return self.kind == PrincipalKind.ADMIN

    def is_pharmacy(self, pharmacy_id: str) -> bool:
        return self.kind == PrincipalKind.PHARMACY and self.id == pharmacy_id

    def is_customer(self, customer_id: str) -> bool:
        return self.kind == PrincipalKind.CUSTOMER and self.id == customer_id


class Pharmacy(BaseModel):
    """Value Object: pharmacy from the external directory"""
    id: str
    name: str
    is_active: bool = True


class StockLevel(BaseModel):
    current_quantity: int = Field(ge=0)
    min_threshold: int = Field(default=10, ge=0)
    unit: str = "Units"

    @property
    def is_low_stock(self) -> bool:
        return self.current_quantity <= self.min_threshold


class Medicine(BaseModel):
    """Domain Entity: medicine listed by one pharmacy"""
    id: str
    pharmacy_id: str
    name: str
    price: Decimal = Field(ge=0)
    stock: StockLevel
    is_active: bool = True


class StockAdjustment(BaseModel):
    """Result of one guarded stock change"""
    medicine_id: str
    delta: int
    new_quantity: int
    min_threshold: int

    @property
    def is_low_stock(self) -> bool:
        return self.new_quantity <= self.min_threshold


class StockLine(BaseModel):
    medicine_id: str
    quantity: int = Field(ge=1)


class OrderLine(StockLine):
    unit_price: Decimal = Field(ge=0)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Coordinates(BaseModel):
    latitude: float
    longitude: float


class DeliveryAddress(BaseModel):
    street: str
    city: str
    state: str
    zip_code: str
    coordinates: Optional[Coordinates] = None


class TrackingEntry(BaseModel):
    status: str
    location: Optional[Coordinates] = None
    timestamp: datetime


class DeliveryTerms(BaseModel):
    """Tax, fees and ETA offsets applied at checkout"""
    tax_rate: Decimal = Decimal("0.10")
    emergency_fee: Decimal = Decimal("9.99")
    standard_fee: Decimal = Decimal("4.99")
    emergency_minutes: int = 10
    standard_minutes: int = 45

    def fee(self, delivery_type: DeliveryType) -> Decimal:
        if delivery_type == DeliveryType.EMERGENCY:
            return self.emergency_fee
        return self.standard_fee

    def eta(self, delivery_type: DeliveryType, now: datetime) -> datetime:
        if delivery_type == DeliveryType.EMERGENCY:
            return now + timedelta(minutes=self.emergency_minutes)
        return now + timedelta(minutes=self.standard_minutes)

    def tax(self, subtotal: Decimal) -> Decimal:
        return (subtotal * self.tax_rate).quantize(CENT, rounding=ROUND_HALF_UP)


class Order(BaseModel):
    """Domain Entity: delivery order placed with a single pharmacy"""
    id: str
    customer_id: str
    pharmacy_id: str
    pharmacy_name: Optional[str] = None
    lines: list[OrderLine]
    subtotal: Decimal
    tax: Decimal
    delivery_fee: Decimal
    total_amount: Decimal
    delivery_type: DeliveryType
    delivery_address: DeliveryAddress
    payment_method: str
    payment_status: PaymentStatus = PaymentStatus.PENDING
    status: OrderStatus = OrderStatus.PENDING
    estimated_delivery_time: datetime
    actual_delivery_time: Optional[datetime] = None
    tracking: list[TrackingEntry] = Field(default_factory=list)
    idempotency_key: Optional[str] = None
    version: int = 1
    created_at: datetime
    updated_at: datetime

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_transition_to(self, new_status: OrderStatus) -> bool:
        """Forward moves along ORDER_FLOW, or cancellation, from a non-terminal state"""
        if self.is_terminal():
            return False
        if new_status == OrderStatus.CANCELLED:
            return True
        if new_status not in ORDER_FLOW:
            return False
        return ORDER_FLOW.index(new_status) > ORDER_FLOW.index(self.status)

    def transition_to(self, new_status: OrderStatus, now: Optional[datetime] = None) -> None:
        if not self.can_transition_to(new_status):
            raise InvalidStateTransitionError(
                f"Cannot move order {self.id} from {self.status.value} to {new_status.value}"
            )
        now = now or datetime.now(timezone.utc)
        self.status = new_status
        if new_status == OrderStatus.DELIVERED:
            self.actual_delivery_time = now
            self.payment_status = PaymentStatus.COMPLETED
        self.updated_at = now

    def stock_lines(self) -> list[StockLine]:
        return [StockLine(medicine_id=line.medicine_id, quantity=line.quantity) for line in self.lines]
