from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pharmacy_orders.domain.models import (
    Coordinates, DeliveryAddress, DeliveryType, Medicine, Order, OrderStatus, PaymentStatus,
    StockAdjustment,
)


class OrderItemRequest(BaseModel):
    medicine_id: str
    quantity: int = Field(ge=1)


class CreateOrderRequest(BaseModel):
    items: List[OrderItemRequest]
    delivery_type: DeliveryType
    delivery_address: DeliveryAddress
    payment_method: str
    idempotency_key: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: str


class TrackingRequest(BaseModel):
    status: str
    location: Optional[Coordinates] = None


class StockUpdateRequest(BaseModel):
    quantity: int
    operation: str


class OrderLineResponse(BaseModel):
    medicine_id: str
    quantity: int
    unit_price: Decimal


class TrackingEntryResponse(BaseModel):
    status: str
    location: Optional[Coordinates] = None
    timestamp: datetime


class OrderResponse(BaseModel):
    id: str
    customer_id: str
    pharmacy_id: str
    pharmacy_name: Optional[str] = None
    items: List[OrderLineResponse]
    subtotal: Decimal
    tax: Decimal
    delivery_fee: Decimal
    total_amount: Decimal
    delivery_type: DeliveryType
    delivery_address: DeliveryAddress
    payment_method: str
    payment_status: PaymentStatus
    status: OrderStatus
    estimated_delivery_time: datetime
    actual_delivery_time: Optional[datetime] = None
    tracking: List[TrackingEntryResponse]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, order: Order):
        return cls(
            id=order.id,
            customer_id=order.customer_id,
            pharmacy_id=order.pharmacy_id,
            pharmacy_name=order.pharmacy_name,
            items=[
                OrderLineResponse(medicine_id=line.medicine_id, quantity=line.quantity, unit_price=line.unit_price)
                for line in order.lines
            ],
            subtotal=order.subtotal,
            tax=order.tax,
            delivery_fee=order.delivery_fee,
            total_amount=order.total_amount,
            delivery_type=order.delivery_type,
            delivery_address=order.delivery_address,
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            status=order.status,
            estimated_delivery_time=order.estimated_delivery_time,
            actual_delivery_time=order.actual_delivery_time,
            tracking=[
                TrackingEntryResponse(status=entry.status, location=entry.location, timestamp=entry.timestamp)
                for entry in order.tracking
            ],
            created_at=order.created_at,
            updated_at=order.updated_at
        )


class StockUpdateResponse(BaseModel):
    medicine_id: str
    current_stock: int
    is_low_stock: bool

    @classmethod
    def from_domain(cls, adjustment: StockAdjustment):
        return cls(
            medicine_id=adjustment.medicine_id,
            current_stock=adjustment.new_quantity,
            is_low_stock=adjustment.is_low_stock
        )


class LowStockMedicineResponse(BaseModel):
    id: str
    pharmacy_id: str
    name: str
    current_quantity: int
    min_threshold: int
    unit: str

    @classmethod
    def from_domain(cls, medicine: Medicine):
        return cls(
            id=medicine.id,
            pharmacy_id=medicine.pharmacy_id,
            name=medicine.name,
            current_quantity=medicine.stock.current_quantity,
            min_threshold=medicine.stock.min_threshold,
            unit=medicine.stock.unit
        )


class ErrorResponse(BaseModel):
    detail: str
