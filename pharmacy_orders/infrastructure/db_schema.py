from sqlalchemy import (
    Table, Column, String, Integer, Numeric, Boolean, Enum, DateTime, JSON, Float, MetaData,
    ForeignKey, CheckConstraint, Index, UniqueConstraint,
)
from sqlalchemy.sql import func

from pharmacy_orders.domain.models import DeliveryType, OrderStatus, PaymentStatus

metadata = MetaData()


def _enum(enum_cls, name: str) -> Enum:
    # store values ("out-for-delivery"), not member names
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
    )


medicines_tbl = Table(
    "medicines",
    metadata,
    Column("id", String, primary_key=True),
    Column("pharmacy_id", String, nullable=False, index=True),
    Column("name", String, nullable=False),
    Column("price", Numeric(10, 2), nullable=False),
    Column("current_quantity", Integer, nullable=False, default=0),
    Column("min_threshold", Integer, nullable=False, default=10),
    Column("unit", String, nullable=False, default="Units"),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now()),
    CheckConstraint("current_quantity >= 0", name="ck_medicines_quantity_non_negative"),
    CheckConstraint("min_threshold >= 0", name="ck_medicines_threshold_non_negative"),
    CheckConstraint("price >= 0", name="ck_medicines_price_non_negative"),
)


orders_tbl = Table(
    "orders",
    metadata,
    Column("id", String, primary_key=True),
    Column("customer_id", String, nullable=False),
    Column("pharmacy_id", String, nullable=False),
    Column("pharmacy_name", String, nullable=True),
    Column("subtotal", Numeric(12, 2), nullable=False),
    Column("tax", Numeric(12, 2), nullable=False),
    Column("delivery_fee", Numeric(12, 2), nullable=False),
    Column("total_amount", Numeric(12, 2), nullable=False),
    Column("delivery_type", _enum(DeliveryType, "delivery_type"), nullable=False),
    Column("delivery_address", JSON, nullable=False),
    Column("payment_method", String, nullable=False),
    Column("payment_status", _enum(PaymentStatus, "payment_status"), nullable=False,
           default=PaymentStatus.PENDING),
    Column("status", _enum(OrderStatus, "order_status"), nullable=False, default=OrderStatus.PENDING),
    Column("estimated_delivery_time", DateTime(timezone=True), nullable=False),
    Column("actual_delivery_time", DateTime(timezone=True), nullable=True),
    Column("idempotency_key", String, nullable=True),
    Column("version", Integer, nullable=False, default=1),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now()),
    Index("ix_orders_customer_status", "customer_id", "status"),
    Index("ix_orders_pharmacy_status", "pharmacy_id", "status"),
    # keys are scoped per customer
    UniqueConstraint("customer_id", "idempotency_key", name="uq_orders_customer_idempotency_key"),
)


order_lines_tbl = Table(
    "order_lines",
    metadata,
    Column("order_id", String, ForeignKey("orders.id"), primary_key=True),
    Column("position", Integer, primary_key=True),
    Column("medicine_id", String, nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", Numeric(10, 2), nullable=False),
    CheckConstraint("quantity >= 1", name="ck_order_lines_quantity_positive"),
)


order_tracking_tbl = Table(
    "order_tracking",
    metadata,
    Column("order_id", String, ForeignKey("orders.id"), primary_key=True),
    Column("position", Integer, primary_key=True),
    Column("status", String, nullable=False),
    Column("latitude", Float, nullable=True),
    Column("longitude", Float, nullable=True),
    Column("timestamp", DateTime(timezone=True), nullable=False),
)


outbox_events_tbl = Table(
    "outbox_events",
    metadata,
    Column("id", String, primary_key=True),
    Column("event_type", String, nullable=False),
    Column("event_data", JSON, nullable=False),
    Column("aggregate_id", String, nullable=False),
    Column("status", String, default="pending"),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("published_at", DateTime(timezone=True), nullable=True),
)
