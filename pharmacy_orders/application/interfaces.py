from abc import ABC, abstractmethod
from typing import Optional, List

from pharmacy_orders.domain.models import Medicine, Order, Pharmacy, StockAdjustment, TrackingEntry


class MedicineRepository(ABC):
    @abstractmethod
    async def get_by_id(self, medicine_id: str) -> Optional[Medicine]:
        pass

    @abstractmethod
    async def adjust_stock(self, medicine_id: str, delta: int) -> Optional[StockAdjustment]:
        """Conditional write: applies delta only if the medicine is active and the result is >= 0.

        Returns None when no row was changed.
        """
        pass

    @abstractmethod
    async def list_low_stock(self, pharmacy_id: Optional[str] = None) -> List[Medicine]:
        pass


class OrderRepository(ABC):
    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def get_by_idempotency_key(self, customer_id: str, key: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def create(self, order: Order) -> None:
        pass

    @abstractmethod
    async def list_for_customer(self, customer_id: str) -> List[Order]:
        pass

    @abstractmethod
    async def list_for_pharmacy(self, pharmacy_id: str) -> List[Order]:
        pass

    @abstractmethod
    async def list_all(self) -> List[Order]:
        pass

    @abstractmethod
    async def update_state(self, order: Order, expected_version: int) -> None:
        """Persists status fields if the stored version still equals expected_version."""
        pass

    @abstractmethod
    async def append_tracking(self, order: Order, entry: TrackingEntry, expected_version: int) -> None:
        pass


class OutboxRepository(ABC):
    @abstractmethod
    async def create(self, event_type: str, event_data: dict, aggregate_id: str) -> str:
        pass

    @abstractmethod
    async def get_pending(self, limit: int = 10) -> List[dict]:
        pass

    @abstractmethod
    async def mark_as_published(self, event_id: str) -> None:
        pass


class UnitOfWork(ABC):
    @property
    @abstractmethod
    def medicines(self) -> MedicineRepository:
        pass

    @property
    @abstractmethod
    def orders(self) -> OrderRepository:
        pass

    @property
    @abstractmethod
    def outbox(self) -> OutboxRepository:
        pass

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


class PharmacyDirectory(ABC):
    @abstractmethod
    async def get_pharmacy(self, pharmacy_id: str) -> Optional[Pharmacy]:
        pass


class EventPublisher(ABC):
    @abstractmethod
    async def publish(self, event_type: str, payload: dict, key: str) -> bool:
        pass
