from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pharmacy_orders.application.interfaces import UnitOfWork as AbstractUnitOfWork
from pharmacy_orders.domain.exceptions import PersistenceError
from pharmacy_orders.infrastructure.repositories import (
    SQLAlchemyMedicineRepository,
    SQLAlchemyOrderRepository,
    SQLAlchemyOutboxRepository
)


class UnitOfWork:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def __call__(self):
        async with self._session_factory() as session:
            try:
                yield _UnitOfWorkImpl(session)
                # nothing committed explicitly is discarded
                await session.rollback()
            except SQLAlchemyError as e:
                await session.rollback()
                raise PersistenceError(f"Database error: {e}") from e
            except Exception:
                await session.rollback()
                raise


class _UnitOfWorkImpl(AbstractUnitOfWork):
    def __init__(self, session: AsyncSession):
        self._session = session
        self._medicines = SQLAlchemyMedicineRepository(session)
        self._orders = SQLAlchemyOrderRepository(session)
        self._outbox = SQLAlchemyOutboxRepository(session)

    @property
    def medicines(self) -> SQLAlchemyMedicineRepository:
        return self._medicines

    @property
    def orders(self) -> SQLAlchemyOrderRepository:
        return self._orders

    @property
    def outbox(self) -> SQLAlchemyOutboxRepository:
        return self._outbox

    async def commit(self):
        await self._session.commit()

    async def rollback(self):
        await self._session.rollback()
