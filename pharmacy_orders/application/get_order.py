from typing import List

from pharmacy_orders.domain.models import Order, Principal, PrincipalKind
from pharmacy_orders.domain.exceptions import AuthorizationError, OrderNotFoundError


class GetOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str, principal: Principal) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
        if not order:
            raise OrderNotFoundError(order_id)
        if not (principal.is_customer(order.customer_id) or principal.is_pharmacy(order.pharmacy_id)):
            raise AuthorizationError("Not authorized to access this order")
        return order


class ListOrdersUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, principal: Principal) -> List[Order]:
        async with self._uow() as uow:
            if principal.kind == PrincipalKind.CUSTOMER:
                return await uow.orders.list_for_customer(principal.id)
            if principal.kind == PrincipalKind.PHARMACY:
                return await uow.orders.list_for_pharmacy(principal.id)
            return await uow.orders.list_all()
