from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from pharmacy_orders.presentation.auth import get_principal
from pharmacy_orders.presentation.schemas import (
    CreateOrderRequest, OrderResponse, StatusUpdateRequest, TrackingRequest, StockUpdateRequest,
    StockUpdateResponse, LowStockMedicineResponse, ErrorResponse
)
from pharmacy_orders.application.create_order import CreateOrderUseCase, CreateOrderDTO
from pharmacy_orders.application.get_order import GetOrderUseCase, ListOrdersUseCase
from pharmacy_orders.application.interfaces import PharmacyDirectory
from pharmacy_orders.application.medicine_catalog import MedicineCatalog, AdjustMedicineStockUseCase
from pharmacy_orders.application.order_state_machine import OrderStateMachine
from pharmacy_orders.application.stock_reservation import StockReservationCoordinator
from pharmacy_orders.domain.exceptions import AuthorizationError, DomainException, ErrorCode
from pharmacy_orders.domain.models import Principal, PrincipalKind, StockLine
from pharmacy_orders.infrastructure.unit_of_work import UnitOfWork
from pharmacy_orders.infrastructure.http_clients import HTTPPharmacyDirectory
from pharmacy_orders.database import AsyncSessionLocal
from pharmacy_orders.config import settings

router = APIRouter()

HTTP_STATUS_BY_CODE = {
    ErrorCode.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVARIANT_VIOLATION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.UNSUPPORTED_PAYMENT_METHOD: status.HTTP_400_BAD_REQUEST,
    ErrorCode.AUTHORIZATION: status.HTTP_403_FORBIDDEN,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INSUFFICIENT_STOCK: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_STATE_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.PERSISTENCE: status.HTTP_503_SERVICE_UNAVAILABLE,
}

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def to_http_error(e: DomainException) -> HTTPException:
    return HTTPException(
        status_code=HTTP_STATUS_BY_CODE[e.code],
        detail=str(e),
        headers={"X-Error-Code": e.code.value}
    )


# Factories for the use cases
def get_unit_of_work() -> UnitOfWork:
    return UnitOfWork(AsyncSessionLocal)


def get_pharmacy_directory() -> PharmacyDirectory:
    return HTTPPharmacyDirectory(settings.PHARMACY_DIRECTORY_URL, settings.API_TOKEN)


def get_catalog(uow: UnitOfWork = Depends(get_unit_of_work)) -> MedicineCatalog:
    return MedicineCatalog(uow)


def get_create_order_use_case(
    uow: UnitOfWork = Depends(get_unit_of_work),
    catalog: MedicineCatalog = Depends(get_catalog),
    pharmacies: PharmacyDirectory = Depends(get_pharmacy_directory)
):
    return CreateOrderUseCase(
        uow,
        catalog,
        StockReservationCoordinator(catalog),
        pharmacies,
        settings.delivery_terms,
        settings.payment_methods
    )


def get_state_machine(
    uow: UnitOfWork = Depends(get_unit_of_work),
    catalog: MedicineCatalog = Depends(get_catalog)
):
    return OrderStateMachine(uow, StockReservationCoordinator(catalog), settings.delivery_terms)


@router.post(
    "/orders",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    status_code=status.HTTP_201_CREATED
)
async def create_order(
    request: CreateOrderRequest,
    principal: Principal = Depends(get_principal),
    use_case: CreateOrderUseCase = Depends(get_create_order_use_case)
):
    """Place an order for a single-pharmacy cart"""
    try:
        if principal.kind != PrincipalKind.CUSTOMER:
            raise AuthorizationError("Only customers can place orders")
        dto = CreateOrderDTO(
            customer_id=principal.id,
            items=[StockLine(medicine_id=item.medicine_id, quantity=item.quantity) for item in request.items],
            delivery_type=request.delivery_type,
            delivery_address=request.delivery_address,
            payment_method=request.payment_method,
            idempotency_key=request.idempotency_key
        )
        order = await use_case(dto)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_error(e)


@router.get("/orders", response_model=List[OrderResponse])
async def list_orders(
    principal: Principal = Depends(get_principal),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Orders visible to the caller, newest first"""
    try:
        orders = await ListOrdersUseCase(uow)(principal)
        return [OrderResponse.from_domain(order) for order in orders]
    except DomainException as e:
        raise to_http_error(e)


@router.get("/orders/{order_id}", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def get_order(
    order_id: str,
    principal: Principal = Depends(get_principal),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    try:
        order = await GetOrderUseCase(uow)(order_id, principal)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_error(e)


@router.patch("/orders/{order_id}/status", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def set_order_status(
    order_id: str,
    request: StatusUpdateRequest,
    principal: Principal = Depends(get_principal),
    state_machine: OrderStateMachine = Depends(get_state_machine)
):
    try:
        order = await state_machine.set_status(order_id, request.status, principal)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_error(e)


@router.patch("/orders/{order_id}/cancel", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def cancel_order(
    order_id: str,
    principal: Principal = Depends(get_principal),
    state_machine: OrderStateMachine = Depends(get_state_machine)
):
    """Cancel an order and put its stock back"""
    try:
        order = await state_machine.cancel(order_id, principal)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_error(e)


@router.patch("/orders/{order_id}/tracking", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def append_tracking(
    order_id: str,
    request: TrackingRequest,
    principal: Principal = Depends(get_principal),
    state_machine: OrderStateMachine = Depends(get_state_machine)
):
    try:
        order = await state_machine.append_tracking(order_id, request.status, principal, request.location)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_error(e)


@router.patch("/medicines/{medicine_id}/stock", response_model=StockUpdateResponse, responses=ERROR_RESPONSES)
async def adjust_medicine_stock(
    medicine_id: str,
    request: StockUpdateRequest,
    principal: Principal = Depends(get_principal),
    catalog: MedicineCatalog = Depends(get_catalog)
):
    try:
        adjustment = await AdjustMedicineStockUseCase(catalog)(
            medicine_id, request.quantity, request.operation, principal
        )
        return StockUpdateResponse.from_domain(adjustment)
    except DomainException as e:
        raise to_http_error(e)


@router.get("/medicines/low-stock", response_model=List[LowStockMedicineResponse], responses=ERROR_RESPONSES)
async def list_low_stock_medicines(
    pharmacy_id: Optional[str] = None,
    principal: Principal = Depends(get_principal),
    catalog: MedicineCatalog = Depends(get_catalog)
):
    try:
        medicines = await catalog.list_low_stock(principal, pharmacy_id)
        return [LowStockMedicineResponse.from_domain(medicine) for medicine in medicines]
    except DomainException as e:
        raise to_http_error(e)
