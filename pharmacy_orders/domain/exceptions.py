from enum import Enum


class ErrorCode(str, Enum):
    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    INVARIANT_VIOLATION = "invariant_violation"
    INSUFFICIENT_STOCK = "insufficient_stock"
    INVALID_STATE_TRANSITION = "invalid_state_transition"
    UNSUPPORTED_PAYMENT_METHOD = "unsupported_payment_method"
    AUTHORIZATION = "authorization_error"
    PERSISTENCE = "persistence_error"


class DomainException(Exception):
    code: ErrorCode = ErrorCode.VALIDATION


class ValidationError(DomainException):
    code = ErrorCode.VALIDATION


class EmptyCartError(ValidationError):
    def __init__(self):
        super().__init__("Order must contain at least one item")


class NotFoundError(DomainException):
    code = ErrorCode.NOT_FOUND


class MedicineNotFoundError(NotFoundError):
    def __init__(self, medicine_id: str, message: str | None = None):
        self.medicine_id = medicine_id
        super().__init__(message or f"Medicine {medicine_id} not found")


class MedicineInactiveError(MedicineNotFoundError):
    def __init__(self, medicine_id: str):
        super().__init__(medicine_id, f"Medicine {medicine_id} is inactive")


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class PharmacyNotFoundError(NotFoundError):
    def __init__(self, pharmacy_id: str):
        self.pharmacy_id = pharmacy_id
        super().__init__(f"Pharmacy {pharmacy_id} not found or inactive")


class InvariantViolation(DomainException):
    code = ErrorCode.INVARIANT_VIOLATION


class CrossPharmacyMixError(InvariantViolation):
    def __init__(self, pharmacy_ids):
        self.pharmacy_ids = sorted(set(pharmacy_ids))
        super().__init__("All items must be from the same pharmacy")


class InsufficientStockError(DomainException):
    code = ErrorCode.INSUFFICIENT_STOCK

    def __init__(self, medicine_id: str, available: int, requested: int):
        self.medicine_id = medicine_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for medicine {medicine_id}. "
            f"Available: {available}, requested: {requested}"
        )


class InvalidStateTransitionError(DomainException):
    code = ErrorCode.INVALID_STATE_TRANSITION


class StaleOrderError(InvalidStateTransitionError):
    """Raised when the order changed between read and write."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} was modified concurrently")


class UnsupportedPaymentMethodError(DomainException):
    code = ErrorCode.UNSUPPORTED_PAYMENT_METHOD

    def __init__(self, payment_method: str):
        self.payment_method = payment_method
        super().__init__(f"Payment method '{payment_method}' is not supported")


class AuthorizationError(DomainException):
    code = ErrorCode.AUTHORIZATION


class PersistenceError(DomainException):
    code = ErrorCode.PERSISTENCE


class DuplicateOrderError(PersistenceError):
    def __init__(self, idempotency_key: str):
        self.idempotency_key = idempotency_key
        super().__init__(f"Order with idempotency key {idempotency_key} already exists")


class PharmacyDirectoryError(PersistenceError):
    pass
