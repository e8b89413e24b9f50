# backend/utils/errors.py
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class for every error a service may raise toward the HTTP layer.

    Each subclass maps to one HTTP status and a stable machine-readable code;
    `message` is always safe to show to the client.
    """

    status_code = 500
    code = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.code, "detail": self.message}
        body.update(self.extra)
        return body


class ValidationError(DomainError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid request"

    def __init__(self, message: Optional[str] = None, *, field: Optional[str] = None, **extra: Any):
        if field is not None:
            extra["field"] = field
        super().__init__(message, **extra)
        self.field = field


class InvalidTransition(DomainError):
    status_code = 400
    code = "invalid_transition"
    default_message = "Transition not allowed"


class Forbidden(DomainError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class NotFound(DomainError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class InsufficientStock(DomainError):
    status_code = 409
    code = "insufficient_stock"

    def __init__(self, product_id: int, message: Optional[str] = None):
        super().__init__(message or f"Insufficient stock for product {product_id}", product_id=product_id)
        self.product_id = product_id


class MappingRequired(DomainError):
    """The customer is not mapped to the employee; the caller may create the
    mapping and retry the identical request."""

    status_code = 409
    code = "mapping_required"

    def __init__(self, customer_id: int, employee_id: int):
        super().__init__(
            f"Customer {customer_id} is not assigned to employee {employee_id}",
            mapping_required=True,
            customer_id=customer_id,
            employee_id=employee_id,
        )
        self.customer_id = customer_id
        self.employee_id = employee_id


class Conflict(DomainError):
    status_code = 409
    code = "conflict"
    default_message = "Conflict"


class InternalError(DomainError):
    pass
