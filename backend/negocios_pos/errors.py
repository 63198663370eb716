# Overview: Domain error taxonomy shared by services and routes.

"""
Domain errors raised by the transactional core.

Every error carries a human-readable message, a structured `details` dict
and the HTTP status the API layer should answer with. Routes render
`{"error": str(e), "details": e.details}` for all of them except
InfrastructureError, whose cause is logged and never sent to the client.
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for domain errors."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "details": self.details}


class ProductNotFound(PosError):
    """Product missing, inactive, or owned by another tenant."""
    status_code = 404

    def __init__(self, product_id):
        super().__init__(
            f"Product not found or inactive: {product_id}",
            details={"product_id": product_id},
        )
        self.product_id = product_id


class InsufficientStock(PosError):
    status_code = 409

    def __init__(self, product_name: str, available: int, requested: int):
        super().__init__(
            f'Insufficient stock for "{product_name}". Available: {available}, requested: {requested}',
            details={
                "product_name": product_name,
                "available": available,
                "requested": requested,
            },
        )
        self.product_name = product_name
        self.available = available
        self.requested = requested


class ConfigurationError(PosError):
    """Tenant is missing configuration the core depends on (invoice sequence)."""
    status_code = 409


class NoTenantAssigned(PosError):
    status_code = 400

    def __init__(self, message: str = "User has no tenant assigned"):
        super().__init__(message)


class UserInactiveOrMissing(PosError):
    status_code = 404

    def __init__(self, message: str = "User not found or inactive"):
        super().__init__(message)


class EmptyReturn(PosError):
    status_code = 400

    def __init__(self, message: str = "No products to return"):
        super().__init__(message)


class InfrastructureError(PosError):
    """Persistence failure after rollback. The message is safe to show; the cause is not."""
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)


class ResourceNotFound(PosError):
    """Sale, tenant or user missing or outside the caller's tenant."""
    status_code = 404

    def __init__(self, resource: str, resource_id=None):
        super().__init__(
            f"{resource} not found",
            details={"resource": resource.lower(), "id": resource_id},
        )
