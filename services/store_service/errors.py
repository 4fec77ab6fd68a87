"""Errors raised by the store inventory core.

The core raises these and never logs or swallows them; the route layer maps
``status_code`` onto the HTTP response.
"""
from typing import Any, Dict, Optional


class StoreError(Exception):
    """Base class for expected store failures."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationError(StoreError):
    """Malformed or invariant-violating input."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


class NotFoundError(StoreError):
    """Referenced product, flavor or sale does not exist."""

    status_code = 404


class FlavorUnavailable(StoreError):
    """Named flavor is inactive or missing for the product at order time."""

    def __init__(self, product_id: Any, flavor_name: str):
        super().__init__(f"Flavor not available: {flavor_name}")
        self.product_id = product_id
        self.flavor_name = flavor_name


class InsufficientInventory(StoreError):
    """Order quantity exceeds the flavor's available units."""

    def __init__(self, available: int, requested: int, label: Optional[str] = None):
        prefix = f"Insufficient inventory for {label}" if label else "Insufficient inventory"
        super().__init__(f"{prefix}. Available: {available}, Requested: {requested}")
        self.available = available
        self.requested = requested

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(available=self.available, requested=self.requested)
        return data


class ProductHasSalesError(ValidationError):
    """Product is referenced by sales and can only be deactivated."""

    suggestion = (
        "Set the product as inactive to hide it from customers while "
        "preserving sales history."
    )

    def __init__(self):
        super().__init__(
            "Cannot delete product with existing sales. Consider deactivating it instead."
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["suggestion"] = self.suggestion
        return data
