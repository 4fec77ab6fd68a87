"""Stock arithmetic shared by products and flavors.

Every function here is pure and works on any object carrying
``inventory``, ``reserved_inventory``, ``low_stock_threshold`` and ``active``
(ORM rows, pydantic models, or simple namespaces in tests).
"""
from enum import Enum
from typing import Protocol


class StockStatus(str, Enum):
    """Derived stock state, never persisted."""
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


class StockCounters(Protocol):
    inventory: int
    reserved_inventory: int
    low_stock_threshold: int
    active: bool


def available_units(entity: StockCounters) -> int:
    """Units that can still be reserved, floored at zero."""
    return max(0, entity.inventory - entity.reserved_inventory)


def _classify(available: int, threshold: int) -> StockStatus:
    if available == 0:
        return StockStatus.OUT_OF_STOCK
    if available <= threshold:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def flavor_stock_status(flavor: StockCounters) -> StockStatus:
    """Status of a single flavor; inactive flavors are out of stock."""
    if not flavor.active:
        return StockStatus.OUT_OF_STOCK
    return _classify(available_units(flavor), flavor.low_stock_threshold)


def product_counter_status(product: StockCounters) -> StockStatus:
    """Status from a product's own counters.

    Unlike flavors, ``active`` is not consulted here. Inactive products are
    hidden from the storefront by the catalog query instead.
    """
    return _classify(available_units(product), product.low_stock_threshold)


def is_flavor_out_of_stock(flavor: StockCounters) -> bool:
    return not flavor.active or available_units(flavor) == 0


def is_flavor_low_stock(flavor: StockCounters) -> bool:
    if not flavor.active:
        return False
    available = available_units(flavor)
    return 0 < available <= flavor.low_stock_threshold


def flavor_status_before_reserving(flavor: StockCounters, quantity: int) -> StockStatus:
    """Status a freshly read flavor had just before ``quantity`` units were reserved."""
    if not flavor.active:
        return StockStatus.OUT_OF_STOCK
    available = max(0, flavor.inventory - (flavor.reserved_inventory - quantity))
    return _classify(available, flavor.low_stock_threshold)
