"""Roll flavor-level stock up to the product level."""
from typing import Any, Dict, List, Sequence

from .stock import (
    StockCounters,
    StockStatus,
    available_units,
    is_flavor_low_stock,
    is_flavor_out_of_stock,
    product_counter_status,
)


def _active(flavors: Sequence[StockCounters]) -> List[StockCounters]:
    return [flavor for flavor in flavors if flavor.active]


def product_available_inventory(
    product: StockCounters, flavors: Sequence[StockCounters]
) -> int:
    """Sellable units of a product.

    A product with flavors ignores its own counters entirely and sums the
    active flavors; a product without flavors falls back to its counters.
    """
    if flavors:
        return sum(available_units(flavor) for flavor in _active(flavors))
    return available_units(product)


def product_stock_status(
    product: StockCounters, flavors: Sequence[StockCounters]
) -> StockStatus:
    if not flavors:
        return product_counter_status(product)

    active_flavors = _active(flavors)
    if not active_flavors or all(is_flavor_out_of_stock(f) for f in active_flavors):
        return StockStatus.OUT_OF_STOCK
    if any(is_flavor_low_stock(f) for f in active_flavors):
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def available_flavors(flavors: Sequence[StockCounters]) -> list:
    """Flavors a customer can order, in the order given."""
    return [f for f in flavors if f.active and not is_flavor_out_of_stock(f)]


def low_stock_flavors(flavors: Sequence[StockCounters]) -> list:
    return [f for f in flavors if f.active and is_flavor_low_stock(f)]


def out_of_stock_flavors(flavors: Sequence[StockCounters]) -> list:
    return [f for f in flavors if f.active and is_flavor_out_of_stock(f)]


def is_product_listed(product: StockCounters, flavors: Sequence[StockCounters]) -> bool:
    """Whether the storefront shows the product at all."""
    if flavors:
        return bool(available_flavors(flavors))
    return available_units(product) > 0


def stock_summary(product: StockCounters, flavors: Sequence[StockCounters]) -> Dict[str, Any]:
    """Availability figures shown next to a product in the back office."""
    return {
        "available_inventory": product_available_inventory(product, flavors),
        "stock_status": product_stock_status(product, flavors).value,
        "flavor_count": len(flavors),
        "available_flavor_count": len(available_flavors(flavors)),
        "low_stock_flavor_count": len(low_stock_flavors(flavors)),
        "out_of_stock_flavor_count": len(out_of_stock_flavors(flavors)),
    }
