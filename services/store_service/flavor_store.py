"""Flavor rows and the counter invariants that guard them.

All writes to flavor counters, whether from the admin routes, the flavor
migration or order reservation, go through ``FlavorInventoryStore`` so the
``reserved_inventory <= inventory`` rule is checked in one place.
"""
import logging
from typing import Any, Dict, Mapping, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from .errors import FlavorUnavailable, InsufficientInventory, NotFoundError, ValidationError
from .models import Flavor
from .repository import StoreRepository
from .stock import available_units

logger = logging.getLogger(__name__)

COUNTER_FIELDS = ("inventory", "reserved_inventory", "low_stock_threshold")
FLAVOR_FIELDS = frozenset({"name", "active", *COUNTER_FIELDS})

_COUNTER_LABELS = {
    "inventory": "Inventory",
    "reserved_inventory": "Reserved inventory",
    "low_stock_threshold": "Low stock threshold",
}


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def check_counters(current: Optional[Any], fields: Mapping[str, Any]):
    """Validate incoming counter fields against the merged row.

    ``current`` is the stored row (or None when creating). Fields missing
    from ``fields`` keep their stored value, so a lone ``reserved_inventory``
    is compared with the existing ``inventory`` and vice versa.
    """
    for name in COUNTER_FIELDS:
        if name in fields and not _is_count(fields[name]):
            raise ValidationError(
                f"{_COUNTER_LABELS[name]} must be a non-negative integer", field=name
            )

    if "inventory" not in fields and "reserved_inventory" not in fields:
        return

    inventory = fields.get("inventory", getattr(current, "inventory", 0))
    reserved = fields.get("reserved_inventory", getattr(current, "reserved_inventory", 0))
    if reserved <= inventory:
        return

    if "reserved_inventory" in fields:
        raise ValidationError(
            "Reserved inventory cannot exceed total inventory", field="reserved_inventory"
        )
    raise ValidationError(
        "Inventory cannot be less than currently reserved inventory", field="inventory"
    )


def _clean_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Flavor name is required", field="name")
    return name.strip()


class FlavorInventoryStore:
    """Create, edit, delete and reserve flavor stock."""

    def __init__(self, session: AsyncSession):
        self.repository = StoreRepository(session)

    async def get(self, flavor_id: UUID) -> Flavor:
        flavor = await self.repository.get_flavor(flavor_id)
        if flavor is None:
            raise NotFoundError("Flavor not found")
        return flavor

    async def create(
        self,
        product_id: UUID,
        name: str,
        inventory: int = 0,
        reserved_inventory: int = 0,
        low_stock_threshold: int = 5,
        active: bool = True,
    ) -> Flavor:
        if await self.repository.get_product(product_id) is None:
            raise NotFoundError("Product not found")

        name = _clean_name(name)
        fields = {
            "inventory": inventory,
            "reserved_inventory": reserved_inventory,
            "low_stock_threshold": low_stock_threshold,
        }
        check_counters(None, fields)
        if not isinstance(active, bool):
            raise ValidationError("Active must be a boolean", field="active")

        if await self.repository.get_flavor_by_product_and_name(product_id, name):
            raise ValidationError(
                f"Flavor '{name}' already exists for this product", field="name"
            )

        flavor = await self.repository.add_flavor(
            {"product_id": product_id, "name": name, "active": active, **fields}
        )
        logger.info(f"Created flavor {flavor.id} ({name}) for product {product_id}")
        return flavor

    async def update(self, flavor_id: UUID, fields: Mapping[str, Any]) -> Flavor:
        flavor = await self.get(flavor_id)

        unknown = set(fields) - FLAVOR_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown flavor fields: {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )

        changes: Dict[str, Any] = dict(fields)
        check_counters(flavor, changes)

        if "active" in changes and not isinstance(changes["active"], bool):
            raise ValidationError("Active must be a boolean", field="active")

        if "name" in changes:
            changes["name"] = _clean_name(changes["name"])
            if changes["name"] != flavor.name:
                existing = await self.repository.get_flavor_by_product_and_name(
                    flavor.product_id, changes["name"]
                )
                if existing is not None:
                    raise ValidationError(
                        f"Flavor '{changes['name']}' already exists for this product",
                        field="name",
                    )

        flavor = await self.repository.update_flavor(flavor, changes)
        logger.info(f"Updated flavor {flavor_id}: {sorted(changes)}")
        return flavor

    async def delete(self, flavor_id: UUID):
        # Sales only reference products, so there is nothing to guard here
        await self.get(flavor_id)
        await self.repository.delete_flavor(flavor_id)
        logger.info(f"Deleted flavor {flavor_id}")

    async def reserve(self, flavor: Flavor, quantity: int, label: Optional[str] = None) -> Flavor:
        """Atomically add ``quantity`` to the flavor's reserved units.

        Raises InsufficientInventory with the freshly read availability when
        another transaction got there first.
        """
        if not _is_count(quantity) or quantity == 0:
            raise ValidationError("Quantity must be a positive integer", field="quantity")

        reserved = await self.repository.increment_reserved(flavor.id, quantity)
        flavor = await self.repository.refresh(flavor)

        if not reserved:
            if not flavor.active:
                raise FlavorUnavailable(flavor.product_id, flavor.name)
            raise InsufficientInventory(available_units(flavor), quantity, label)

        return flavor
