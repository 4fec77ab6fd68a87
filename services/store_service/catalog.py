"""Catalog listing and back-office operations for products, flavors and sales."""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from shared.events import SaleStatusChangedEvent
from shared.outbox import save_event_to_outbox

from .aggregation import (
    available_flavors,
    is_product_listed,
    low_stock_flavors,
    out_of_stock_flavors,
    product_stock_status,
    stock_summary,
)
from .errors import NotFoundError, ProductHasSalesError, ValidationError
from .flavor_store import COUNTER_FIELDS, FlavorInventoryStore, check_counters
from .models import Flavor, Product, Sale, SaleStatus
from .repository import StoreRepository
from .stock import StockStatus

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = frozenset({
    "name", "puffs", "price", "image", "sabores", "description", "popular",
    "active", "show_on_homepage", *COUNTER_FIELDS,
})

DEFAULT_CATALOGUE = [
    {
        "name": "CYBER",
        "puffs": 20000,
        "price": "240",
        "image": "CYBER_1757558165027.png",
        "sabores": ["Mango Ice", "Blueberry", "Cola", "Grape", "Sandía Chill"],
        "popular": True,
        "description": "Vape premium CYBER con 20,000 puffs y una gran variedad de sabores refrescantes.",
    },
    {
        "name": "CUBE",
        "puffs": 20000,
        "price": "220",
        "image": "CUBE_1757558165026.png",
        "sabores": ["Strawberry Kiwi", "Menta", "Cola", "Frutas Tropicales", "Piña"],
        "description": "Vape CUBE con diseño moderno y 20,000 puffs.",
    },
    {
        "name": "ENERGY",
        "puffs": 15000,
        "price": "170",
        "image": "ENERGY_1757558165028.png",
        "sabores": ["Blue Razz", "Mango Chill", "Fresa", "Cereza", "Uva"],
        "description": "Vape ENERGY con 15,000 puffs y sabores intensos.",
    },
    {
        "name": "TORCH",
        "puffs": 6000,
        "price": "125",
        "image": "TORCH (1)_1757558165028.png",
        "sabores": ["Menta", "Banana Ice", "Frutos Rojos", "Chicle", "Limonada"],
        "description": "Vape TORCH compacto con 6,000 puffs.",
    },
    {
        "name": "BAR",
        "puffs": 800,
        "price": "65",
        "image": "BAR (1)_1757558165026.png",
        "sabores": ["Sandía", "Uva", "Cola", "Mango", "Piña Colada"],
        "description": "Vape BAR económico con 800 puffs.",
    },
]
SEED_INVENTORY = 100
SEED_LOW_STOCK_THRESHOLD = 10
MIGRATED_FLAVOR_THRESHOLD = 10


def _money(value: Any, field: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", field=field)
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{field} must be greater than zero", field=field)
    return amount


def _clean_product_fields(current: Optional[Product], fields: Mapping[str, Any]) -> Dict[str, Any]:
    changes = dict(fields)
    check_counters(current, changes)

    if "name" in changes:
        if not isinstance(changes["name"], str) or not changes["name"].strip():
            raise ValidationError("Product name is required", field="name")
        changes["name"] = changes["name"].strip()
    if "price" in changes:
        changes["price"] = _money(changes["price"], "price")
    if "puffs" in changes:
        puffs = changes["puffs"]
        if isinstance(puffs, bool) or not isinstance(puffs, int) or puffs < 0:
            raise ValidationError("Puffs must be a non-negative integer", field="puffs")
    if "sabores" in changes:
        sabores = changes["sabores"]
        if not isinstance(sabores, list) or not all(isinstance(s, str) for s in sabores):
            raise ValidationError("Sabores must be a list of names", field="sabores")
    for flag in ("popular", "active", "show_on_homepage"):
        if flag in changes and not isinstance(changes[flag], bool):
            raise ValidationError(f"{flag} must be a boolean", field=flag)
    return changes


def _entry(product: Product, flavors: Sequence[Flavor], all_flavors: Sequence[Flavor]):
    return {"product": product, "flavors": list(flavors), **stock_summary(product, all_flavors)}


class CatalogService:
    """Product, flavor and sale operations behind the REST routes."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repository = StoreRepository(session)
        self.flavor_store = FlavorInventoryStore(session)

    # Catalog
    async def list_storefront(self) -> List[Dict[str, Any]]:
        """Products a customer can currently order, with only their orderable flavors."""
        entries = []
        for product in await self.repository.list_active_products():
            if not product.show_on_homepage:
                continue
            flavors = await self.repository.get_flavors_by_product(product.id)
            if is_product_listed(product, flavors):
                entries.append(_entry(product, available_flavors(flavors), flavors))
        return entries

    async def list_admin_products(self) -> List[Dict[str, Any]]:
        entries = []
        for product in await self.repository.list_products():
            flavors = await self.repository.get_flavors_by_product(product.id)
            entries.append(_entry(product, flavors, flavors))
        return entries

    async def get_product(self, product_id: UUID) -> Dict[str, Any]:
        product = await self._product_or_404(product_id)
        flavors = await self.repository.get_flavors_by_product(product.id)
        return _entry(product, flavors, flavors)

    async def create_product(self, fields: Mapping[str, Any]) -> Product:
        unknown = set(fields) - PRODUCT_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown product fields: {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )
        for required in ("name", "puffs", "price"):
            if fields.get(required) is None:
                raise ValidationError(f"{required} is required", field=required)

        product = await self.repository.add_product(_clean_product_fields(None, fields))
        await self.session.commit()
        logger.info(f"Created product {product.id}: {product.name}")
        return product

    async def update_product(self, product_id: UUID, fields: Mapping[str, Any]) -> Product:
        product = await self._product_or_404(product_id)

        updates = {key: value for key, value in fields.items() if key in PRODUCT_FIELDS}
        if not updates:
            raise ValidationError("No valid fields to update")

        product = await self.repository.update_product(
            product, _clean_product_fields(product, updates)
        )
        await self.session.commit()
        logger.info(f"Updated product {product_id}: {sorted(updates)}")
        return product

    async def delete_product(self, product_id: UUID):
        await self._product_or_404(product_id)
        if await self.repository.product_has_sales(product_id):
            raise ProductHasSalesError()

        await self.repository.delete_product(product_id)
        await self.session.commit()
        logger.info(f"Deleted product {product_id} and its flavors")

    async def seed_products(self) -> Dict[str, Any]:
        """Insert the default catalogue, skipping names that already exist."""
        existing = {product.name for product in await self.repository.list_products()}
        details = []

        for data in DEFAULT_CATALOGUE:
            if data["name"] in existing:
                details.append({
                    "name": data["name"],
                    "status": "skipped",
                    "reason": "Product already exists",
                })
                continue

            product = await self.repository.add_product(_clean_product_fields(None, {
                **data,
                "active": True,
                "inventory": SEED_INVENTORY,
                "reserved_inventory": 0,
                "low_stock_threshold": SEED_LOW_STOCK_THRESHOLD,
            }))
            details.append({"name": product.name, "status": "created", "id": product.id})

        await self.session.commit()

        created = sum(1 for d in details if d["status"] == "created")
        logger.info(f"Seeding completed: {created} products created, {len(details) - created} skipped")
        return {
            "created": created,
            "skipped": len(details) - created,
            "total": len(DEFAULT_CATALOGUE),
            "details": details,
        }

    async def migrate_flavors(self) -> Dict[str, Any]:
        """Turn legacy ``sabores`` name lists into flavor rows.

        The product's inventory is split evenly; the first
        ``inventory % n`` flavors receive one extra unit.
        """
        results = []
        created_total = skipped_total = processed = 0

        for product in await self.repository.list_products():
            existing = await self.repository.get_flavors_by_product(product.id)
            sabores = product.sabores or []

            if existing or not sabores:
                results.append({
                    "product_id": product.id,
                    "product_name": product.name,
                    "sabores_count": len(sabores),
                    "flavors_created": 0,
                    "flavors_skipped": len(existing),
                    "status": "skipped",
                    "reason": "Product already has flavors" if existing else "No sabores to migrate",
                })
                continue

            base, remainder = divmod(product.inventory or 0, len(sabores))
            seen = set()
            created = skipped = 0

            for index, raw_name in enumerate(sabores):
                name = raw_name.strip()
                if not name:
                    continue
                if name.lower() in seen:
                    skipped += 1
                    logger.info(f"Skipping duplicate flavor {name} for {product.name}")
                    continue
                seen.add(name.lower())

                await self.flavor_store.create(
                    product.id,
                    name,
                    inventory=base + (1 if index < remainder else 0),
                    reserved_inventory=0,
                    low_stock_threshold=MIGRATED_FLAVOR_THRESHOLD,
                    active=True,
                )
                created += 1

            processed += 1
            created_total += created
            skipped_total += skipped
            results.append({
                "product_id": product.id,
                "product_name": product.name,
                "sabores_count": len(sabores),
                "flavors_created": created,
                "flavors_skipped": skipped,
                "status": "migrated",
            })

        await self.session.commit()
        logger.info(f"Flavor migration: {processed} products, {created_total} flavors created")

        return {
            "products_processed": processed,
            "products_skipped": len(results) - processed,
            "flavors_created": created_total,
            "flavors_skipped": skipped_total,
            "details": results,
        }

    # Flavors
    async def list_product_flavors(self, product_id: UUID) -> List[Flavor]:
        await self._product_or_404(product_id)
        return await self.repository.get_flavors_by_product(product_id)

    async def create_flavor(self, product_id: UUID, fields: Mapping[str, Any]) -> Flavor:
        flavor = await self.flavor_store.create(product_id, **fields)
        await self.session.commit()
        return flavor

    async def update_flavor(self, flavor_id: UUID, fields: Mapping[str, Any]) -> Flavor:
        flavor = await self.flavor_store.update(flavor_id, fields)
        await self.session.commit()
        return flavor

    async def delete_flavor(self, flavor_id: UUID):
        await self.flavor_store.delete(flavor_id)
        await self.session.commit()

    # Sales
    async def list_sales(self) -> List[Sale]:
        return await self.repository.list_sales()

    async def record_sale(self, fields: Mapping[str, Any]) -> Sale:
        """Record a sale entered by hand in the back office."""
        await self._product_or_404(fields["product_id"])
        quantity = fields.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError("Quantity must be a positive integer", field="quantity")

        sale = await self.repository.add_sale({
            **fields,
            "unit_price": _money(fields.get("unit_price"), "unit_price"),
            "total_amount": _money(fields.get("total_amount"), "total_amount"),
            "status": SaleStatus.PENDING.value,
        })
        await self.session.commit()
        logger.info(f"Recorded sale {sale.id} for product {sale.product_id}")
        return sale

    async def update_sale_status(self, sale_id: UUID, status: str) -> Sale:
        if status not in {s.value for s in SaleStatus}:
            raise ValidationError("Invalid status value", field="status")

        sale = await self.repository.get_sale(sale_id)
        if sale is None:
            raise NotFoundError("Sale not found")

        previous = sale.status
        sale.status = status
        await save_event_to_outbox(self.session, SaleStatusChangedEvent(
            aggregate_id=sale.id,
            sale_id=sale.id,
            previous_status=previous,
            status=status,
            customer_email=sale.customer_email,
        ))
        await self.session.commit()
        logger.info(f"Sale {sale_id} status {previous} -> {status}")
        return sale

    # Dashboard
    async def dashboard_stats(self) -> Dict[str, Any]:
        totals = await self.repository.sales_totals()
        products = await self.repository.list_products()

        status_counts = {status: 0 for status in StockStatus}
        low_flavors = out_flavors = 0
        for product in products:
            flavors = await self.repository.get_flavors_by_product(product.id)
            status_counts[product_stock_status(product, flavors)] += 1
            low_flavors += len(low_stock_flavors(flavors))
            out_flavors += len(out_of_stock_flavors(flavors))

        return {
            "total_sales": totals["total_sales"],
            "total_revenue": Decimal(str(totals["total_revenue"])).quantize(Decimal("0.01")),
            "total_products": len(products),
            "products_in_stock": status_counts[StockStatus.IN_STOCK],
            "products_low_stock": status_counts[StockStatus.LOW_STOCK],
            "products_out_of_stock": status_counts[StockStatus.OUT_OF_STOCK],
            "low_stock_flavors": low_flavors,
            "out_of_stock_flavors": out_flavors,
        }

    async def _product_or_404(self, product_id: UUID) -> Product:
        product = await self.repository.get_product(product_id)
        if product is None:
            raise NotFoundError("Product not found")
        return product
