"""Persistence access for products, flavors and sales."""
import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Flavor, Product, Sale

logger = logging.getLogger(__name__)


class StoreRepository:
    """Thin query layer over a single AsyncSession.

    Nothing here validates or commits; callers own the transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # Products
    async def get_product(self, product_id: UUID) -> Optional[Product]:
        result = await self.session.execute(
            select(Product).where(Product.id == product_id)
        )
        return result.scalar_one_or_none()

    async def list_products(self) -> List[Product]:
        result = await self.session.execute(
            select(Product).order_by(Product.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_active_products(self) -> List[Product]:
        result = await self.session.execute(
            select(Product)
            .where(Product.active.is_(True))
            .order_by(Product.created_at.desc())
        )
        return list(result.scalars().all())

    async def add_product(self, fields: Dict[str, Any]) -> Product:
        product = Product(**fields)
        self.session.add(product)
        await self.session.flush()
        return product

    async def update_product(self, product: Product, fields: Dict[str, Any]) -> Product:
        for key, value in fields.items():
            setattr(product, key, value)
        await self.session.flush()
        return product

    async def delete_product(self, product_id: UUID):
        await self.session.execute(delete(Flavor).where(Flavor.product_id == product_id))
        await self.session.execute(delete(Product).where(Product.id == product_id))

    async def product_has_sales(self, product_id: UUID) -> bool:
        result = await self.session.execute(
            select(func.count()).select_from(Sale).where(Sale.product_id == product_id)
        )
        return result.scalar_one() > 0

    # Flavors
    async def get_flavor(self, flavor_id: UUID) -> Optional[Flavor]:
        result = await self.session.execute(
            select(Flavor).where(Flavor.id == flavor_id)
        )
        return result.scalar_one_or_none()

    async def get_flavors_by_product(self, product_id: UUID) -> List[Flavor]:
        result = await self.session.execute(
            select(Flavor)
            .where(Flavor.product_id == product_id)
            .order_by(Flavor.created_at, Flavor.name)
        )
        return list(result.scalars().all())

    async def get_flavor_by_product_and_name(
        self, product_id: UUID, name: str, active_only: bool = False
    ) -> Optional[Flavor]:
        query = select(Flavor).where(Flavor.product_id == product_id, Flavor.name == name)
        if active_only:
            query = query.where(Flavor.active.is_(True))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def add_flavor(self, fields: Dict[str, Any]) -> Flavor:
        flavor = Flavor(**fields)
        self.session.add(flavor)
        await self.session.flush()
        return flavor

    async def update_flavor(self, flavor: Flavor, fields: Dict[str, Any]) -> Flavor:
        for key, value in fields.items():
            setattr(flavor, key, value)
        await self.session.flush()
        return flavor

    async def delete_flavor(self, flavor_id: UUID):
        await self.session.execute(delete(Flavor).where(Flavor.id == flavor_id))

    async def increment_reserved(self, flavor_id: UUID, quantity: int) -> bool:
        """Reserve units with a single conditional UPDATE.

        The WHERE clause re-checks availability inside the statement, so two
        concurrent reservations can never both succeed against the same
        units. Returns False when no row matched.
        """
        result = await self.session.execute(
            update(Flavor)
            .where(
                Flavor.id == flavor_id,
                Flavor.active.is_(True),
                Flavor.reserved_inventory + quantity <= Flavor.inventory,
            )
            .values(reserved_inventory=Flavor.reserved_inventory + quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def refresh(self, instance):
        await self.session.refresh(instance)
        return instance

    # Sales
    async def add_sale(self, fields: Dict[str, Any]) -> Sale:
        sale = Sale(**fields)
        self.session.add(sale)
        await self.session.flush()
        return sale

    async def get_sale(self, sale_id: UUID) -> Optional[Sale]:
        result = await self.session.execute(select(Sale).where(Sale.id == sale_id))
        return result.scalar_one_or_none()

    async def list_sales(self) -> List[Sale]:
        result = await self.session.execute(select(Sale).order_by(Sale.created_at.desc()))
        return list(result.scalars().all())

    async def sales_totals(self) -> Dict[str, Any]:
        result = await self.session.execute(
            select(func.count(), func.coalesce(func.sum(Sale.total_amount), 0))
            .select_from(Sale)
        )
        count, revenue = result.one()
        return {"total_sales": int(count), "total_revenue": revenue}
