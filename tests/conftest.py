import os

# Must be set before any service module builds its Settings
os.environ.setdefault("DATABASE_DSN", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PUBLISH_EVENTS", "false")

from decimal import Decimal

import pytest
from sqlalchemy import select

from services.store_service.models import Flavor, Product, Sale
from shared.database import Database
from shared.outbox import OutboxMessage


@pytest.fixture()
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await db.create_tables()
    yield db
    await db.drop_tables()
    await db.close()


@pytest.fixture()
async def session(database):
    async with database.session_factory() as session:
        yield session


@pytest.fixture()
def make_product(session):
    """Factory: insert and commit a product row."""

    async def _make(**overrides):
        fields = {
            "name": "CYBER",
            "puffs": 20000,
            "price": Decimal("240.00"),
            "sabores": [],
            "inventory": 0,
            "reserved_inventory": 0,
            "low_stock_threshold": 10,
        }
        fields.update(overrides)
        product = Product(**fields)
        session.add(product)
        await session.commit()
        return product

    return _make


@pytest.fixture()
def make_flavor(session):
    """Factory: insert and commit a flavor row for a product."""

    async def _make(product, **overrides):
        fields = {
            "product_id": product.id,
            "name": "Mango Ice",
            "inventory": 10,
            "reserved_inventory": 0,
            "low_stock_threshold": 5,
            "active": True,
        }
        fields.update(overrides)
        flavor = Flavor(**fields)
        session.add(flavor)
        await session.commit()
        return flavor

    return _make


@pytest.fixture()
def fetch(database):
    """Read rows through a fresh session so results reflect committed state."""

    class Fetch:
        async def flavor(self, flavor_id):
            async with database.session_factory() as s:
                return (await s.execute(select(Flavor).where(Flavor.id == flavor_id))).scalar_one()

        async def product(self, product_id):
            async with database.session_factory() as s:
                return (
                    await s.execute(select(Product).where(Product.id == product_id))
                ).scalar_one_or_none()

        async def sales(self):
            async with database.session_factory() as s:
                return list((await s.execute(select(Sale))).scalars().all())

        async def flavors(self, product_id):
            async with database.session_factory() as s:
                result = await s.execute(select(Flavor).where(Flavor.product_id == product_id))
                return list(result.scalars().all())

        async def outbox(self):
            async with database.session_factory() as s:
                result = await s.execute(select(OutboxMessage).order_by(OutboxMessage.created_at))
                return list(result.scalars().all())

    return Fetch()
