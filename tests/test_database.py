"""Tests for the database manager."""
import pytest
from sqlalchemy.exc import OperationalError

from services.store_service.models import Product


class TestDatabase:
    async def test_session_rolls_back_when_handler_raises(self, database, make_product, fetch):
        product = await make_product(inventory=1)

        sessions = database.get_session()
        session = await sessions.__anext__()
        stored = await session.get(Product, product.id)
        stored.inventory = 50
        await session.flush()

        with pytest.raises(RuntimeError, match="handler failed"):
            await sessions.athrow(RuntimeError("handler failed"))

        assert (await fetch.product(product.id)).inventory == 1

    async def test_drop_tables(self, database, fetch):
        await database.drop_tables()

        with pytest.raises(OperationalError):
            await fetch.outbox()

        await database.create_tables()
        assert await fetch.outbox() == []
