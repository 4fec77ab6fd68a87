"""Tests for notification event handlers."""
from uuid import uuid4

import pytest

from services.notification_service import app as notifications
from shared.events import FlavorStockLowEvent, OrderPlacedEvent, SaleStatusChangedEvent


@pytest.fixture()
def outbox(monkeypatch):
    sent = {"email": [], "sms": []}

    async def fake_email(recipient, subject, body):
        sent["email"].append((recipient, subject, body))

    async def fake_sms(recipient, message):
        sent["sms"].append((recipient, message))

    monkeypatch.setattr(notifications, "send_email", fake_email)
    monkeypatch.setattr(notifications, "send_sms", fake_sms)
    return sent


def _order(email="ana@example.com"):
    order_id = uuid4()
    return OrderPlacedEvent(
        aggregate_id=order_id,
        order_id=order_id,
        items=[{"product_name": "CYBER", "flavor_name": "Cola", "quantity": 2}],
        total_amount=480.0,
        customer_name="Ana López",
        customer_email=email,
        customer_phone="5555-1234",
    )


class TestOrderPlaced:
    async def test_emails_and_texts_customer(self, outbox):
        event = _order()

        await notifications.handle_order_placed(event)

        [(recipient, subject, body)] = outbox["email"]
        assert recipient == "ana@example.com"
        assert "2 x CYBER (Cola)" in body
        assert "Q480.00" in body
        [(phone, message)] = outbox["sms"]
        assert phone == "5555-1234"
        assert str(event.order_id)[:8] in message

    async def test_text_only_without_email(self, outbox):
        await notifications.handle_order_placed(_order(email=None))

        assert outbox["email"] == []
        assert len(outbox["sms"]) == 1


class TestStockAlerts:
    @pytest.mark.parametrize("status,word", [("out_of_stock", "agotado"), ("low_stock", "bajo")])
    async def test_alerts_back_office(self, outbox, status, word):
        flavor_id = uuid4()
        await notifications.handle_flavor_stock_low(FlavorStockLowEvent(
            aggregate_id=flavor_id,
            product_id=uuid4(),
            product_name="CUBE",
            flavor_id=flavor_id,
            flavor_name="Menta",
            available=0 if status == "out_of_stock" else 3,
            low_stock_threshold=5,
            stock_status=status,
        ))

        [(recipient, subject, _)] = outbox["email"]
        assert recipient == notifications.settings.admin_alert_email
        assert subject == f"Inventario {word}: CUBE - Menta"


class TestSaleStatusChanged:
    async def test_skips_sales_without_email(self, outbox):
        sale_id = uuid4()
        await notifications.handle_sale_status_changed(SaleStatusChangedEvent(
            aggregate_id=sale_id,
            sale_id=sale_id,
            previous_status="pending",
            status="completed",
        ))

        assert outbox["email"] == []

    async def test_emails_customer(self, outbox):
        sale_id = uuid4()
        await notifications.handle_sale_status_changed(SaleStatusChangedEvent(
            aggregate_id=sale_id,
            sale_id=sale_id,
            previous_status="pending",
            status="completed",
            customer_email="ana@example.com",
        ))

        [(recipient, _, body)] = outbox["email"]
        assert recipient == "ana@example.com"
        assert "completed" in body
