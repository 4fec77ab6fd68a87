"""Order placement: turn a storefront cart into flavor reservations and a sale."""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from shared.events import FlavorStockLowEvent, OrderPlacedEvent
from shared.outbox import save_event_to_outbox

from .errors import FlavorUnavailable, InsufficientInventory, NotFoundError, ValidationError
from .flavor_store import FlavorInventoryStore
from .models import SaleStatus
from .repository import StoreRepository
from .stock import (
    StockStatus,
    available_units,
    flavor_status_before_reserving,
    flavor_stock_status,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _parse_line(item: Mapping[str, Any]) -> tuple[UUID, str, int]:
    product_id = item.get("product_id")
    flavor_name = item.get("flavor")
    quantity = item.get("quantity")

    if not product_id or not flavor_name or not quantity:
        raise ValidationError("Invalid cart item format", field="items")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("Quantity must be a positive integer", field="quantity")

    if not isinstance(product_id, UUID):
        try:
            product_id = UUID(str(product_id))
        except ValueError:
            raise ValidationError(f"Invalid product id: {product_id}", field="product_id")

    return product_id, flavor_name, quantity


def _customer_fields(customer: Optional[Mapping[str, Any]]) -> Dict[str, Optional[str]]:
    if not customer or not customer.get("first_name") or not customer.get("phone"):
        raise ValidationError("Customer data is required", field="customer")

    name = f"{customer['first_name']} {customer.get('last_name') or ''}".strip()
    return {
        "customer_name": name,
        "customer_email": customer.get("email") or None,
        "customer_phone": customer["phone"],
    }


class OrderReservation:
    """Places orders against live flavor stock.

    The whole cart runs in one transaction: a failure on any line rolls back
    the reservations already made for earlier lines and no sale is written.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repository = StoreRepository(session)
        self.flavor_store = FlavorInventoryStore(session)

    async def place_order(
        self,
        items: Sequence[Mapping[str, Any]],
        customer: Mapping[str, Any],
        affiliate_id: Optional[UUID] = None,
    ) -> Dict[str, Any]:
        """
        Reserve every cart line and record the sale.

        Args:
            items: Cart lines [{"product_id", "flavor", "quantity"}]
            customer: Contact data with first_name, last_name, phone, email
            affiliate_id: Distributor credited with the sale, if any

        Returns:
            {"order_id", "items", "total", "message"}
        """
        if not items:
            raise ValidationError("Cart items are required", field="items")
        customer_fields = _customer_fields(customer)

        correlation_id = uuid4()
        line_items: List[Dict[str, Any]] = []
        stock_alerts: List[FlavorStockLowEvent] = []

        try:
            for item in items:
                line, alert = await self._reserve_line(item, correlation_id)
                line_items.append(line)
                if alert is not None:
                    stock_alerts.append(alert)

            total = sum((line["line_total"] for line in line_items), Decimal("0"))
            total_quantity = sum(line["quantity"] for line in line_items)

            # Sale rows hold no line items, so the order is anchored on the first product
            sale = await self.repository.add_sale({
                "affiliate_id": affiliate_id,
                "product_id": line_items[0]["product_id"],
                "quantity": total_quantity,
                "unit_price": (total / total_quantity).quantize(CENT),
                "discount": Decimal("0"),
                "total_amount": total.quantize(CENT),
                "status": SaleStatus.PENDING.value,
                **customer_fields,
            })

            order_event = OrderPlacedEvent(
                aggregate_id=sale.id,
                correlation_id=correlation_id,
                order_id=sale.id,
                items=[
                    {
                        "product_id": str(line["product_id"]),
                        "product_name": line["product_name"],
                        "flavor_id": str(line["flavor_id"]),
                        "flavor_name": line["flavor_name"],
                        "quantity": line["quantity"],
                        "unit_price": float(line["unit_price"]),
                        "line_total": float(line["line_total"]),
                    }
                    for line in line_items
                ],
                total_amount=float(total),
                **customer_fields,
            )
            await save_event_to_outbox(self.session, order_event)
            for alert in stock_alerts:
                alert.causation_id = order_event.event_id
                await save_event_to_outbox(self.session, alert)

            await self.session.commit()

        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            f"Placed order {sale.id}: {len(line_items)} lines, "
            f"{total_quantity} units, total {total}"
        )

        return {
            "order_id": sale.id,
            "items": line_items,
            "total": total,
            "message": "Order placed successfully. Inventory has been reserved.",
        }

    async def _reserve_line(self, item: Mapping[str, Any], correlation_id: UUID):
        product_id, flavor_name, quantity = _parse_line(item)

        product = await self.repository.get_product(product_id)
        if product is None:
            raise NotFoundError(f"Product not found: {product_id}")

        flavor = await self.repository.get_flavor_by_product_and_name(
            product.id, flavor_name, active_only=True
        )
        if flavor is None:
            raise FlavorUnavailable(product.id, flavor_name)

        label = f"{product.name} - {flavor.name}"
        available = available_units(flavor)
        if available < quantity:
            raise InsufficientInventory(available, quantity, label)

        flavor = await self.flavor_store.reserve(flavor, quantity, label)
        # Compare against the refreshed row; the pre-read copy may be stale
        status_before = flavor_status_before_reserving(flavor, quantity)
        status_after = flavor_stock_status(flavor)

        alert = None
        if status_after != StockStatus.IN_STOCK and status_after != status_before:
            alert = FlavorStockLowEvent(
                aggregate_id=flavor.id,
                correlation_id=correlation_id,
                product_id=product.id,
                product_name=product.name,
                flavor_id=flavor.id,
                flavor_name=flavor.name,
                available=available_units(flavor),
                low_stock_threshold=flavor.low_stock_threshold,
                stock_status=status_after.value,
            )

        unit_price = Decimal(product.price)
        line = {
            "product_id": product.id,
            "product_name": product.name,
            "flavor_id": flavor.id,
            "flavor_name": flavor.name,
            "quantity": quantity,
            "unit_price": unit_price,
            "line_total": unit_price * quantity,
        }
        return line, alert
