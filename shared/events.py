"""Store event definitions and base classes."""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Event types emitted by the store service."""

    # Order events
    ORDER_PLACED = "order.placed"

    # Sale events
    SALE_STATUS_CHANGED = "sale.status_changed"

    # Inventory events
    FLAVOR_STOCK_LOW = "flavor.stock_low"


class BaseEvent(BaseModel):
    """Base event model with common fields."""

    event_id: UUID = Field(default_factory=uuid4)
    event_type: EventType
    aggregate_id: UUID  # ID of the main entity (sale_id or flavor_id)
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    version: int = Field(default=1)
    correlation_id: UUID = Field(default_factory=uuid4)  # For tracing across services
    causation_id: Optional[UUID] = None  # ID of event that caused this one
    metadata: Dict[str, Any] = Field(default_factory=dict)


# Order Events
class OrderPlacedEvent(BaseEvent):
    """Event emitted when a storefront order has reserved its inventory."""
    event_type: EventType = EventType.ORDER_PLACED
    order_id: UUID
    items: list[Dict[str, Any]]  # [{"product_id", "flavor_id", "flavor_name", "quantity", ...}]
    total_amount: float
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: str


# Sale Events
class SaleStatusChangedEvent(BaseEvent):
    """Event emitted when an admin moves a sale to another status."""
    event_type: EventType = EventType.SALE_STATUS_CHANGED
    sale_id: UUID
    previous_status: str
    status: str
    customer_email: Optional[str] = None


# Inventory Events
class FlavorStockLowEvent(BaseEvent):
    """Event emitted when a reservation leaves a flavor low or out of stock."""
    event_type: EventType = EventType.FLAVOR_STOCK_LOW
    product_id: UUID
    product_name: str
    flavor_id: UUID
    flavor_name: str
    available: int
    low_stock_threshold: int
    stock_status: str


# Event Registry for deserialization
EVENT_REGISTRY: Dict[EventType, type[BaseEvent]] = {
    EventType.ORDER_PLACED: OrderPlacedEvent,
    EventType.SALE_STATUS_CHANGED: SaleStatusChangedEvent,
    EventType.FLAVOR_STOCK_LOW: FlavorStockLowEvent,
}


def deserialize_event(event_data: Dict[str, Any]) -> BaseEvent:
    """Deserialize event from dictionary."""
    event_type = EventType(event_data["event_type"])
    event_class = EVENT_REGISTRY.get(event_type, BaseEvent)
    return event_class(**event_data)
