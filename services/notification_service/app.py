"""Notification Service FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from shared.config import Settings
from shared.events import (
    BaseEvent,
    EventType,
    FlavorStockLowEvent,
    OrderPlacedEvent,
    SaleStatusChangedEvent,
)
from shared.message_broker import MessageBroker

# Settings
settings = Settings(
    service_name="notification-service",
    service_port=8005,
)

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Message broker
message_broker = MessageBroker(settings.rabbitmq_url)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for the application."""

    # Startup
    logger.info("Starting Notification Service...")

    await message_broker.connect()
    await subscribe_to_events()

    logger.info("Notification Service started successfully")

    yield

    # Shutdown
    logger.info("Shutting down Notification Service...")
    await message_broker.disconnect()


app = FastAPI(title="Notification Service", lifespan=lifespan)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "notification-service"}


# Notification Logic
async def send_email(recipient: str, subject: str, body: str):
    """
    Send email notification.

    In a real system, this would integrate with SendGrid, SES, or similar.
    """
    logger.info(f"[EMAIL] To: {recipient}")
    logger.info(f"[EMAIL] Subject: {subject}")
    logger.info(f"[EMAIL] Body: {body}")
    logger.info("-" * 60)


async def send_sms(recipient: str, message: str):
    """
    Send SMS notification.

    In a real system, this would integrate with Twilio, SNS, or similar.
    """
    logger.info(f"[SMS] To: {recipient}")
    logger.info(f"[SMS] Message: {message}")
    logger.info("-" * 60)


# Event Handlers
async def handle_order_placed(event: OrderPlacedEvent):
    """Confirm the order to the customer."""
    lines = ", ".join(
        f"{item['quantity']} x {item['product_name']} ({item['flavor_name']})"
        for item in event.items
    )
    short_id = str(event.order_id)[:8]

    if event.customer_email:
        await send_email(
            recipient=event.customer_email,
            subject="Pedido recibido",
            body=f"Hola {event.customer_name}, recibimos tu pedido {short_id}: {lines}. "
                 f"Total: Q{event.total_amount:.2f}"
        )

    await send_sms(
        recipient=event.customer_phone,
        message=f"Pedido {short_id} recibido. Total Q{event.total_amount:.2f}"
    )


async def handle_flavor_stock_low(event: FlavorStockLowEvent):
    """Alert the back office that a flavor needs restocking."""
    state = "agotado" if event.stock_status == "out_of_stock" else "bajo"
    await send_email(
        recipient=settings.admin_alert_email,
        subject=f"Inventario {state}: {event.product_name} - {event.flavor_name}",
        body=f"Quedan {event.available} unidades disponibles "
             f"(umbral {event.low_stock_threshold})."
    )


async def handle_sale_status_changed(event: SaleStatusChangedEvent):
    """Tell the customer their order moved on."""
    if not event.customer_email:
        return

    await send_email(
        recipient=event.customer_email,
        subject="Actualización de tu pedido",
        body=f"Tu pedido {str(event.sale_id)[:8]} pasó de {event.previous_status} "
             f"a {event.status}."
    )


async def log_all_events(event: BaseEvent):
    """Log all events for audit purposes."""
    logger.info(
        f"Event received: {event.event_type.value} "
        f"(id={event.event_id}, correlation={event.correlation_id})"
    )


async def subscribe_to_events():
    """Subscribe to store events for notifications."""
    await message_broker.subscribe_to_event(
        EventType.ORDER_PLACED,
        "notification_service_order_placed",
        handle_order_placed,
    )

    await message_broker.subscribe_to_event(
        EventType.FLAVOR_STOCK_LOW,
        "notification_service_stock_low",
        handle_flavor_stock_low,
    )

    await message_broker.subscribe_to_event(
        EventType.SALE_STATUS_CHANGED,
        "notification_service_sale_status",
        handle_sale_status_changed,
    )

    # Audit log of every store event
    await message_broker.subscribe_to_pattern(
        "#",
        "notification_service_all_events",
        log_all_events,
    )

    logger.info("Subscribed to notification events")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.service_port)
