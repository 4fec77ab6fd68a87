"""Store Service FastAPI application."""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config import Settings
from shared.database import Database
from shared.message_broker import MessageBroker
from shared.outbox import OutboxPublisher

from .catalog import CatalogService
from .errors import StoreError
from .models import Flavor
from .reservation import OrderReservation
from .stock import available_units, flavor_stock_status

# Settings
settings = Settings(
    service_name="store-service",
    service_port=8001,
)

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Database and message broker
database = Database(settings.database_url, echo=settings.sql_echo)
message_broker = MessageBroker(settings.rabbitmq_url)
outbox_publisher: Optional[OutboxPublisher] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for the application."""
    global outbox_publisher

    # Startup
    logger.info("Starting Store Service...")

    await database.create_tables()

    if settings.publish_events:
        await message_broker.connect()
        outbox_publisher = OutboxPublisher(
            session_factory=database.session_factory,
            message_broker=message_broker,
        )
        await outbox_publisher.start()
    else:
        logger.info("Event publishing disabled; outbox rows stay pending")

    logger.info("Store Service started successfully")

    yield

    # Shutdown
    logger.info("Shutting down Store Service...")
    if outbox_publisher:
        await outbox_publisher.stop()
    if settings.publish_events:
        await message_broker.disconnect()
    await database.close()


app = FastAPI(title="Store Service", lifespan=lifespan)


# Request-scoped session, rolled back when the handler raises
get_session = database.get_session


# Error mapping
@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {str(exc)}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


# Request/Response models
class ProductRequest(BaseModel):
    """Request to create a product."""
    name: str
    puffs: int
    price: float
    image: Optional[str] = None
    sabores: List[str] = []
    description: Optional[str] = None
    popular: bool = False
    active: bool = True
    show_on_homepage: bool = True
    inventory: int = 0
    reserved_inventory: int = 0
    low_stock_threshold: int = 10


class FlavorRequest(BaseModel):
    """Request to create a flavor."""
    name: str
    inventory: int = 0
    reserved_inventory: int = 0
    low_stock_threshold: int = 5
    active: bool = True


class SaleRequest(BaseModel):
    """Manual sale entered in the back office."""
    product_id: UUID
    quantity: int
    unit_price: float
    total_amount: float
    discount: Optional[float] = None
    affiliate_id: Optional[UUID] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None


class StatusRequest(BaseModel):
    status: str


class CartItem(BaseModel):
    """One storefront cart line."""
    product_id: UUID
    flavor: str
    quantity: int


class CustomerData(BaseModel):
    first_name: str
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: str


class OrderRequest(BaseModel):
    """Request to place a storefront order."""
    cart_items: List[CartItem]
    customer_data: CustomerData
    affiliate_id: Optional[UUID] = None


class FlavorResponse(BaseModel):
    """Flavor with derived availability."""
    id: UUID
    product_id: UUID
    name: str
    inventory: int
    reserved_inventory: int
    low_stock_threshold: int
    active: bool
    available_inventory: int
    stock_status: str


class ProductResponse(BaseModel):
    """Product response."""
    id: UUID
    name: str
    puffs: int
    price: float
    image: Optional[str]
    sabores: List[str]
    description: Optional[str]
    popular: bool
    active: bool
    show_on_homepage: bool
    inventory: int
    reserved_inventory: int
    low_stock_threshold: int
    created_at: datetime

    class Config:
        from_attributes = True


class CatalogEntryResponse(ProductResponse):
    """Product with its flavors and rolled-up stock."""
    flavors: List[FlavorResponse]
    available_inventory: int
    stock_status: str
    flavor_count: int
    available_flavor_count: int
    low_stock_flavor_count: int
    out_of_stock_flavor_count: int


class SaleResponse(BaseModel):
    """Sale response."""
    id: UUID
    affiliate_id: Optional[UUID]
    product_id: UUID
    quantity: int
    unit_price: float
    discount: Optional[float]
    total_amount: float
    customer_name: Optional[str]
    customer_email: Optional[str]
    customer_phone: Optional[str]
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class OrderLineResponse(BaseModel):
    product_id: UUID
    product_name: str
    flavor_id: UUID
    flavor_name: str
    quantity: int
    unit_price: float
    line_total: float


class PlacedOrderResponse(BaseModel):
    order_id: UUID
    items: List[OrderLineResponse]
    total: float
    message: str


def _flavor_response(flavor: Flavor) -> FlavorResponse:
    return FlavorResponse(
        id=flavor.id,
        product_id=flavor.product_id,
        name=flavor.name,
        inventory=flavor.inventory,
        reserved_inventory=flavor.reserved_inventory,
        low_stock_threshold=flavor.low_stock_threshold,
        active=flavor.active,
        available_inventory=available_units(flavor),
        stock_status=flavor_stock_status(flavor).value,
    )


def _catalog_entry_response(entry: Dict[str, Any]) -> CatalogEntryResponse:
    product = ProductResponse.model_validate(entry["product"])
    return CatalogEntryResponse(
        **product.model_dump(),
        flavors=[_flavor_response(f) for f in entry["flavors"]],
        available_inventory=entry["available_inventory"],
        stock_status=entry["stock_status"],
        flavor_count=entry["flavor_count"],
        available_flavor_count=entry["available_flavor_count"],
        low_stock_flavor_count=entry["low_stock_flavor_count"],
        out_of_stock_flavor_count=entry["out_of_stock_flavor_count"],
    )


def _ok(data: Any, **extra) -> Dict[str, Any]:
    return {"success": True, "data": data, **extra}


# Public endpoints
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "store-service"}


@app.get("/api/products")
async def list_storefront_products(session: AsyncSession = Depends(get_session)):
    """Products customers can order, each with its orderable flavors only."""
    entries = await CatalogService(session).list_storefront()
    return _ok([_catalog_entry_response(entry) for entry in entries])


@app.post("/api/orders")
async def place_order(request: OrderRequest, session: AsyncSession = Depends(get_session)):
    """
    Place a storefront order.

    Every cart line reserves stock on its flavor; the order is all-or-nothing.
    """
    try:
        result = await OrderReservation(session).place_order(
            items=[item.model_dump() for item in request.cart_items],
            customer=request.customer_data.model_dump(),
            affiliate_id=request.affiliate_id,
        )
    except StoreError as e:
        logger.warning(f"Order rejected: {e.message}")
        raise

    return _ok(PlacedOrderResponse(**result))


# Admin: products
@app.get("/api/admin/products")
async def list_admin_products(session: AsyncSession = Depends(get_session)):
    """All products with every flavor, for the back office."""
    entries = await CatalogService(session).list_admin_products()
    return _ok([_catalog_entry_response(entry) for entry in entries])


@app.post("/api/admin/products", status_code=201)
async def create_product(request: ProductRequest, session: AsyncSession = Depends(get_session)):
    product = await CatalogService(session).create_product(request.model_dump())
    return _ok(ProductResponse.model_validate(product))


@app.post("/api/admin/products/seed")
async def seed_products(session: AsyncSession = Depends(get_session)):
    """Load the default catalogue."""
    report = await CatalogService(session).seed_products()
    return _ok(
        report,
        message=f"Seeding completed: {report['created']} products created, "
                f"{report['skipped']} skipped",
    )


@app.get("/api/admin/products/{product_id}")
async def get_product(product_id: UUID, session: AsyncSession = Depends(get_session)):
    entry = await CatalogService(session).get_product(product_id)
    return _ok(_catalog_entry_response(entry))


@app.patch("/api/admin/products/{product_id}")
async def update_product(
    product_id: UUID,
    fields: Dict[str, Any],
    session: AsyncSession = Depends(get_session)
):
    """Partial product update; counter edits are checked against stored values."""
    product = await CatalogService(session).update_product(product_id, fields)
    return _ok(ProductResponse.model_validate(product))


@app.delete("/api/admin/products/{product_id}")
async def delete_product(product_id: UUID, session: AsyncSession = Depends(get_session)):
    await CatalogService(session).delete_product(product_id)
    return {"success": True, "message": "Product and associated flavors deleted successfully"}


@app.post("/api/admin/migrate-flavors")
async def migrate_flavors(session: AsyncSession = Depends(get_session)):
    """Convert legacy sabores lists into flavor rows."""
    report = await CatalogService(session).migrate_flavors()
    return _ok(report)


# Admin: flavors
@app.get("/api/admin/products/{product_id}/flavors")
async def list_product_flavors(product_id: UUID, session: AsyncSession = Depends(get_session)):
    flavors = await CatalogService(session).list_product_flavors(product_id)
    return _ok([_flavor_response(flavor) for flavor in flavors])


@app.post("/api/admin/products/{product_id}/flavors", status_code=201)
async def create_flavor(
    product_id: UUID,
    request: FlavorRequest,
    session: AsyncSession = Depends(get_session)
):
    flavor = await CatalogService(session).create_flavor(product_id, request.model_dump())
    return _ok(_flavor_response(flavor))


@app.patch("/api/admin/flavors/{flavor_id}")
async def update_flavor(
    flavor_id: UUID,
    fields: Dict[str, Any],
    session: AsyncSession = Depends(get_session)
):
    flavor = await CatalogService(session).update_flavor(flavor_id, fields)
    return _ok(_flavor_response(flavor))


@app.delete("/api/admin/flavors/{flavor_id}")
async def delete_flavor(flavor_id: UUID, session: AsyncSession = Depends(get_session)):
    await CatalogService(session).delete_flavor(flavor_id)
    return {"success": True, "message": "Flavor deleted successfully"}


# Admin: sales
@app.get("/api/admin/sales")
async def list_sales(session: AsyncSession = Depends(get_session)):
    sales = await CatalogService(session).list_sales()
    return _ok([SaleResponse.model_validate(sale) for sale in sales])


@app.post("/api/admin/sales", status_code=201)
async def record_sale(request: SaleRequest, session: AsyncSession = Depends(get_session)):
    sale = await CatalogService(session).record_sale(request.model_dump())
    return _ok(SaleResponse.model_validate(sale))


@app.patch("/api/admin/sales/{sale_id}/status")
async def update_sale_status(
    sale_id: UUID,
    request: StatusRequest,
    session: AsyncSession = Depends(get_session)
):
    sale = await CatalogService(session).update_sale_status(sale_id, request.status)
    return _ok(SaleResponse.model_validate(sale))


@app.get("/api/admin/dashboard")
async def dashboard(session: AsyncSession = Depends(get_session)):
    stats = await CatalogService(session).dashboard_stats()
    return _ok(stats)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.service_port)
