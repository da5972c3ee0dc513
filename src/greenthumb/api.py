"""FastAPI REST API for the greenthumb nursery."""

import threading
from datetime import datetime
from decimal import Decimal
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .cart import CartRegistry, ShoppingCart
from .catalog import PlantCatalog
from .config import Settings, load_settings
from .database import Database
from .errors import (
    AccessDeniedError,
    AuthenticationError,
    BusinessRuleError,
    DuplicateUsernameError,
    EmptyCartError,
    GreenthumbError,
    InsufficientStockError,
    InvalidStatusError,
    InvalidTransitionError,
    NotFoundError,
    OrderNotCancellableError,
    OrderNotReturnableError,
    PlantInUseError,
    StorageError,
    ValidationError,
)
from .inventory import InventoryLedger
from .models import CustomerUser, Order, OrderItem, Plant, User
from .orders import OrderService
from .reports import inventory_report, order_report, sales_report, user_report
from .users import UserService


# --- Pydantic Schemas ---


class PlantSchema(BaseModel):
    plant_id: str
    name: str
    type: str
    price: Decimal
    quantity: int
    description: str = ""


class PlantListResponse(BaseModel):
    plants: list[PlantSchema]
    count: int


class PlantCreateRequest(BaseModel):
    """Request body for adding a plant."""

    plant_id: str
    name: str
    type: str
    price: Decimal = Field(..., description="Unit price, 0.01-99999.99")
    quantity: int = Field(default=0, ge=0)
    description: str = ""


class PlantUpdateRequest(BaseModel):
    """Request body for editing a plant. Omitted fields are left unchanged."""

    name: Optional[str] = None
    type: Optional[str] = None
    price: Optional[Decimal] = None
    quantity: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = None


class RestockRequest(BaseModel):
    amount: int = Field(..., gt=0)


class OrderItemSchema(BaseModel):
    order_item_id: str
    plant_id: str
    plant_name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class OrderSchema(BaseModel):
    order_id: str
    customer_id: str
    order_date: datetime
    total_amount: Decimal
    status: str
    items: list[OrderItemSchema]


class OrderListResponse(BaseModel):
    orders: list[OrderSchema]
    count: int


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., description="Pending|Processing|Shipped|Delivered|Cancelled|Returned")


class CartItemRequest(BaseModel):
    plant_id: str
    quantity: int


class CartQuantityRequest(BaseModel):
    quantity: int = Field(..., description="Zero or less removes the line")


class CartSchema(BaseModel):
    customer_id: str
    items: list[OrderItemSchema]
    item_count: int
    total: Decimal


class UserSchema(BaseModel):
    user_id: str
    username: str
    role: str
    customer_id: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None


class UserListResponse(BaseModel):
    users: list[UserSchema]
    count: int


class UserCreateRequest(BaseModel):
    """Request body for registering a user."""

    user_id: str
    username: str
    password: str
    role: str = Field(..., description="Admin|Staff|Customer")
    address: Optional[str] = None
    phone: Optional[str] = None


class UserUpdateRequest(BaseModel):
    """Request body for editing a user. Omitted fields are left unchanged."""

    username: Optional[str] = None
    role: Optional[str] = Field(default=None, description="Admin|Staff|Customer")


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    message: str
    user: UserSchema


class ErrorResponse(BaseModel):
    detail: str
    error_type: str


# --- Dependencies ---


@lru_cache
def get_settings() -> Settings:
    return load_settings()


@lru_cache
def get_database() -> Database:
    """Process-wide Database built from the environment; schema created on first use."""
    db = Database.from_settings(get_settings())
    db.create_schema()
    return db


_cart_registries: dict[str, CartRegistry] = {}
_cart_registries_lock = threading.Lock()


def get_cart_registry(db: Database = Depends(get_database)) -> CartRegistry:
    """One CartRegistry per database, so carts outlive single requests."""
    with _cart_registries_lock:
        registry = _cart_registries.get(db.url)
        if registry is None:
            registry = CartRegistry(db)
            _cart_registries[db.url] = registry
        return registry


# --- Helper Functions ---


def plant_to_schema(plant: Plant) -> PlantSchema:
    return PlantSchema(
        plant_id=plant.plant_id,
        name=plant.name,
        type=plant.type,
        price=plant.price,
        quantity=plant.quantity,
        description=plant.description,
    )


def item_to_schema(item: OrderItem) -> OrderItemSchema:
    return OrderItemSchema(
        order_item_id=item.order_item_id,
        plant_id=item.plant_id,
        plant_name=item.plant.name if item.plant else None,
        quantity=item.quantity,
        unit_price=item.unit_price,
        subtotal=item.subtotal,
    )


def order_to_schema(order: Order) -> OrderSchema:
    return OrderSchema(
        order_id=order.order_id,
        customer_id=order.customer_id,
        order_date=order.order_date,
        total_amount=order.total_amount,
        status=order.status.value,
        items=[item_to_schema(item) for item in order.order_items],
    )


def user_to_schema(user: User) -> UserSchema:
    schema = UserSchema(user_id=user.user_id, username=user.username, role=user.role.value)
    if isinstance(user, CustomerUser) and user.profile is not None:
        schema.customer_id = user.profile.customer_id
        schema.address = user.profile.address
        schema.phone = user.profile.phone
    return schema


def cart_to_schema(cart: ShoppingCart) -> CartSchema:
    items = cart.items
    return CartSchema(
        customer_id=cart.customer_id,
        items=[item_to_schema(item) for item in items],
        item_count=len(items),
        total=cart.total(),
    )


def _orders_response(orders: list[Order]) -> OrderListResponse:
    return OrderListResponse(orders=[order_to_schema(o) for o in orders], count=len(orders))


def _customer_cart(customer_id: str, db: Database, registry: CartRegistry) -> ShoppingCart:
    # Raises UserNotFoundError for unknown customers
    UserService(db).get_customer(customer_id)
    return registry.cart_for(customer_id)


app = FastAPI(
    title="greenthumb API",
    description="REST API for the Greenthumb nursery: plants, orders, carts and users",
    version=__version__,
)


# --- Global Exception Handler ---


# Map exception types to HTTP status codes; the closest class in the MRO wins
ERROR_STATUS_CODES: dict[type, int] = {
    ValidationError: 400,
    EmptyCartError: 400,
    BusinessRuleError: 400,
    NotFoundError: 404,
    InvalidTransitionError: 409,
    InvalidStatusError: 409,
    InsufficientStockError: 409,
    OrderNotCancellableError: 409,
    OrderNotReturnableError: 409,
    DuplicateUsernameError: 409,
    PlantInUseError: 409,
    AuthenticationError: 401,
    AccessDeniedError: 403,
    StorageError: 503,
}


def status_code_for(exc: GreenthumbError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500


@app.exception_handler(GreenthumbError)
async def greenthumb_error_handler(request: Request, exc: GreenthumbError) -> JSONResponse:
    """Map GreenthumbError subclasses to appropriate HTTP responses."""
    return JSONResponse(
        status_code=status_code_for(exc),
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


# --- Endpoints ---


@app.get("/api/health")
def health_check(db: Database = Depends(get_database)):
    """
    Health check endpoint.

    Reports the number of plants so a broken database shows up here.
    """
    try:
        plants = PlantCatalog(db).list_plants()
    except StorageError as e:
        return {"status": "error", "detail": str(e)}
    return {"status": "ok", "version": __version__, "plant_count": len(plants)}


# --- Plant Endpoints ---


@app.get("/api/plants", response_model=PlantListResponse)
def list_plants(
    available_only: bool = Query(default=False),
    name: Optional[str] = Query(default=None),
    type: Optional[str] = Query(default=None),
    min_price: Optional[Decimal] = Query(default=None),
    max_price: Optional[Decimal] = Query(default=None),
    db: Database = Depends(get_database),
):
    """List plants, optionally filtered by name/type substring and price range."""
    catalog = PlantCatalog(db)
    if any(value is not None for value in (name, type, min_price, max_price)):
        plants = catalog.search_plants(name, type, min_price, max_price)
    elif available_only:
        plants = catalog.available_plants()
    else:
        plants = catalog.list_plants()
    if available_only:
        plants = [p for p in plants if p.quantity > 0]
    return PlantListResponse(plants=[plant_to_schema(p) for p in plants], count=len(plants))


@app.post("/api/plants", response_model=PlantSchema, status_code=201)
def create_plant(request: PlantCreateRequest, db: Database = Depends(get_database)):
    plant = PlantCatalog(db).create_plant(
        request.plant_id,
        request.name,
        request.type,
        request.price,
        request.quantity,
        request.description,
    )
    return plant_to_schema(plant)


@app.get("/api/plants/low-stock", response_model=PlantListResponse)
def list_low_stock(
    threshold: Optional[int] = Query(default=None, ge=0),
    db: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
):
    """Plants below `threshold` units (default from GREENTHUMB_LOW_STOCK_THRESHOLD)."""
    plants = InventoryLedger(db, settings.low_stock_threshold).low_stock(threshold)
    return PlantListResponse(plants=[plant_to_schema(p) for p in plants], count=len(plants))


@app.get("/api/plants/{plant_id}", response_model=PlantSchema)
def get_plant(plant_id: str, db: Database = Depends(get_database)):
    return plant_to_schema(PlantCatalog(db).get_plant(plant_id))


@app.patch("/api/plants/{plant_id}", response_model=PlantSchema)
def update_plant(plant_id: str, request: PlantUpdateRequest, db: Database = Depends(get_database)):
    plant = PlantCatalog(db).update_plant(
        plant_id,
        name=request.name,
        plant_type=request.type,
        price=request.price,
        quantity=request.quantity,
        description=request.description,
    )
    return plant_to_schema(plant)


@app.delete("/api/plants/{plant_id}", status_code=204)
def delete_plant(plant_id: str, db: Database = Depends(get_database)):
    """Remove a plant. Refused with 409 while order items reference it."""
    PlantCatalog(db).delete_plant(plant_id)


@app.post("/api/plants/{plant_id}/restock", response_model=PlantSchema)
def restock_plant(plant_id: str, request: RestockRequest, db: Database = Depends(get_database)):
    return plant_to_schema(InventoryLedger(db).restock(plant_id, request.amount))


# --- Order Endpoints ---


@app.get("/api/orders", response_model=OrderListResponse)
def list_orders(
    status: Optional[str] = Query(default=None),
    customer_id: Optional[str] = Query(default=None),
    db: Database = Depends(get_database),
):
    """List orders newest first."""
    return _orders_response(OrderService(db).list_orders(status=status, customer_id=customer_id))


@app.get("/api/orders/{order_id}", response_model=OrderSchema)
def get_order(order_id: str, db: Database = Depends(get_database)):
    return order_to_schema(OrderService(db).get_order(order_id))


@app.post("/api/orders/{order_id}/process", response_model=OrderSchema)
def process_order(order_id: str, db: Database = Depends(get_database)):
    """
    Move a Pending order to Processing and take its stock.

    Responds 409 if the order is not Pending or a plant is short.
    """
    return order_to_schema(OrderService(db).process_order(order_id))


@app.post("/api/orders/{order_id}/status", response_model=OrderSchema)
def update_order_status(
    order_id: str, request: StatusUpdateRequest, db: Database = Depends(get_database)
):
    return order_to_schema(OrderService(db).update_order_status(order_id, request.status))


@app.post("/api/orders/{order_id}/cancel", response_model=OrderSchema)
def cancel_order(
    order_id: str,
    customer_id: Optional[str] = Query(default=None, description="Require ownership"),
    db: Database = Depends(get_database),
):
    return order_to_schema(OrderService(db).cancel_order(order_id, customer_id))


@app.post("/api/orders/{order_id}/return", response_model=OrderSchema)
def return_order(
    order_id: str,
    customer_id: Optional[str] = Query(default=None, description="Require ownership"),
    db: Database = Depends(get_database),
):
    return order_to_schema(OrderService(db).return_order(order_id, customer_id))


# --- Cart Endpoints ---


@app.get("/api/customers/{customer_id}/cart", response_model=CartSchema)
def get_cart(
    customer_id: str,
    db: Database = Depends(get_database),
    registry: CartRegistry = Depends(get_cart_registry),
):
    return cart_to_schema(_customer_cart(customer_id, db, registry))


@app.post("/api/customers/{customer_id}/cart/items", response_model=CartSchema)
def add_cart_item(
    customer_id: str,
    request: CartItemRequest,
    db: Database = Depends(get_database),
    registry: CartRegistry = Depends(get_cart_registry),
):
    cart = _customer_cart(customer_id, db, registry)
    cart.add_to_cart(request.plant_id, request.quantity)
    return cart_to_schema(cart)


@app.patch("/api/customers/{customer_id}/cart/items/{plant_id}", response_model=CartSchema)
def update_cart_item(
    customer_id: str,
    plant_id: str,
    request: CartQuantityRequest,
    db: Database = Depends(get_database),
    registry: CartRegistry = Depends(get_cart_registry),
):
    cart = _customer_cart(customer_id, db, registry)
    cart.update_cart_item_quantity(plant_id, request.quantity)
    return cart_to_schema(cart)


@app.delete("/api/customers/{customer_id}/cart/items/{plant_id}", response_model=CartSchema)
def remove_cart_item(
    customer_id: str,
    plant_id: str,
    db: Database = Depends(get_database),
    registry: CartRegistry = Depends(get_cart_registry),
):
    cart = _customer_cart(customer_id, db, registry)
    cart.remove_from_cart(plant_id)
    return cart_to_schema(cart)


@app.post("/api/customers/{customer_id}/cart/checkout", response_model=OrderSchema, status_code=201)
def checkout(
    customer_id: str,
    db: Database = Depends(get_database),
    registry: CartRegistry = Depends(get_cart_registry),
):
    """Place the cart as a Pending order. The cart is kept if checkout fails."""
    order = _customer_cart(customer_id, db, registry).place_order()
    registry.release(customer_id)
    return order_to_schema(order)


# --- User Endpoints ---


@app.get("/api/users", response_model=UserListResponse)
def list_users(role: Optional[str] = Query(default=None), db: Database = Depends(get_database)):
    users = UserService(db).list_users(role)
    return UserListResponse(users=[user_to_schema(u) for u in users], count=len(users))


@app.post("/api/users", response_model=UserSchema, status_code=201)
def create_user(request: UserCreateRequest, db: Database = Depends(get_database)):
    user = UserService(db).create_user(
        request.user_id,
        request.username,
        request.password,
        request.role,
        address=request.address,
        phone=request.phone,
    )
    return user_to_schema(user)


@app.get("/api/users/{user_id}", response_model=UserSchema)
def get_user(user_id: str, db: Database = Depends(get_database)):
    return user_to_schema(UserService(db).get_user(user_id))


@app.patch("/api/users/{user_id}", response_model=UserSchema)
def update_user(
    user_id: str,
    request: UserUpdateRequest,
    db: Database = Depends(get_database),
    registry: CartRegistry = Depends(get_cart_registry),
):
    """Rename a user or change their role. Leaving the Customer role drops the cart."""
    service = UserService(db)
    before = service.get_user(user_id)
    user = service.update_user(user_id, username=request.username, role=request.role)
    if isinstance(before, CustomerUser) and before.customer_id and not isinstance(user, CustomerUser):
        registry.discard(before.customer_id)
    return user_to_schema(user)


@app.delete("/api/users/{user_id}", status_code=204)
def delete_user(
    user_id: str,
    db: Database = Depends(get_database),
    registry: CartRegistry = Depends(get_cart_registry),
):
    service = UserService(db)
    user = service.get_user(user_id)
    service.delete_user(user_id)
    if isinstance(user, CustomerUser) and user.customer_id:
        registry.discard(user.customer_id)


@app.post("/api/login", response_model=LoginResponse)
def login(request: LoginRequest, db: Database = Depends(get_database)):
    user = UserService(db).authenticate(request.username, request.password)
    return LoginResponse(message=f"Welcome, {user.username}", user=user_to_schema(user))


# --- Report Endpoints ---


@app.get("/api/reports/inventory")
def get_inventory_report(
    threshold: Optional[int] = Query(default=None, ge=0),
    db: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
):
    if threshold is None:
        threshold = settings.low_stock_threshold
    return inventory_report(db, threshold)


@app.get("/api/reports/orders")
def get_order_report(
    recent_days: int = Query(default=7, ge=0), db: Database = Depends(get_database)
):
    return order_report(db, recent_days)


@app.get("/api/reports/sales")
def get_sales_report(
    recent_days: int = Query(default=30, ge=0), db: Database = Depends(get_database)
):
    return sales_report(db, recent_days)


@app.get("/api/reports/users")
def get_user_report(db: Database = Depends(get_database)):
    return user_report(db)
