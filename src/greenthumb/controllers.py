"""Role-specific controllers.

Controllers are the boundary a user interface talks to. Each action returns an
Outcome instead of raising, so callers only ever deal with ok/message/value.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from .cart import ShoppingCart
from .catalog import PlantCatalog
from .config import DEFAULT_LOW_STOCK_THRESHOLD
from .database import Database
from .errors import AccessDeniedError, GreenthumbError, ValidationError
from .inventory import InventoryLedger
from .models import AdminUser, CustomerUser, Role, StaffUser, User, parse_role
from .orders import OrderService
from .reports import inventory_report, order_report, sales_report, user_report
from .users import UserService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome:
    """Result of a controller action."""

    ok: bool
    message: str = ""
    value: Any = None


class _BaseController:
    def __init__(
        self,
        user: User,
        db: Database,
        low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
    ):
        self.user = user
        self.db = db
        self.low_stock_threshold = low_stock_threshold
        self.ledger = InventoryLedger(db, low_stock_threshold)
        self.catalog = PlantCatalog(db)
        self.orders = OrderService(db, self.ledger)
        self.users = UserService(db)

    def _run(self, action: str, fn: Callable[..., Any], *args, success: str = "", **kwargs) -> Outcome:
        try:
            value = fn(*args, **kwargs)
        except GreenthumbError as e:
            logger.warning("%s failed for %s: %s", action, self.user.username, e)
            return Outcome(False, str(e))
        return Outcome(True, success, value)

    # Shared by every role

    def list_plants(self) -> Outcome:
        return self._run("list plants", self.catalog.list_plants)

    def get_plant(self, plant_id: str) -> Outcome:
        return self._run("get plant", self.catalog.get_plant, plant_id)

    def search_plants(
        self,
        name: str | None = None,
        plant_type: str | None = None,
        min_price: Any = None,
        max_price: Any = None,
    ) -> Outcome:
        return self._run(
            "search plants", self.catalog.search_plants, name, plant_type, min_price, max_price
        )

    def change_password(self, current: str, new: str, confirm: str) -> Outcome:
        return self._run(
            "change password",
            self.users.change_password,
            self.user.user_id,
            current,
            new,
            confirm,
            success="Password changed successfully.",
        )


class AdminController(_BaseController):
    """Users, catalogue, every order and all reports."""

    def create_user(
        self,
        user_id: str,
        username: str,
        password: str,
        role: "Role | str",
        address: str | None = None,
        phone: str | None = None,
    ) -> Outcome:
        return self._run(
            "create user",
            self.users.create_user,
            user_id,
            username,
            password,
            role,
            address=address,
            phone=phone,
            success="User created successfully.",
        )

    def delete_user(self, user_id: str) -> Outcome:
        if user_id == self.user.user_id:
            return Outcome(False, "You cannot delete your own account.")
        return self._run(
            "delete user", self.users.delete_user, user_id, success="User deleted successfully."
        )

    def update_user(
        self, user_id: str, username: str | None = None, role: "Role | str | None" = None
    ) -> Outcome:
        if user_id == self.user.user_id and role is not None and parse_role(role) is not Role.ADMIN:
            return Outcome(False, "You cannot change your own role.")
        return self._run(
            "update user",
            self.users.update_user,
            user_id,
            username,
            role,
            success="User updated successfully.",
        )

    def list_users(self, role: "Role | str | None" = None) -> Outcome:
        return self._run("list users", self.users.list_users, role)

    def create_plant(
        self,
        plant_id: str,
        name: str,
        plant_type: str,
        price: Any,
        quantity: Any = 0,
        description: str = "",
    ) -> Outcome:
        return self._run(
            "create plant",
            self.catalog.create_plant,
            plant_id,
            name,
            plant_type,
            price,
            quantity,
            description,
            success="Plant created successfully.",
        )

    def update_plant(self, plant_id: str, **fields: Any) -> Outcome:
        return self._run(
            "update plant",
            self.catalog.update_plant,
            plant_id,
            success="Plant updated successfully.",
            **fields,
        )

    def delete_plant(self, plant_id: str) -> Outcome:
        return self._run(
            "delete plant",
            self.catalog.delete_plant,
            plant_id,
            success="Plant deleted successfully.",
        )

    def list_orders(self, status: str | None = None) -> Outcome:
        return self._run("list orders", self.orders.list_orders, status)

    def update_order_status(self, order_id: str, status: str) -> Outcome:
        return self._run(
            "update order status",
            self.orders.update_order_status,
            order_id,
            status,
            success=f"Order status updated to {status}.",
        )

    def user_report(self) -> Outcome:
        return self._run("user report", user_report, self.db)

    def inventory_report(self) -> Outcome:
        return self._run("inventory report", inventory_report, self.db, self.low_stock_threshold)

    def sales_report(self) -> Outcome:
        return self._run("sales report", sales_report, self.db)


class StaffController(_BaseController):
    """Stock levels, order fulfilment and customer lookups."""

    def update_plant(self, plant_id: str, **fields: Any) -> Outcome:
        return self._run(
            "update plant",
            self.catalog.update_plant,
            plant_id,
            success="Plant updated successfully.",
            **fields,
        )

    def update_plant_quantity(self, plant_id: str, quantity: int) -> Outcome:
        return self._run(
            "update plant quantity",
            self.ledger.set_quantity,
            plant_id,
            quantity,
            success="Plant quantity updated successfully.",
        )

    def restock(self, plant_id: str, amount: int) -> Outcome:
        return self._run(
            "restock", self.ledger.restock, plant_id, amount, success="Plant restocked."
        )

    def low_stock_plants(self, threshold: int | None = None) -> Outcome:
        return self._run("low stock", self.ledger.low_stock, threshold)

    def list_orders(self, status: str | None = None) -> Outcome:
        return self._run("list orders", self.orders.list_orders, status)

    def order_details(self, order_id: str) -> Outcome:
        return self._run("order details", self.orders.get_order, order_id)

    def process_order(self, order_id: str) -> Outcome:
        return self._run(
            "process order",
            self.orders.process_order,
            order_id,
            success="Order processed successfully.",
        )

    def update_order_status(self, order_id: str, status: str) -> Outcome:
        return self._run(
            "update order status",
            self.orders.update_order_status,
            order_id,
            status,
            success=f"Order status updated to {status}.",
        )

    def customer_info(self, customer_id: str) -> Outcome:
        return self._run("customer info", self.users.get_customer, customer_id)

    def update_customer_info(
        self, user_id: str, address: str | None = None, phone: str | None = None
    ) -> Outcome:
        return self._run(
            "update customer",
            self.users.update_profile,
            user_id,
            address,
            phone,
            success="Customer information updated successfully.",
        )

    def list_customers(self) -> Outcome:
        return self._run("list customers", self.users.list_users, Role.CUSTOMER)

    def inventory_report(self) -> Outcome:
        return self._run("inventory report", inventory_report, self.db, self.low_stock_threshold)

    def order_report(self) -> Outcome:
        return self._run("order report", order_report, self.db)


class CustomerController(_BaseController):
    """Browsing, the shopping cart and the customer's own orders."""

    user: CustomerUser

    def __init__(
        self,
        user: CustomerUser,
        db: Database,
        low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
        cart: ShoppingCart | None = None,
    ):
        super().__init__(user, db, low_stock_threshold)
        if user.customer_id is None:
            raise ValidationError(f"Customer {user.username} has no customer profile")
        self.customer_id = user.customer_id
        self.cart = cart or ShoppingCart(db, self.customer_id, self.ledger)

    def available_plants(self) -> Outcome:
        return self._run("available plants", self.catalog.available_plants)

    def plants_by_type(self, plant_type: str) -> Outcome:
        return self._run("plants by type", self.catalog.plants_by_type, plant_type)

    def add_to_cart(self, plant_id: str, quantity: int) -> Outcome:
        return self._run(
            "add to cart",
            self.cart.add_to_cart,
            plant_id,
            quantity,
            success="Item added to cart.",
        )

    def remove_from_cart(self, plant_id: str) -> Outcome:
        return self._run(
            "remove from cart",
            self.cart.remove_from_cart,
            plant_id,
            success="Item removed from cart.",
        )

    def update_cart_item_quantity(self, plant_id: str, quantity: int) -> Outcome:
        return self._run(
            "update cart",
            self.cart.update_cart_item_quantity,
            plant_id,
            quantity,
            success="Cart updated.",
        )

    def cart_items(self) -> Outcome:
        return Outcome(True, value=self.cart.items)

    def cart_total(self) -> Outcome:
        return Outcome(True, value=self.cart.total())

    def clear_cart(self) -> Outcome:
        self.cart.clear()
        return Outcome(True, "Cart cleared.")

    def place_order(self) -> Outcome:
        outcome = self._run("place order", self.cart.place_order)
        if outcome.ok:
            order = outcome.value
            return Outcome(
                True, f"Order placed successfully! Order ID: {order.order_id}", order
            )
        return outcome

    def order_history(self) -> Outcome:
        return self._run("order history", self.orders.order_history, self.customer_id)

    def order_details(self, order_id: str) -> Outcome:
        return self._run("order details", self._own_order, order_id)

    def cancel_order(self, order_id: str) -> Outcome:
        return self._run(
            "cancel order",
            self.orders.cancel_order,
            order_id,
            self.customer_id,
            success="Order cancelled successfully.",
        )

    def return_order(self, order_id: str) -> Outcome:
        return self._run(
            "return order",
            self.orders.return_order,
            order_id,
            self.customer_id,
            success="Order returned successfully.",
        )

    def update_profile(self, address: str | None = None, phone: str | None = None) -> Outcome:
        outcome = self._run(
            "update profile",
            self.users.update_profile,
            self.user.user_id,
            address,
            phone,
            success="Profile updated successfully.",
        )
        if outcome.ok:
            self.user.profile = outcome.value
        return outcome

    def _own_order(self, order_id: str):
        order = self.orders.get_order(order_id)
        if order.customer_id != self.customer_id:
            raise AccessDeniedError("You can only view your own orders.")
        return order


Controller = AdminController | StaffController | CustomerController


def controller_for(
    user: User, db: Database, low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD
) -> Controller:
    """Pick the controller for the user's role."""
    match user:
        case AdminUser():
            return AdminController(user, db, low_stock_threshold)
        case StaffUser():
            return StaffController(user, db, low_stock_threshold)
        case CustomerUser():
            return CustomerController(user, db, low_stock_threshold)
        case _:
            raise ValidationError(f"Unknown user type: {type(user).__name__}")


def login(
    db: Database,
    username: str,
    password: str,
    low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
) -> Outcome:
    """
    Authenticate and hand back the matching controller.

    On success the Outcome's value is the controller for the user's role.
    """
    try:
        user = UserService(db).authenticate(username, password)
        controller = controller_for(user, db, low_stock_threshold)
    except GreenthumbError as e:
        return Outcome(False, str(e))
    return Outcome(True, f"Login successful! Welcome, {user.username}", controller)
