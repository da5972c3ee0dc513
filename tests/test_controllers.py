"""Tests for the role controllers."""

from decimal import Decimal

import pytest

from greenthumb.controllers import (
    AdminController,
    CustomerController,
    Outcome,
    StaffController,
    controller_for,
    login,
)
from greenthumb.errors import ValidationError
from greenthumb.lifecycle import OrderStatus
from greenthumb.models import CustomerUser, Role
from greenthumb.users import UserService

from .conftest import stock_of


class TestLogin:
    @pytest.mark.parametrize(
        "username,password,controller_type",
        [
            ("admin", "admin123", AdminController),
            ("staff", "staff123", StaffController),
            ("alice", "alice123", CustomerController),
        ],
    )
    def test_dispatch_by_role(self, database, users, username, password, controller_type):
        outcome = login(database, username, password)

        assert outcome.ok
        assert isinstance(outcome.value, controller_type)
        assert username in outcome.message

    def test_bad_credentials(self, database, users):
        outcome = login(database, "alice", "wrong1")
        assert outcome == Outcome(False, "Invalid username or password.")

    def test_controller_for_rejects_other_types(self, database):
        with pytest.raises(ValidationError):
            controller_for(object(), database)

    def test_customer_without_profile(self, database):
        with pytest.raises(ValidationError):
            CustomerController(CustomerUser("c9", "nobody"), database)


class TestCustomerFlow:
    def test_cart_to_order(self, database, plants, users):
        customer = controller_for(users["customer"], database)

        assert customer.add_to_cart("rose", 3).ok
        assert customer.add_to_cart("basil", 2).ok
        assert customer.cart_total().value == Decimal("40.00")

        placed = customer.place_order()
        assert placed.ok
        assert placed.value.order_id in placed.message
        assert customer.cart_items().value == []

        history = customer.order_history()
        assert [o.order_id for o in history.value] == [placed.value.order_id]

    def test_failures_become_messages(self, database, plants, users):
        customer = controller_for(users["customer"], database)

        outcome = customer.add_to_cart("bonsai", 5)
        assert not outcome.ok
        assert "Insufficient stock" in outcome.message

        outcome = customer.place_order()
        assert outcome == Outcome(False, "Shopping cart is empty.")

    def test_cannot_touch_other_customers_orders(self, database, plants, users):
        UserService(database).create_user("c002", "bob", "bob12345", "Customer")
        bob = controller_for(UserService(database).get_user("c002"), database)
        bob.add_to_cart("rose", 1)
        order = bob.place_order().value

        alice = controller_for(users["customer"], database)
        assert not alice.order_details(order.order_id).ok
        assert not alice.cancel_order(order.order_id).ok
        assert bob.cancel_order(order.order_id).ok

    def test_update_profile(self, database, users):
        customer = controller_for(users["customer"], database)
        assert customer.update_profile("9 Moss Lane", "5551234567").ok
        assert customer.user.profile.address == "9 Moss Lane"
        assert not customer.update_profile(phone="nope").ok


class TestStaffFlow:
    def test_process_and_ship(self, database, plants, users):
        customer = controller_for(users["customer"], database)
        customer.add_to_cart("bonsai", 2)
        order = customer.place_order().value
        staff = controller_for(users["staff"], database)

        processed = staff.process_order(order.order_id)
        assert processed.ok
        assert processed.message == "Order processed successfully."
        assert processed.value.status is OrderStatus.PROCESSING
        assert stock_of(database, "bonsai") == 0
        assert staff.update_order_status(order.order_id, "Shipped").ok
        assert staff.order_details(order.order_id).value.status is OrderStatus.SHIPPED

        rejected = staff.update_order_status(order.order_id, "Pending")
        assert not rejected.ok
        assert rejected.message == "Invalid status transition from Shipped to Pending"

    def test_stock_management(self, database, plants, users):
        staff = controller_for(users["staff"], database)
        assert [p.plant_id for p in staff.low_stock_plants().value] == ["bonsai"]
        assert staff.restock("bonsai", 20).ok
        assert staff.low_stock_plants().value == []
        assert not staff.update_plant_quantity("rose", -1).ok

    def test_customer_lookup(self, database, users):
        staff = controller_for(users["staff"], database)
        assert staff.customer_info("cust_c001").value.username == "alice"
        assert [u.username for u in staff.list_customers().value] == ["alice"]


class TestAdminFlow:
    def test_user_management(self, database, users):
        admin = controller_for(users["admin"], database)

        assert admin.create_user("s002", "gardener", "grow1234", "Staff").ok
        duplicate = admin.create_user("s003", "gardener", "grow1234", "Staff")
        assert not duplicate.ok
        assert "already exists" in duplicate.message

        assert not admin.delete_user("a001").ok
        assert admin.delete_user("s002").ok

    def test_plant_management(self, database, users):
        admin = controller_for(users["admin"], database)
        assert admin.create_plant("ivy", "Ivy", "Vine", "7.25", 12).ok
        assert admin.update_plant("ivy", name="English Ivy").ok
        assert admin.get_plant("ivy").value.name == "English Ivy"
        assert admin.delete_plant("ivy").ok
        assert not admin.get_plant("ivy").ok

    def test_reports(self, database, plants, users):
        admin = controller_for(users["admin"], database)
        assert admin.user_report().value["total_users"] == 3
        assert admin.inventory_report().value["total_plants"] == 3
        assert admin.sales_report().value["total_sales"] == "0.00"


class TestFormInput:
    """Quantities typed into a form arrive as text."""

    def test_customer_quantity_text(self, database, plants, users):
        customer = controller_for(users["customer"], database)

        assert customer.add_to_cart("rose", "2").ok
        assert customer.update_cart_item_quantity("rose", "4").ok
        assert customer.cart_total().value == Decimal("40.00")

        outcome = customer.add_to_cart("rose", "abc")
        assert outcome == Outcome(False, "Invalid quantity: 'abc'")
        assert not customer.update_cart_item_quantity("rose", "abc").ok

    def test_staff_quantity_text(self, database, plants, users):
        staff = controller_for(users["staff"], database)

        assert staff.restock("rose", "5").value.quantity == 25
        assert staff.update_plant_quantity("rose", "7").value.quantity == 7
        assert staff.low_stock_plants("3").value[0].plant_id == "bonsai"

        assert not staff.restock("rose", "abc").ok
        assert not staff.update_plant_quantity("rose", "abc").ok
        assert stock_of(database, "rose") == 7


class TestUserEditing:
    def test_rename_and_change_role(self, database, users):
        admin = controller_for(users["admin"], database)

        outcome = admin.update_user("s001", username="head_gardener")
        assert outcome.ok
        assert outcome.value.username == "head_gardener"

        outcome = admin.update_user("s001", role="Customer")
        assert outcome.ok
        assert outcome.value.customer_id == "cust_s001"

        outcome = admin.update_user("c001", role="Staff")
        assert outcome.ok
        assert outcome.value.role is Role.STAFF
        assert [u.username for u in admin.list_users("Customer").value] == ["head_gardener"]

    def test_cannot_demote_self(self, database, users):
        admin = controller_for(users["admin"], database)
        assert admin.update_user("a001", role="Staff") == Outcome(
            False, "You cannot change your own role."
        )
        assert admin.update_user("a001", username="root_admin").ok

    def test_duplicate_username(self, database, users):
        admin = controller_for(users["admin"], database)
        outcome = admin.update_user("s001", username="alice")
        assert not outcome.ok
        assert "already exists" in outcome.message

    def test_staff_profile_edit_keeps_address(self, database, users):
        staff = controller_for(users["staff"], database)
        assert staff.update_customer_info("c001", phone="5551234567").ok

        profile = staff.customer_info("cust_c001").value.profile
        assert profile.address == "1 Garden Way"
        assert profile.phone == "5551234567"
