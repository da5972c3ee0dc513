"""Tests for UserService and password hashing."""

import pytest

from greenthumb.errors import (
    AuthenticationError,
    DuplicateUsernameError,
    UserNotFoundError,
    ValidationError,
)
from greenthumb.models import AdminUser, CustomerUser, Role, StaffUser
from greenthumb.users import UserService, hash_password, verify_password


class TestPasswordHashing:
    def test_hash_is_not_plaintext(self):
        stored = hash_password("secret1")
        assert "secret1" not in stored
        assert verify_password("secret1", stored)
        assert not verify_password("secret2", stored)

    def test_salted(self):
        assert hash_password("secret1") != hash_password("secret1")

    @pytest.mark.parametrize("stored", ["", "plain", "1$zz$abc", "x$00$00"])
    def test_malformed_hash_never_matches(self, stored):
        assert verify_password("secret1", stored) is False


class TestCreateUser:
    def test_roles(self, users):
        assert isinstance(users["admin"], AdminUser)
        assert isinstance(users["staff"], StaffUser)
        assert isinstance(users["customer"], CustomerUser)

    def test_customer_gets_profile(self, database, users):
        customer = UserService(database).get_user("c001")
        assert isinstance(customer, CustomerUser)
        assert customer.customer_id == "cust_c001"
        assert customer.profile.address == "1 Garden Way"

    def test_duplicate_username(self, database, users):
        with pytest.raises(DuplicateUsernameError):
            UserService(database).create_user("x001", "alice", "another1", "Staff")

    def test_duplicate_user_id(self, database, users):
        with pytest.raises(ValidationError):
            UserService(database).create_user("c001", "bobby", "another1", "Staff")

    @pytest.mark.parametrize(
        "username,password,role",
        [
            ("ab", "secret1", "Staff"),  # username too short
            ("bad name", "secret1", "Staff"),
            ("okname", "short", "Staff"),
            ("okname", "!!!!!!!", "Staff"),  # no letter or digit
            ("okname", "secret1", "Gardener"),
        ],
    )
    def test_validation(self, database, username, password, role):
        with pytest.raises(ValidationError):
            UserService(database).create_user("u100", username, password, role)

    def test_bad_phone(self, database):
        with pytest.raises(ValidationError):
            UserService(database).create_user("u100", "carol", "secret1", "Customer", phone="12")


class TestAuthenticate:
    def test_success(self, database, users):
        user = UserService(database).authenticate("alice", "alice123")
        assert user.user_id == "c001"
        assert user.role is Role.CUSTOMER

    @pytest.mark.parametrize("username,password", [("alice", "wrong1"), ("nobody", "alice123"), ("", "")])
    def test_failure(self, database, users, username, password):
        with pytest.raises(AuthenticationError) as exc_info:
            UserService(database).authenticate(username, password)
        assert "Invalid username or password" in str(exc_info.value)


class TestAccountChanges:
    def test_change_password(self, database, users):
        service = UserService(database)
        service.change_password("s001", "staff123", "newpass1", "newpass1")

        assert service.authenticate("staff", "newpass1").user_id == "s001"
        with pytest.raises(AuthenticationError):
            service.authenticate("staff", "staff123")

    def test_change_password_wrong_current(self, database, users):
        with pytest.raises(AuthenticationError) as exc_info:
            UserService(database).change_password("s001", "nope123", "newpass1", "newpass1")
        assert "Current password is incorrect" in str(exc_info.value)

    def test_change_password_mismatch(self, database, users):
        with pytest.raises(ValidationError) as exc_info:
            UserService(database).change_password("s001", "staff123", "newpass1", "newpass2")
        assert "do not match" in str(exc_info.value)

    def test_update_profile(self, database, users):
        service = UserService(database)
        profile = service.update_profile("c001", "2 Fern St", "+15551234567")

        assert profile.customer_id == "cust_c001"
        assert service.get_customer("cust_c001").profile.phone == "+15551234567"

    def test_update_profile_keeps_omitted_fields(self, database, users):
        service = UserService(database)
        service.update_profile("c001", phone="5551234567")
        profile = service.update_profile("c001", address="2 Fern St")

        assert profile.phone == "5551234567"
        stored = service.get_customer("cust_c001").profile
        assert (stored.address, stored.phone) == ("2 Fern St", "5551234567")

    def test_update_profile_rejects_staff(self, database, users):
        with pytest.raises(ValidationError):
            UserService(database).update_profile("s001", "2 Fern St")

    def test_update_profile_bad_phone(self, database, users):
        with pytest.raises(ValidationError):
            UserService(database).update_profile("c001", phone="phone")

    def test_delete_user_removes_profile(self, database, users):
        service = UserService(database)
        service.delete_user("c001")

        with pytest.raises(UserNotFoundError):
            service.get_user("c001")
        with pytest.raises(UserNotFoundError):
            service.get_customer("cust_c001")
        with pytest.raises(UserNotFoundError):
            service.delete_user("c001")

    def test_list_users(self, database, users):
        service = UserService(database)
        assert [u.username for u in service.list_users()] == ["admin", "alice", "staff"]
        assert [u.username for u in service.list_users("Customer")] == ["alice"]
        with pytest.raises(ValidationError):
            service.list_users("Gardener")


class TestUpdateUser:
    def test_rename(self, database, users):
        service = UserService(database)
        user = service.update_user("s001", username="head_gardener")

        assert isinstance(user, StaffUser)
        assert user.username == "head_gardener"
        assert service.authenticate("head_gardener", "staff123").user_id == "s001"

    def test_rename_to_taken_username(self, database, users):
        with pytest.raises(DuplicateUsernameError):
            UserService(database).update_user("s001", username="alice")

    def test_keeping_own_username(self, database, users):
        user = UserService(database).update_user("c001", username="alice")
        assert user.username == "alice"
        assert user.customer_id == "cust_c001"

    def test_becoming_customer_adds_profile(self, database, users):
        service = UserService(database)
        user = service.update_user("s001", role="Customer")

        assert isinstance(user, CustomerUser)
        assert user.customer_id == "cust_s001"
        assert service.get_customer("cust_s001").username == "staff"

    def test_leaving_customer_role_drops_profile(self, database, users):
        service = UserService(database)
        user = service.update_user("c001", role=Role.STAFF)

        assert isinstance(user, StaffUser)
        with pytest.raises(UserNotFoundError):
            service.get_customer("cust_c001")
        assert [u.username for u in service.list_users("Customer")] == []

    @pytest.mark.parametrize("fields", [
        {"username": "no spaces allowed"},
        {"username": "ab"},
        {"role": "Gardener"},
    ])
    def test_validation(self, database, users, fields):
        with pytest.raises(ValidationError):
            UserService(database).update_user("s001", **fields)

    def test_unknown_user(self, database):
        with pytest.raises(UserNotFoundError):
            UserService(database).update_user("nobody", username="ghost")
