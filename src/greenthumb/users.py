"""User accounts, customer profiles and authentication."""

import hashlib
import hmac
import logging
import secrets

from .database import Database
from .errors import (
    AuthenticationError,
    DuplicateUsernameError,
    UserNotFoundError,
    ValidationError,
)
from .models import CustomerProfile, CustomerUser, Role, User, make_user, parse_role
from .user_store import UserStore
from .utils import is_not_empty, is_valid_password, is_valid_phone, is_valid_username

logger = logging.getLogger(__name__)

PASSWORD_HASH_ITERATIONS = 120_000
CUSTOMER_ID_PREFIX = "cust_"


def hash_password(password: str, iterations: int | None = None) -> str:
    """Hash a password as 'iterations$salt$digest' (PBKDF2-SHA256, hex)."""
    iterations = iterations or PASSWORD_HASH_ITERATIONS
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), bytes.fromhex(salt), iterations
    ).hex()
    return f"{iterations}${salt}${digest}"


def verify_password(password: str, stored: str) -> bool:
    """Check a password against a value produced by hash_password."""
    parts = stored.split("$")
    if len(parts) != 3:
        return False
    iterations, salt, digest = parts
    try:
        candidate = hashlib.pbkdf2_hmac(
            "sha256", password.encode("utf-8"), bytes.fromhex(salt), int(iterations)
        ).hex()
    except ValueError:
        return False
    return hmac.compare_digest(candidate, digest)


class UserService:
    """Creates, authenticates and maintains users."""

    def __init__(self, db: Database):
        self.db = db

    def create_user(
        self,
        user_id: str,
        username: str,
        password: str,
        role: "Role | str",
        address: str | None = None,
        phone: str | None = None,
    ) -> User:
        """
        Register a new user.

        Customers also get a profile row with customer_id 'cust_' + user_id.

        Raises:
            ValidationError: If a field is malformed or the user ID is taken.
            DuplicateUsernameError: If the username is taken.
        """
        if not is_not_empty(user_id):
            raise ValidationError("User ID cannot be empty.")
        if not is_valid_username(username):
            raise ValidationError(
                "Username must be 3-20 characters of letters, digits or underscores."
            )
        if not is_valid_password(password):
            raise ValidationError(
                "Password must be 6-50 characters and contain a letter or digit."
            )
        parsed_role = parse_role(role)
        if parsed_role is None:
            raise ValidationError(f"Invalid user role: {role}")
        if phone and not is_valid_phone(phone):
            raise ValidationError(f"Invalid phone number: {phone}")

        user_id = user_id.strip()
        username = username.strip()
        profile = None
        if parsed_role is Role.CUSTOMER:
            profile = CustomerProfile(
                customer_id=f"{CUSTOMER_ID_PREFIX}{user_id}", address=address, phone=phone
            )
        user = make_user(
            parsed_role,
            user_id=user_id,
            username=username,
            password_hash=hash_password(password),
            profile=profile,
        )

        with self.db.transaction("create user") as conn:
            store = UserStore(conn)
            if store.username_exists(username):
                raise DuplicateUsernameError(username)
            if store.user_id_exists(user_id):
                raise ValidationError(f"User ID already exists: {user_id}")
            store.insert_user(user)
        logger.info("Created %s user %s", parsed_role, username)
        return user

    def authenticate(self, username: str, password: str) -> User:
        """
        Return the user for a username/password pair.

        Raises:
            AuthenticationError: If the pair doesn't match any user.
        """
        if not is_not_empty(username) or not password:
            raise AuthenticationError()
        with self.db.transaction("authenticate") as conn:
            user = UserStore(conn).get_by_username(username.strip())
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Failed login for %s", username)
            raise AuthenticationError()
        logger.info("User %s logged in", user.username)
        return user

    def change_password(
        self, user_id: str, current_password: str, new_password: str, confirm_password: str
    ) -> None:
        """
        Raises:
            UserNotFoundError: If user doesn't exist.
            AuthenticationError: If the current password is wrong.
            ValidationError: If the new password is weak or unconfirmed.
        """
        with self.db.transaction("change password") as conn:
            store = UserStore(conn)
            user = store.require_user(user_id)
            if not verify_password(current_password, user.password_hash):
                raise AuthenticationError("Current password is incorrect.")
            if not is_valid_password(new_password):
                raise ValidationError(
                    "New password must be 6-50 characters and contain a letter or digit."
                )
            if new_password != confirm_password:
                raise ValidationError("New passwords do not match.")
            store.update_password(user_id, hash_password(new_password))
        logger.info("Password changed for user %s", user_id)

    def update_user(
        self, user_id: str, username: str | None = None, role: "Role | str | None" = None
    ) -> User:
        """
        Rename a user and/or change their role. None leaves a field unchanged.

        Becoming a Customer adds an empty profile ('cust_' + user_id); leaving
        the Customer role deletes the profile. Existing orders are untouched.

        Raises:
            UserNotFoundError: If user doesn't exist.
            ValidationError: If the username or role is malformed.
            DuplicateUsernameError: If another user has the username.
        """
        if username is not None and not is_valid_username(username):
            raise ValidationError(
                "Username must be 3-20 characters of letters, digits or underscores."
            )
        new_role = None
        if role is not None:
            new_role = parse_role(role)
            if new_role is None:
                raise ValidationError(f"Invalid user role: {role}")

        with self.db.transaction("update user") as conn:
            store = UserStore(conn)
            user = store.require_user(user_id)
            new_username = username.strip() if username is not None else user.username
            new_role = new_role or user.role
            if new_username != user.username and store.username_exists(new_username):
                raise DuplicateUsernameError(new_username)

            store.update_user(user_id, new_username, new_role)
            if new_role is Role.CUSTOMER and user.role is not Role.CUSTOMER:
                store.insert_profile(
                    user_id, CustomerProfile(customer_id=f"{CUSTOMER_ID_PREFIX}{user_id}")
                )
            elif user.role is Role.CUSTOMER and new_role is not Role.CUSTOMER:
                store.delete_profile(user_id)
            updated = store.require_user(user_id)
        logger.info("Updated user %s (%s, %s)", user_id, new_username, new_role)
        return updated

    def update_profile(
        self, user_id: str, address: str | None = None, phone: str | None = None
    ) -> CustomerProfile:
        """
        Update a customer's address and phone. None leaves a field unchanged.

        Raises:
            UserNotFoundError: If user doesn't exist.
            ValidationError: If the user is not a customer or the phone is malformed.
        """
        if phone and not is_valid_phone(phone):
            raise ValidationError(f"Invalid phone number: {phone}")
        with self.db.transaction("update profile") as conn:
            store = UserStore(conn)
            user = store.require_user(user_id)
            if not isinstance(user, CustomerUser) or user.profile is None:
                raise ValidationError("Only customers have a profile.")
            # Omitted fields keep their stored value
            profile = CustomerProfile(
                customer_id=user.profile.customer_id,
                address=address if address is not None else user.profile.address,
                phone=phone if phone is not None else user.profile.phone,
            )
            store.update_profile(profile)
        logger.info("Profile updated for user %s", user_id)
        return profile

    def delete_user(self, user_id: str) -> None:
        with self.db.transaction("delete user") as conn:
            if not UserStore(conn).delete_user(user_id):
                raise UserNotFoundError(user_id)
        logger.info("Deleted user %s", user_id)

    def get_user(self, user_id: str) -> User:
        with self.db.transaction("get user") as conn:
            return UserStore(conn).require_user(user_id)

    def get_customer(self, customer_id: str) -> CustomerUser:
        with self.db.transaction("get customer") as conn:
            user = UserStore(conn).get_by_customer_id(customer_id)
        if not isinstance(user, CustomerUser):
            raise UserNotFoundError(customer_id)
        return user

    def list_users(self, role: "Role | str | None" = None) -> list[User]:
        wanted = None
        if role is not None:
            wanted = parse_role(role)
            if wanted is None:
                raise ValidationError(f"Invalid user role: {role}")
        with self.db.transaction("list users") as conn:
            return UserStore(conn).list_users(wanted)
