"""User storage for greenthumb."""

from typing import Any

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.engine import Connection

from .database import customers, users
from .errors import UserNotFoundError
from .models import CustomerProfile, CustomerUser, Role, User, make_user


def _row_to_user(row: Any) -> User:
    profile = None
    if row.customer_id is not None:
        profile = CustomerProfile(
            customer_id=row.customer_id,
            address=row.address,
            phone=row.phone,
        )
    return make_user(
        role=row.role,
        user_id=row.user_id,
        username=row.username,
        password_hash=row.password_hash,
        profile=profile,
    )


class UserStore:
    """Reads and writes the users and customers tables on one connection."""

    def __init__(self, conn: Connection):
        self.conn = conn

    def _select(self):
        return select(
            users,
            customers.c.customer_id,
            customers.c.address,
            customers.c.phone,
        ).select_from(users.outerjoin(customers))

    def get_user(self, user_id: str) -> User | None:
        row = self.conn.execute(self._select().where(users.c.user_id == user_id)).first()
        return _row_to_user(row) if row is not None else None

    def require_user(self, user_id: str) -> User:
        """
        Get a user by ID.

        Raises:
            UserNotFoundError: If user doesn't exist.
        """
        user = self.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def get_by_username(self, username: str) -> User | None:
        row = self.conn.execute(self._select().where(users.c.username == username)).first()
        return _row_to_user(row) if row is not None else None

    def get_by_customer_id(self, customer_id: str) -> User | None:
        row = self.conn.execute(
            self._select().where(customers.c.customer_id == customer_id)
        ).first()
        return _row_to_user(row) if row is not None else None

    def username_exists(self, username: str) -> bool:
        stmt = select(users.c.user_id).where(users.c.username == username)
        return self.conn.execute(stmt).first() is not None

    def user_id_exists(self, user_id: str) -> bool:
        stmt = select(users.c.user_id).where(users.c.user_id == user_id)
        return self.conn.execute(stmt).first() is not None

    def list_users(self, role: Role | None = None) -> list[User]:
        stmt = self._select()
        if role is not None:
            stmt = stmt.where(users.c.role == role.value)
        stmt = stmt.order_by(users.c.username)
        return [_row_to_user(row) for row in self.conn.execute(stmt)]

    def role_counts(self) -> dict[Role, int]:
        counts = {role: 0 for role in Role}
        stmt = select(users.c.role, func.count()).group_by(users.c.role)
        for role, count in self.conn.execute(stmt):
            counts[Role(role)] = count
        return counts

    def insert_user(self, user: User) -> None:
        """Insert the user row, plus the customers row for customers."""
        self.conn.execute(
            insert(users).values(
                user_id=user.user_id,
                username=user.username,
                password_hash=user.password_hash,
                role=user.role.value,
            )
        )
        if isinstance(user, CustomerUser) and user.profile is not None:
            self.conn.execute(
                insert(customers).values(
                    customer_id=user.profile.customer_id,
                    user_id=user.user_id,
                    address=user.profile.address,
                    phone=user.profile.phone,
                )
            )

    def update_password(self, user_id: str, password_hash: str) -> bool:
        result = self.conn.execute(
            update(users).where(users.c.user_id == user_id).values(password_hash=password_hash)
        )
        return result.rowcount > 0

    def update_user(self, user_id: str, username: str, role: Role) -> bool:
        result = self.conn.execute(
            update(users)
            .where(users.c.user_id == user_id)
            .values(username=username, role=role.value)
        )
        return result.rowcount > 0

    def insert_profile(self, user_id: str, profile: CustomerProfile) -> None:
        self.conn.execute(
            insert(customers).values(
                customer_id=profile.customer_id,
                user_id=user_id,
                address=profile.address,
                phone=profile.phone,
            )
        )

    def delete_profile(self, user_id: str) -> bool:
        result = self.conn.execute(delete(customers).where(customers.c.user_id == user_id))
        return result.rowcount > 0

    def update_profile(self, profile: CustomerProfile) -> bool:
        result = self.conn.execute(
            update(customers)
            .where(customers.c.customer_id == profile.customer_id)
            .values(address=profile.address, phone=profile.phone)
        )
        return result.rowcount > 0

    def delete_user(self, user_id: str) -> bool:
        """Delete a user; the customers row goes with it (ON DELETE CASCADE)."""
        result = self.conn.execute(delete(users).where(users.c.user_id == user_id))
        return result.rowcount > 0
