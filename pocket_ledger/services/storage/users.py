"""
User profile storage.

Profiles are keyed by the external auth identifier (``user_id``). The
ledger does not authenticate anyone; it only keeps the local profile and
its interest tags.
"""

from typing import Optional

import structlog
from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from pocket_ledger.models.entities import User, UserInterest, utc_now
from pocket_ledger.services.storage import tables
from pocket_ledger.services.storage.database import Database
from pocket_ledger.services.storage.interface import StorageError, ValidationError


logger = structlog.get_logger(__name__)


class UserStore:
    """Local user profiles and their interests."""

    def __init__(self, database: Database):
        self._db = database

    async def upsert(self, user: User) -> User:
        """Insert the profile, or update it in place if it already exists."""
        if not user.user_id:
            raise ValidationError("save user rejected: user_id is required")

        profile = user.model_dump(exclude={"id", "user_id", "created_at", "synced"})
        profile["updated_at"] = utc_now()
        try:
            with self._db.transaction() as conn:
                existing = conn.execute(
                    select(tables.users.c.id).where(tables.users.c.user_id == user.user_id)
                ).first()
                if existing is None:
                    conn.execute(insert(tables.users).values(**user.model_dump()))
                    stored = user
                else:
                    conn.execute(
                        update(tables.users)
                        .where(tables.users.c.user_id == user.user_id)
                        .values(**profile, synced=False)
                    )
                    stored = user.model_copy(update={"id": existing.id, **profile, "synced": False})
        except SQLAlchemyError as e:
            logger.error("user_upsert_failed", user_id=user.user_id, error=str(e))
            raise StorageError(f"Failed to save user: {e}") from e
        return stored

    async def get_by_user_id(self, user_id: str) -> Optional[User]:
        try:
            with self._db.connect() as conn:
                row = conn.execute(
                    select(tables.users).where(tables.users.c.user_id == user_id)
                ).mappings().first()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get user: {e}") from e
        return User.model_validate(dict(row)) if row is not None else None

    async def set_interests(self, user_id: str, interests: list[str]) -> list[UserInterest]:
        """Replace a user's interests with ``interests`` (duplicates dropped)."""
        unique = list(dict.fromkeys(i.strip() for i in interests if i.strip()))
        rows = [UserInterest(user_id=user_id, interest=interest) for interest in unique]
        try:
            with self._db.transaction() as conn:
                conn.execute(
                    delete(tables.user_interests).where(tables.user_interests.c.user_id == user_id)
                )
                if rows:
                    conn.execute(
                        insert(tables.user_interests),
                        [row.model_dump() for row in rows],
                    )
        except SQLAlchemyError as e:
            logger.error("user_interests_save_failed", user_id=user_id, error=str(e))
            raise StorageError(f"Failed to save interests: {e}") from e
        return rows

    async def list_interests(self, user_id: str) -> list[str]:
        try:
            with self._db.connect() as conn:
                rows = conn.execute(
                    select(tables.user_interests.c.interest)
                    .where(tables.user_interests.c.user_id == user_id)
                    .order_by(tables.user_interests.c.interest)
                ).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list interests: {e}") from e
        return [row.interest for row in rows]
