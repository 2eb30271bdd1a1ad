"""User data access layer."""

from collections.abc import Callable
from typing import Any, TypeVar

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import Session, col, select

from identity_sync.core.services.database.db_session import DbSessionService
from identity_sync.entities.core.user.entity import User
from identity_sync.entities.core.user.table import UserTable

T = TypeVar("T")


class UserStoreError(RuntimeError):
    """A user store operation (connection, read or write) failed."""


def _to_entity(row: UserTable) -> User:
    return User(id=row.id, name=row.name, email=row.email, uuid=row.uuid, phone=row.phone)


class UserRepository:
    """Data-access layer for users.

    Every operation runs its blocking SQL in the threadpool and re-raises
    driver failures as UserStoreError.
    """

    def __init__(self, db_service: DbSessionService) -> None:
        self._db = db_service

    async def _run(self, operation: str, func: Callable[..., T], *args: Any) -> T:
        try:
            return await run_in_threadpool(func, *args)
        except SQLAlchemyError as e:
            raise UserStoreError(f"User store {operation} failed: {e}") from e

    async def connect(self) -> None:
        """Establish the store connection. Idempotent."""
        await self._run("connect", self._db.connect)

    async def find_first(self, where: ColumnElement[bool]) -> User | None:
        """Return the lowest-id user matching ``where``, or None."""
        return await self._run("lookup", self._find_first, where)

    async def get(self, user_id: int) -> User | None:
        return await self._run("lookup", self._get, user_id)

    async def create(self, user: User) -> User:
        """Insert a user and return it with its store-assigned id."""
        return await self._run("create", self._create, user)

    async def update(
        self, user_id: int, user: User, expected_uuid: str | None = None
    ) -> User | None:
        """Overwrite every field of a stored user except its id.

        With ``expected_uuid`` the write only happens while the stored uuid
        still equals it; None is returned when another writer got there first.
        """
        return await self._run("update", self._update, user_id, user, expected_uuid)

    def _find_first(self, where: ColumnElement[bool]) -> User | None:
        with self._db.session_scope() as db:
            statement = select(UserTable).where(where).order_by(col(UserTable.id)).limit(1)
            row = db.exec(statement).first()
            if row is None:
                return None
            return _to_entity(row)

    def _get(self, user_id: int) -> User | None:
        with self._db.session_scope() as db:
            row = db.get(UserTable, user_id)
            if row is None:
                return None
            return _to_entity(row)

    def _create(self, user: User) -> User:
        with self._db.session_scope() as db:
            row = UserTable(name=user.name, email=user.email, uuid=user.uuid, phone=user.phone)
            db.add(row)
            db.flush()
            db.refresh(row)
            return _to_entity(row)

    def _update(self, user_id: int, user: User, expected_uuid: str | None) -> User | None:
        with self._db.session_scope() as db:
            row = self._lock_row(db, user_id)
            if row is None:
                raise UserStoreError(f"User {user_id} does not exist")
            if expected_uuid is not None and row.uuid != expected_uuid:
                return None

            for field, value in user.model_dump(exclude={"id"}).items():
                setattr(row, field, value)
            db.add(row)
            db.flush()
            db.refresh(row)
            return _to_entity(row)

    @staticmethod
    def _lock_row(db: Session, user_id: int) -> UserTable | None:
        statement = select(UserTable).where(col(UserTable.id) == user_id).with_for_update()
        return db.exec(statement).first()
