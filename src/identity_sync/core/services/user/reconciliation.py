"""Identity reconciliation: map provider claims onto stored user records."""

from loguru import logger
from sqlalchemy import Integer, or_
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.elements import ColumnElement
from sqlalchemy.sql.expression import FunctionElement
from sqlmodel import col

from identity_sync.core.models.identity import IdentityClaims
from identity_sync.entities.core.user import User, UserRepository, UserStoreError, UserTable
from identity_sync.runtime.context import get_config


class substring_position(FunctionElement):
    """1-based position of a substring, 0 when absent. Compared byte for byte."""

    type = Integer()
    name = "substring_position"
    inherit_cache = True


@compiles(substring_position)
def _compile_instr(element, compiler, **kw):
    return f"instr({compiler.process(element.clauses, **kw)})"


@compiles(substring_position, "postgresql")
def _compile_strpos(element, compiler, **kw):
    return f"strpos({compiler.process(element.clauses, **kw)})"


def email_or_subject_clause(subject: str, email: str | None) -> ColumnElement[bool]:
    """Match on email equality or on ``subject`` appearing inside the uuid column.

    Subject containment is case-sensitive, as provider subjects are. A missing
    email matches records whose email is also missing.
    """
    email_column = col(UserTable.email)
    email_match = email_column.is_(None) if email is None else email_column == email
    return or_(email_match, substring_position(col(UserTable.uuid), subject) > 0)


async def get_user_from_db(
    repository: UserRepository, subject: str, email: str | None
) -> User | None:
    """Look up the user for a subject/email pair without modifying anything.

    When several records match, the one with the lowest id wins.
    """
    return await repository.find_first(email_or_subject_clause(subject, email))


class UserReconciliationService:
    """Create or update the stored user behind an authenticated identity."""

    def __init__(
        self, repository: UserRepository, max_append_attempts: int | None = None
    ) -> None:
        if max_append_attempts is None:
            max_append_attempts = get_config().reconciliation.max_append_attempts
        if max_append_attempts < 1:
            raise ValueError(f"max_append_attempts must be at least 1, got {max_append_attempts}")
        self._repository = repository
        self._max_append_attempts = max_append_attempts

    async def reconcile(self, claims: IdentityClaims) -> User:
        """Resolve claims to a stored user, creating or linking as needed.

        Args:
            claims: Claims of an authenticated caller; ``sub`` must be present

        Returns:
            The created, updated or already up to date user

        Raises:
            ValueError: If the claims carry no subject identifier
            UserStoreError: If any store operation fails
        """
        subject = claims.sub
        if not subject:
            raise ValueError("Cannot reconcile claims without a subject identifier")

        user = await get_user_from_db(self._repository, subject, claims.email)
        if user is None:
            return await self._create(claims, subject)

        if user.contains_subject(subject):
            logger.debug("User {} already linked to subject", user.id)
            return user

        return await self._append_subject(user, subject)

    async def _create(self, claims: IdentityClaims, subject: str) -> User:
        new_user = User(name=claims.name or "", email=claims.email, uuid=subject)
        created = await self._repository.create(new_user)
        logger.info("Created user {} for new identity", created.id)
        return created

    async def _append_subject(self, user: User, subject: str) -> User:
        user_id = user.id
        if user_id is None:
            raise ValueError("Only stored users can be linked to a subject")

        # The write is conditional on the uuid we read; a concurrent append
        # makes it miss and we retry from the fresh row.
        for attempt in range(1, self._max_append_attempts + 1):
            updated = await self._repository.update(
                user_id, user.with_subject(subject), expected_uuid=user.uuid
            )
            if updated is not None:
                logger.info("Linked additional subject to user {}", user_id)
                return updated

            logger.warning(
                "uuid of user {} changed concurrently (attempt {}/{})",
                user_id,
                attempt,
                self._max_append_attempts,
            )
            current = await self._repository.get(user_id)
            if current is None:
                raise UserStoreError(f"User {user_id} disappeared during reconciliation")
            if current.contains_subject(subject):
                return current
            user = current

        raise UserStoreError(
            f"Could not link subject to user {user_id} after "
            f"{self._max_append_attempts} attempts"
        )
