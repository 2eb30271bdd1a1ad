"""User database table model."""

from sqlalchemy import Column, String
from sqlmodel import Field, SQLModel


class UserTable(SQLModel, table=True):
    """Database persistence model for users.

    This represents how the User entity is stored in the database.
    It's separate from the domain entity to maintain clean architecture
    while keeping related code together.
    """

    __tablename__ = "user"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(
        default="", sa_column=Column("Name", String, nullable=False, default="")
    )
    email: str | None = Field(default=None, index=True)
    uuid: str = Field(sa_column=Column("uuid", String, nullable=False))
    phone: str | None = None
