"""User domain entity."""

from pydantic import BaseModel, ConfigDict, Field

SUBJECT_DELIMITER = ", "


class User(BaseModel):
    """User entity representing a person in the system.

    ``uuid`` holds every identity provider subject linked to this user as a
    single delimited string, so one internal record can absorb several
    external identities over time.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int | None = Field(default=None, description="Store-assigned identifier")
    name: str = Field(default="", alias="Name", description="Display name")
    email: str | None = Field(default=None, description="User's email address")
    uuid: str = Field(description="Delimited identity provider subjects")
    phone: str | None = Field(default=None, description="User's phone number")

    def contains_subject(self, subject: str) -> bool:
        """Return True when the subject already appears in ``uuid``."""
        return subject in self.uuid

    def with_subject(self, subject: str) -> "User":
        """Return a copy with ``subject`` appended to ``uuid``."""
        return self.model_copy(update={"uuid": f"{self.uuid}{SUBJECT_DELIMITER}{subject}"})
