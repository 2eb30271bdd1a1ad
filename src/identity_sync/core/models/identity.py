"""Identity claims supplied by the upstream identity provider integration."""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class IdentityClaims(BaseModel):
    """Claims describing the authenticated caller.

    Absent and null optional claims are both represented as ``None``.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    sid: str = Field(description="Session identifier issued by the identity provider")
    sub: str | None = Field(default=None, description="Stable subject identifier")
    name: str | None = Field(default=None, description="Display name")
    email: str | None = Field(default=None, description="Email address")

    @field_validator("sub")
    @classmethod
    def _blank_subject_is_absent(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @classmethod
    def from_mapping(cls, claims: Mapping[str, Any]) -> "IdentityClaims":
        """Build claims from a raw provider claim dictionary."""
        return cls.model_validate(dict(claims))


class RequestIdentity(BaseModel):
    """Per-request authentication capability.

    The identity integration stores one of these at ``request.state.identity``.
    """

    model_config = ConfigDict(frozen=True)

    authenticated: bool = False
    user: IdentityClaims | None = None

    def is_authenticated(self) -> bool:
        return self.authenticated

    @classmethod
    def anonymous(cls) -> "RequestIdentity":
        return cls(authenticated=False, user=None)

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any] | IdentityClaims) -> "RequestIdentity":
        if not isinstance(claims, IdentityClaims):
            claims = IdentityClaims.from_mapping(claims)
        return cls(authenticated=True, user=claims)
