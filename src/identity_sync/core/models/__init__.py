"""Core models for identity claims and the session cache."""

from .identity import IdentityClaims, RequestIdentity
from .session import CachedUserSession

__all__ = ["IdentityClaims", "RequestIdentity", "CachedUserSession"]
