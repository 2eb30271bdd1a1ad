"""Identity reconciliation middleware.

Links identities from an external identity provider to internal user
records and caches the result per session.
"""

__version__ = "0.1.0"
