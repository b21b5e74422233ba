"""
Re-exports the connector-owned ORM models from the database package.
"""

from database.models import DailyActivityLog, OAuthState, ProviderCredential  # noqa: F401

__all__ = ["DailyActivityLog", "OAuthState", "ProviderCredential"]
