"""Kroger public API client package."""

from .client import (
    ClientConfig,
    KrogerAPIError,
    KrogerAuthError,
    KrogerClient,
    KrogerConfigError,
    KrogerError,
    TokenCache,
)
from .lookup import KrogerProductLookup, ProductLookup
from .models import KrogerProduct, KrogerStore

__all__ = [
    "ClientConfig",
    "KrogerAPIError",
    "KrogerAuthError",
    "KrogerClient",
    "KrogerConfigError",
    "KrogerError",
    "KrogerProduct",
    "KrogerProductLookup",
    "KrogerStore",
    "ProductLookup",
    "TokenCache",
]
