"""Pluggable storage providers for catalog entities."""

from .base import (
    NoopTransactionManager,
    QueryParam,
    StorageManager,
    TransactionManager,
)

__all__ = ["NoopTransactionManager", "QueryParam", "StorageManager", "TransactionManager"]
