"""Errors raised by the db_core persistence helpers."""


class StoreError(Exception):
    """Raised when a store call fails, times out, or the store is not connected."""
