"""Exceptions raised by the keyed store."""


class StoreError(Exception):
    """Base class for keyed store failures."""

    def __init__(self, table: str, message: str) -> None:
        super().__init__(f"{table}: {message}")
        self.table = table


class StoreReadError(StoreError):
    """A table exists but could not be read or parsed."""


class StoreWriteError(StoreError):
    """A table could not be serialized or written to disk."""


class StoreTypeError(StoreError, TypeError):
    """A stored value does not have the shape an operation requires."""
