"""Exceptions raised by DueCycle."""


class DuecycleError(Exception):
    """Base class for all DueCycle errors."""


class NotFoundError(DuecycleError):
    """A referenced record does not exist."""

    entity = "record"

    def __init__(self, record_id: int):
        self.record_id = record_id
        super().__init__(f"{self.entity.capitalize()} {record_id} not found")


class ObligationNotFoundError(NotFoundError):
    entity = "obligation"


class CycleNotFoundError(NotFoundError):
    entity = "cycle"


class LedgerEntryNotFoundError(NotFoundError):
    entity = "ledger entry"


class InvalidConfigurationError(DuecycleError):
    """Obligation or application configuration is invalid.

    Raised before any cycle is materialized, e.g. for a recurring bill
    without a positive interval and unit.
    """


class StorageError(DuecycleError):
    """The persistence layer failed. The enclosing transaction was rolled back."""
