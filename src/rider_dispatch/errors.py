"""Errors raised by dispatch services and the persistence layer."""


class DispatchError(Exception):
    """Base class for every error surfaced to API callers."""


class NotFound(DispatchError):
    """A referenced order, customer or profile does not exist."""


class InvalidState(DispatchError):
    """The record is not in a state that permits the requested transition."""


class Unauthorized(DispatchError):
    """The acting profile may not perform the requested transition."""


class ValidationFailure(DispatchError):
    """The request carried an unrecognised action or value."""


class StoreError(DispatchError):
    """The data store rejected an operation."""


class StoreReadFailure(StoreError):
    """A query against the data store failed."""


class StoreWriteFailure(StoreError):
    """An insert, update, upsert, delete or RPC against the data store failed."""


class StoreUnavailable(DispatchError):
    """No data store client is configured."""
