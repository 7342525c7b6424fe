"""Errors raised by the local message index."""


class LocalIndexError(Exception):
    """Base class for every failure surfaced by the local index."""


class ValidationError(LocalIndexError):
    """A batch or query is malformed or misses a required field."""


class StorageUnavailable(LocalIndexError):
    """The backing store cannot be opened, prepared or queried."""


class TransactionFailure(LocalIndexError):
    """An upsert batch failed and was rolled back as a whole."""
