"""Persistence-layer errors. SqlRecordStore turns all of them into RecordStoreError."""


class DbError(Exception):
    """Base for record persistence failures."""


class NotFoundError(DbError):
    """No contract record with the given id."""


class ConflictError(DbError):
    """A record with the same content hash already exists."""
