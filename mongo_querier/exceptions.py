"""Exceptions raised by the projection engine and the querier."""


class QuerierError(Exception):
    """Base exception for mongo-querier errors."""

    def __init__(self, message: str, collection_name: str | None = None):
        super().__init__(message)
        self.collection_name = collection_name


class EncodingError(QuerierError):
    """A model or its intermediate form could not be converted."""

    pass


class ProjectionDepthError(EncodingError, RecursionError):
    """Nested models exceed the maximum projection depth."""

    def __init__(self, message: str, max_depth: int):
        super().__init__(message)
        self.max_depth = max_depth


class InsertedIDCastError(QuerierError):
    """Inserted ID could not be converted to the querier's ID type."""

    pass


class CollectionNameMismatchError(QuerierError):
    """Collection name does not match the querier's collection."""

    pass


class EmptyUpdateError(QuerierError):
    """Update model projects to an empty document."""

    pass
