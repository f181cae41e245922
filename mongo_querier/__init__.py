"""mongo-querier: typed CRUD access to MongoDB collections through pydantic models."""

__version__ = "0.1.0"

from .adapter import MongoAdapter, create_mongo_adapter
from .config import DEFAULT_MAX_DEPTH, ProjectionConfig, Settings, get_settings
from .exceptions import (
    CollectionNameMismatchError,
    EmptyUpdateError,
    EncodingError,
    InsertedIDCastError,
    ProjectionDepthError,
    QuerierError,
)
from .projection import FieldDescriptor, cast, cast_into, describe_model, project
from .querier import IDContainer, Querier

__all__ = [
    "__version__",
    # Connection management
    "MongoAdapter",
    "create_mongo_adapter",
    # Configuration
    "DEFAULT_MAX_DEPTH",
    "ProjectionConfig",
    "Settings",
    "get_settings",
    # Projection
    "FieldDescriptor",
    "cast",
    "cast_into",
    "describe_model",
    "project",
    # Querying
    "IDContainer",
    "Querier",
    # Errors
    "QuerierError",
    "EncodingError",
    "ProjectionDepthError",
    "InsertedIDCastError",
    "CollectionNameMismatchError",
    "EmptyUpdateError",
]
