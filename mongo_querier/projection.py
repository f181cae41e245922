"""Sparse projection of pydantic models into MongoDB filter and update documents.

A model is turned into a flat ``dict`` holding only the fields the caller
actually set:

- the model is first serialized to JSON with ``by_alias=True``; fields missing
  from that output (``Field(exclude=True)``, custom serializers) are skipped
- fields equal to the zero value of their declared type are skipped
- nested models are flattened into ``parent.child`` keys, recursively

Zero values come from the declared type, not the runtime value. A non-optional
``float`` set to ``0.0`` is indistinguishable from an unset one and is never
emitted. Declare the field ``float | None`` when zero must be expressible:
the zero value of any optional type is ``None``.
"""

import json
import types
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Annotated, Any, Literal, TypeVar, Union, get_args, get_origin
from uuid import UUID

from bson import Binary, Decimal128, ObjectId
from pydantic import BaseModel, TypeAdapter, ValidationError
from pydantic.errors import PydanticSchemaGenerationError
from pydantic_core import PydanticSerializationError

from .config import DEFAULT_MAX_DEPTH
from .exceptions import EncodingError, ProjectionDepthError

DestinationT = TypeVar("DestinationT")
ModelT = TypeVar("ModelT", bound=BaseModel)

# Marks types with no recognised zero value; never equal to any field value
_NO_ZERO = object()

# Checked in order: bool before int, datetime before date
_ZERO_BY_TYPE: tuple[tuple[type, Any], ...] = (
    (bool, False),
    (int, 0),
    (float, 0.0),
    (Decimal, Decimal(0)),
    (str, ""),
    (bytes, b""),
    (list, []),
    (tuple, ()),
    (set, set()),
    (frozenset, frozenset()),
    (dict, {}),
    (ObjectId, ObjectId("0" * 24)),
    (UUID, UUID(int=0)),
    (datetime, datetime.min),
    (date, date.min),
)


@dataclass(frozen=True)
class FieldDescriptor:
    """How one model field is keyed and when it counts as unset."""

    name: str
    key: str  # Key in serialized output
    input_key: str  # Key accepted on validation
    zero: Any
    nested_type: type[BaseModel] | None


def zero_value(annotation: Any) -> Any:
    """Return the zero value for a declared field type."""
    origin = get_origin(annotation)

    if origin is Annotated:
        return zero_value(get_args(annotation)[0])

    if origin is Union or origin is types.UnionType:
        return None if type(None) in get_args(annotation) else _NO_ZERO

    if annotation is Any or annotation is object or annotation in (None, type(None)):
        return None

    if origin is Literal:
        return _NO_ZERO

    if origin is not None:
        annotation = origin

    if not isinstance(annotation, type):
        return _NO_ZERO

    if issubclass(annotation, Enum):
        for member in annotation:
            member_zero = zero_value(type(member.value))
            if member_zero is not _NO_ZERO and member.value == member_zero:
                return member
        return _NO_ZERO

    for base, zero in _ZERO_BY_TYPE:
        if issubclass(annotation, base):
            return zero

    return _NO_ZERO


def is_zero(value: Any, zero: Any) -> bool:
    """Check whether a field value equals its type's zero value."""
    if zero is _NO_ZERO:
        return False
    if zero is None:
        return value is None
    return bool(value == zero)


def _nested_model_type(annotation: Any) -> type[BaseModel] | None:
    if get_origin(annotation) is Annotated:
        annotation = get_args(annotation)[0]
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return annotation
    return None


@lru_cache(maxsize=None)
def describe_model(model_type: type[BaseModel]) -> tuple[FieldDescriptor, ...]:
    """Build the field descriptor table for a model class, in declaration order."""
    descriptors = []
    for name, field in model_type.model_fields.items():
        if isinstance(field.validation_alias, str):
            input_key = field.validation_alias
        else:
            input_key = field.alias or name

        descriptors.append(
            FieldDescriptor(
                name=name,
                key=field.serialization_alias or field.alias or name,
                input_key=input_key,
                zero=zero_value(field.annotation),
                nested_type=_nested_model_type(field.annotation),
            )
        )
    return tuple(descriptors)


def _encode(source: Any) -> Any:
    """Serialize a value to JSON and decode it back into plain Python data."""
    try:
        if isinstance(source, BaseModel):
            raw = source.model_dump_json(by_alias=True)
        else:
            raw = TypeAdapter(type(source)).dump_json(source, by_alias=True)
        return json.loads(raw)
    except (PydanticSerializationError, PydanticSchemaGenerationError, ValueError) as e:
        raise EncodingError(f"Failed to encode {type(source).__name__}: {e}") from e


def to_document_value(value: Any) -> Any:
    """Convert a field value into a form the BSON encoder accepts."""
    if isinstance(value, BaseModel):
        return to_document_value(value.model_dump(by_alias=True))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_document_value(item) for item in value]
    if isinstance(value, dict):
        return {key: to_document_value(item) for key, item in value.items()}
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    if isinstance(value, Decimal):
        return Decimal128(value)
    if isinstance(value, UUID):
        return Binary.from_uuid(value)
    return value


def project(model: BaseModel, *, max_depth: int = DEFAULT_MAX_DEPTH) -> dict[str, Any]:
    """
    Project a model into a sparse document of the fields it has set.

    Args:
        model: Pydantic model instance, possibly partially populated
        max_depth: Maximum nesting levels, counting the model itself as one

    Returns:
        Mapping from (dotted) external keys to values

    Raises:
        EncodingError: If the model cannot be serialized
        ProjectionDepthError: If nested models go deeper than max_depth
    """
    return _project(model, max_depth, 1)


def _project(model: BaseModel, max_depth: int, depth: int) -> dict[str, Any]:
    if not isinstance(model, BaseModel):
        raise EncodingError(
            f"Cannot project {type(model).__name__}: not a pydantic model"
        )
    if depth > max_depth:
        raise ProjectionDepthError(
            f"{type(model).__name__} is nested deeper than {max_depth} levels",
            max_depth=max_depth,
        )

    serialized = _encode(model)
    if not isinstance(serialized, dict):
        raise EncodingError(
            f"{type(model).__name__} does not serialize to an object"
        )

    result: dict[str, Any] = {}
    for descriptor in describe_model(type(model)):
        if descriptor.key not in serialized:
            continue

        value = getattr(model, descriptor.name)
        if is_zero(value, descriptor.zero):
            continue

        if isinstance(value, BaseModel):
            for child_key, child_value in _project(value, max_depth, depth + 1).items():
                result[f"{descriptor.key}.{child_key}"] = child_value
            continue

        result[descriptor.key] = to_document_value(value)

    return result


def _zero_fill(model_type: type[BaseModel], data: dict[str, Any]) -> dict[str, Any]:
    """Fill required fields missing from data with their zero values."""
    filled = dict(data)
    for descriptor in describe_model(model_type):
        if (
            descriptor.key != descriptor.input_key
            and descriptor.key in filled
            and descriptor.input_key not in filled
        ):
            filled[descriptor.input_key] = filled.pop(descriptor.key)

        present_key = next(
            (k for k in (descriptor.input_key, descriptor.name) if k in filled), None
        )

        if present_key is not None:
            if descriptor.nested_type is not None and isinstance(filled[present_key], dict):
                filled[present_key] = _zero_fill(descriptor.nested_type, filled[present_key])
            continue

        if not model_type.model_fields[descriptor.name].is_required():
            continue

        if descriptor.nested_type is not None:
            filled[descriptor.input_key] = _zero_fill(descriptor.nested_type, {})
        elif descriptor.zero is not _NO_ZERO:
            filled[descriptor.input_key] = descriptor.zero

    return filled


def cast(source: Any, destination_type: type[DestinationT]) -> DestinationT:
    """
    Convert a value into another type through its JSON form.

    Keys unknown to the destination are dropped. Required destination fields
    missing from the source are zero-filled.

    Raises:
        EncodingError: If the source cannot be serialized or the result does
            not validate as destination_type
    """
    data = _encode(source)

    if (
        isinstance(destination_type, type)
        and issubclass(destination_type, BaseModel)
        and isinstance(data, dict)
    ):
        data = _zero_fill(destination_type, data)

    try:
        return TypeAdapter(destination_type).validate_python(data)
    except ValidationError as e:
        raise EncodingError(
            f"Cannot cast {type(source).__name__} into {destination_type!r}: {e}"
        ) from e


def cast_into(source: Any, destination: ModelT) -> ModelT:
    """Overlay the fields serialized by source onto an existing model instance."""
    if not isinstance(destination, BaseModel):
        raise EncodingError(
            f"Cannot cast into {type(destination).__name__}: not a pydantic model"
        )

    data = _encode(source)
    if not isinstance(data, dict):
        raise EncodingError(f"{type(source).__name__} does not serialize to an object")

    destination_type = type(destination)
    merged = {**_encode(destination), **data}
    try:
        updated = destination_type.model_validate(_zero_fill(destination_type, merged))
        for descriptor in describe_model(destination_type):
            if descriptor.key in data or descriptor.input_key in data:
                setattr(destination, descriptor.name, getattr(updated, descriptor.name))
    except ValidationError as e:
        raise EncodingError(
            f"Cannot cast {type(source).__name__} into {destination_type.__name__}: {e}"
        ) from e

    return destination
