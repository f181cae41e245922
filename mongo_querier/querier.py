"""Typed CRUD operations over a single MongoDB collection."""

from __future__ import annotations

import logging
from typing import Any, Generic, TypeVar

from beanie import PydanticObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .adapter import MongoAdapter
from .config import get_settings
from .exceptions import (
    CollectionNameMismatchError,
    EmptyUpdateError,
    EncodingError,
    InsertedIDCastError,
)
from .projection import cast, project, to_document_value

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
IDT = TypeVar("IDT")


class IDContainer(BaseModel, Generic[IDT]):
    """Extracts the ``_id`` of a document as a typed value."""

    id: IDT | None = Field(default=None, alias="_id")


class Querier(Generic[ModelT, IDT]):
    """
    CRUD facade for one collection.

    Methods taking a model as filter build the query from the fields the model
    has set (see ``projection.project``), so they only express equality. The
    ``*_by_m`` variants take a raw filter document instead.
    """

    def __init__(
        self,
        adapter: MongoAdapter,
        collection_name: str,
        model_type: type[ModelT],
        id_type: type[IDT] = PydanticObjectId,
        is_id_composite: bool = False,
        max_depth: int | None = None,
    ):
        if max_depth is None:
            max_depth = get_settings().projection.max_depth
        if max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {max_depth}")

        self.adapter = adapter
        self.collection: AsyncIOMotorCollection = adapter.get_collection(collection_name)
        self.model_type = model_type
        self.id_type = id_type
        self.is_id_composite = is_id_composite
        self.max_depth = max_depth

    @classmethod
    def with_composite_id(
        cls,
        adapter: MongoAdapter,
        collection_name: str,
        model_type: type[ModelT],
        id_type: type[IDT],
        max_depth: int | None = None,
    ) -> Querier[ModelT, IDT]:
        """Querier for models whose ``_id`` is an embedded document."""
        return cls(
            adapter,
            collection_name,
            model_type,
            id_type=id_type,
            is_id_composite=True,
            max_depth=max_depth,
        )

    @property
    def collection_name(self) -> str:
        return self.collection.name

    # ------------------------------------------------------------------
    # Conversion helpers
    # ------------------------------------------------------------------

    def _project(self, model: ModelT) -> dict[str, Any]:
        return project(model, max_depth=self.max_depth)

    def _set_update(self, update: ModelT) -> dict[str, Any]:
        update_m = self._project(update)
        if not update_m:
            raise EmptyUpdateError(
                f"Update {type(update).__name__} has no fields set",
                collection_name=self.collection_name,
            )
        return {"$set": update_m}

    def _replacement(self, replacement: ModelT) -> dict[str, Any]:
        document: dict[str, Any] = {}
        for path, value in self._project(replacement).items():
            *parents, leaf = path.split(".")
            target = document
            for parent in parents:
                target = target.setdefault(parent, {})
            target[leaf] = value
        return document

    def _to_document(self, model: ModelT) -> dict[str, Any]:
        document = to_document_value(model)
        if document.get("_id") is None:
            document.pop("_id", None)
        return document

    def _decode(self, document: dict[str, Any] | None) -> ModelT | None:
        if document is None:
            return None
        try:
            return self.model_type.model_validate(document)
        except ValidationError as e:
            raise EncodingError(
                f"Cannot decode document into {self.model_type.__name__}: {e}",
                collection_name=self.collection_name,
            ) from e

    def _inserted_id(self, inserted_id: Any, document: ModelT) -> IDT:
        if isinstance(inserted_id, self.id_type):
            return inserted_id

        if self.is_id_composite:
            container = cast(document, IDContainer[self.id_type])
            if container.id is None:
                raise InsertedIDCastError(
                    f"{type(document).__name__} has no composite _id",
                    collection_name=self.collection_name,
                )
            return container.id

        try:
            return TypeAdapter(self.id_type).validate_python(inserted_id)
        except ValidationError as e:
            logger.error(
                f"Unable to cast inserted ID {inserted_id!r} into "
                f"{getattr(self.id_type, '__name__', self.id_type)}: {e}"
            )
            raise InsertedIDCastError(
                f"Failed to cast inserted ID {inserted_id!r}",
                collection_name=self.collection_name,
            ) from e

    # ------------------------------------------------------------------
    # Insert
    # ------------------------------------------------------------------

    async def insert_one(self, document: ModelT, **kwargs: Any) -> IDT:
        result = await self.collection.insert_one(self._to_document(document), **kwargs)
        inserted_id = self._inserted_id(result.inserted_id, document)

        logger.debug(
            f"Created a document (collection_name={self.collection_name}, _id={inserted_id!r})"
        )
        return inserted_id

    async def insert_many(self, documents: list[ModelT], **kwargs: Any) -> list[IDT]:
        result = await self.collection.insert_many(
            [self._to_document(document) for document in documents], **kwargs
        )
        inserted_ids = [
            self._inserted_id(inserted_id, document)
            for inserted_id, document in zip(result.inserted_ids, documents)
        ]

        logger.debug(
            f"Inserted multiple documents (collection_name={self.collection_name}, "
            f"documents_count={len(inserted_ids)})"
        )
        return inserted_ids

    # ------------------------------------------------------------------
    # Find
    # ------------------------------------------------------------------

    async def find(self, filter: ModelT, **kwargs: Any) -> list[ModelT]:
        return await self.find_by_m(self._project(filter), **kwargs)

    async def find_by_m(self, filter: dict[str, Any], **kwargs: Any) -> list[ModelT]:
        documents = [
            self._decode(document)
            async for document in self.collection.find(filter, **kwargs)
        ]

        logger.debug(
            f"Found all documents (collection_name={self.collection_name}, "
            f"filter={filter}, documents_count={len(documents)})"
        )
        return documents

    async def find_one(self, filter: ModelT, **kwargs: Any) -> ModelT | None:
        return await self.find_one_by_m(self._project(filter), **kwargs)

    async def find_one_by_m(self, filter: dict[str, Any], **kwargs: Any) -> ModelT | None:
        document = self._decode(await self.collection.find_one(filter, **kwargs))

        logger.debug(
            f"Found one document (collection_name={self.collection_name}, "
            f"filter={filter}, found={document is not None})"
        )
        return document

    # ------------------------------------------------------------------
    # Update / replace
    # ------------------------------------------------------------------

    async def update_one(self, filter: ModelT, update: ModelT, **kwargs: Any) -> ModelT | None:
        return await self.update_one_by_m(self._project(filter), update, **kwargs)

    async def update_one_by_m(
        self, filter: dict[str, Any], update: ModelT, **kwargs: Any
    ) -> ModelT | None:
        update_m = self._set_update(update)
        document = self._decode(
            await self.collection.find_one_and_update(filter, update_m, **kwargs)
        )

        logger.debug(
            f"Updated one document (collection_name={self.collection_name}, "
            f"filter={filter}, update={update_m}, found={document is not None})"
        )
        return document

    async def update_many(self, filter: ModelT, update: ModelT, **kwargs: Any) -> int:
        return await self.update_many_by_m(self._project(filter), update, **kwargs)

    async def update_many_by_m(
        self, filter: dict[str, Any], update: ModelT, **kwargs: Any
    ) -> int:
        update_m = self._set_update(update)
        result = await self.collection.update_many(filter, update_m, **kwargs)

        logger.debug(
            f"Updated multiple documents (collection_name={self.collection_name}, "
            f"filter={filter}, update={update_m}, documents_modified={result.modified_count})"
        )
        return result.modified_count

    async def replace_one(
        self, filter: ModelT, replacement: ModelT, **kwargs: Any
    ) -> ModelT | None:
        return await self.replace_one_by_m(self._project(filter), replacement, **kwargs)

    async def replace_one_by_m(
        self, filter: dict[str, Any], replacement: ModelT, **kwargs: Any
    ) -> ModelT | None:
        replacement_m = self._replacement(replacement)
        document = self._decode(
            await self.collection.find_one_and_replace(filter, replacement_m, **kwargs)
        )

        logger.debug(
            f"Replaced one document (collection_name={self.collection_name}, "
            f"filter={filter}, replacement={replacement_m}, found={document is not None})"
        )
        return document

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_one(self, filter: ModelT, **kwargs: Any) -> ModelT | None:
        return await self.delete_one_by_m(self._project(filter), **kwargs)

    async def delete_one_by_m(self, filter: dict[str, Any], **kwargs: Any) -> ModelT | None:
        document = self._decode(await self.collection.find_one_and_delete(filter, **kwargs))

        logger.debug(
            f"Deleted one document (collection_name={self.collection_name}, "
            f"filter={filter}, found={document is not None})"
        )
        return document

    async def delete_many(self, filter: ModelT, **kwargs: Any) -> int:
        return await self.delete_many_by_m(self._project(filter), **kwargs)

    async def delete_many_by_m(self, filter: dict[str, Any], **kwargs: Any) -> int:
        result = await self.collection.delete_many(filter, **kwargs)

        logger.debug(
            f"Deleted multiple documents (collection_name={self.collection_name}, "
            f"filter={filter}, documents_deleted={result.deleted_count})"
        )
        return result.deleted_count

    # ------------------------------------------------------------------
    # Count / distinct
    # ------------------------------------------------------------------

    async def count_documents(self, filter: ModelT, **kwargs: Any) -> int:
        return await self.count_documents_by_m(self._project(filter), **kwargs)

    async def count_documents_by_m(self, filter: dict[str, Any], **kwargs: Any) -> int:
        count = await self.collection.count_documents(filter, **kwargs)

        logger.debug(
            f"Counted documents (collection_name={self.collection_name}, "
            f"filter={filter}, documents_count={count})"
        )
        return count

    async def distinct(self, field_name: str, filter: ModelT, **kwargs: Any) -> list[Any]:
        return await self.distinct_by_m(field_name, self._project(filter), **kwargs)

    async def distinct_by_m(
        self, field_name: str, filter: dict[str, Any], **kwargs: Any
    ) -> list[Any]:
        values = await self.collection.distinct(field_name, filter, **kwargs)

        logger.debug(
            f"Retrieved distinct values (collection_name={self.collection_name}, "
            f"field_name={field_name}, filter={filter}, values_count={len(values)})"
        )
        return values

    async def delete_collection(self, collection_name: str) -> None:
        """Drop the collection. The name must match as a safety check."""
        if collection_name != self.collection_name:
            raise CollectionNameMismatchError(
                f"Refusing to drop {collection_name!r}: querier is bound to "
                f"{self.collection_name!r}",
                collection_name=self.collection_name,
            )
        await self.collection.drop()
        logger.info(f"Dropped collection {collection_name}")
