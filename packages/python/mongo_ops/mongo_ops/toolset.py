"""Collection-scoped convenience methods on top of ``MongoOps``."""

from __future__ import annotations

from typing import Any, List, Optional, Union

from bson import ObjectId

from .bulk import BulkKind
from .errors import CloseError, ConfigError
from .ops import MongoOps
from .operations import ConnectionContext, WriteKind
from .query import PaginationLike, ReadMode
from .registry import ConnectionRegistry
from .typing import Document, Pipeline, SortSpec
from .utils import get_object_id


class MongoToolSet:
    """Shortcuts for one collection.

    Wraps a ``MongoOps`` (built from a connection string or context when one
    is not given) and forwards every call with ``collection_name`` filled in.
    """

    def __init__(
        self,
        collection_name: str,
        conn_string: Union[str, ConnectionContext, MongoOps],
        *,
        registry: Optional[ConnectionRegistry] = None,
        pool_size: Optional[int] = None,
    ) -> None:
        if not collection_name:
            raise ConfigError("missing-collection-name")
        self.collection_name = collection_name
        if isinstance(conn_string, MongoOps):
            self.ops = conn_string
        else:
            self.ops = MongoOps(conn_string, registry=registry, pool_size=pool_size)

    @property
    def conn_string(self) -> str:
        return self.ops.conn_string

    @staticmethod
    def get_object_id(value: Any) -> ObjectId:
        return get_object_id(value)

    # ---------------------------------------------------------
    # Reads
    # ---------------------------------------------------------
    async def get_data_by_id(self, id: Any, projection: Optional[Document] = None) -> List[Any]:
        """Documents whose ``_id`` equals ``id`` (a list with zero or one entry)."""

        return await self.ops.get_data(self.collection_name, {"_id": id}, projection=projection)

    async def get_data_by_filter(
        self,
        filter: Optional[Document] = None,
        projection: Optional[Document] = None,
        sort: Optional[SortSpec] = None,
        pagination: PaginationLike = None,
        collation: Optional[Document] = None,
    ) -> List[Any]:
        return await self.ops.get_data(
            self.collection_name,
            filter,
            projection=projection,
            sort=sort,
            pagination=pagination,
            collation=collation,
        )

    async def get_data_by_aggregate(
        self, pipeline: Pipeline, options: Optional[Document] = None
    ) -> List[Any]:
        return await self.ops.get_data(
            self.collection_name,
            pipeline,
            mode=ReadMode.AGGREGATE,
            aggregate_options=options,
        )

    async def get_data_count(
        self, filter: Optional[Document] = None, collation: Optional[Document] = None
    ) -> int:
        return await self.ops.get_data(
            self.collection_name, filter, mode=ReadMode.COUNT, collation=collation
        )

    async def get_all_data(
        self,
        projection: Optional[Document] = None,
        sort: Optional[SortSpec] = None,
        pagination: PaginationLike = None,
    ) -> List[Any]:
        return await self.ops.get_data(
            self.collection_name, {}, projection=projection, sort=sort, pagination=pagination
        )

    async def list_data(self, projection: Optional[Document] = None) -> List[Any]:
        """Every document in the collection, optionally projected."""

        return await self.get_all_data(projection=projection)

    async def search(
        self,
        search_spec: Document,
        projection: Optional[Document] = None,
        sort: Optional[SortSpec] = None,
        pagination: PaginationLike = None,
        include_count: bool = False,
    ) -> Any:
        return await self.ops.search(
            self.collection_name,
            search_spec,
            projection=projection,
            sort=sort,
            pagination=pagination,
            include_count=include_count,
        )

    # ---------------------------------------------------------
    # Single writes
    # ---------------------------------------------------------
    async def insert_one(self, doc: Document) -> Any:
        return await self.ops.write_data(WriteKind.INSERT_ONE, self.collection_name, doc)

    async def replace_one(self, doc: Document, filter: Document) -> Any:
        return await self.ops.write_data(WriteKind.REPLACE_ONE, self.collection_name, doc, filter)

    async def update_one(self, update: Document, filter: Document) -> Any:
        return await self.ops.write_data(WriteKind.UPDATE_ONE, self.collection_name, update, filter)

    async def update_many(self, update: Document, filter: Document) -> Any:
        return await self.ops.write_data(WriteKind.UPDATE_MANY, self.collection_name, update, filter)

    async def delete_one(self, filter: Document) -> Any:
        return await self.ops.write_data(WriteKind.DELETE_ONE, self.collection_name, filter=filter)

    async def delete_many(self, filter: Document) -> Any:
        return await self.ops.write_data(WriteKind.DELETE_MANY, self.collection_name, filter=filter)

    # ---------------------------------------------------------
    # Bulk writes
    # ---------------------------------------------------------
    async def _bulk(self, kind: BulkKind, docs: List[Any], ordered: bool) -> Any:
        return await self.ops.write_bulk_data(kind, self.collection_name, docs, ordered)

    async def insert_bulk_ordered(self, docs: List[Document]) -> Any:
        return await self._bulk(BulkKind.INSERT, docs, True)

    async def insert_bulk_unordered(self, docs: List[Document]) -> Any:
        return await self._bulk(BulkKind.INSERT, docs, False)

    async def replace_bulk_ordered(self, docs: List[Document]) -> Any:
        """``docs`` items look like ``{"filter": ..., "replacement": ..., "upsert": ...}``."""

        return await self._bulk(BulkKind.REPLACE, docs, True)

    async def replace_bulk_unordered(self, docs: List[Document]) -> Any:
        return await self._bulk(BulkKind.REPLACE, docs, False)

    async def update_bulk_ordered(self, docs: List[Document]) -> Any:
        """``docs`` items look like ``{"filter": ..., "update": ..., "arrayFilters": ...}``."""

        return await self._bulk(BulkKind.UPDATE, docs, True)

    async def update_bulk_unordered(self, docs: List[Document]) -> Any:
        return await self._bulk(BulkKind.UPDATE, docs, False)

    async def delete_bulk_ordered(self, docs: List[Document]) -> Any:
        return await self._bulk(BulkKind.DELETE, docs, True)

    async def delete_bulk_unordered(self, docs: List[Document]) -> Any:
        return await self._bulk(BulkKind.DELETE, docs, False)

    async def all_bulk_ordered(self, docs: List[Any]) -> Any:
        """``docs`` items are tagged operations, e.g. ``{"deleteMany": {"filter": ...}}``."""

        return await self._bulk(BulkKind.ALL, docs, True)

    async def all_bulk_unordered(self, docs: List[Any]) -> Any:
        return await self._bulk(BulkKind.ALL, docs, False)

    async def close(self) -> List[CloseError]:
        return await self.ops.close()
