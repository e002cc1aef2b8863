"""``MongoOps``: the operations in ``mongo_ops.operations`` bound to one connection."""

from __future__ import annotations

from typing import Any, List, Optional, Union

from bson import ObjectId

from . import operations
from .bulk import BulkKind
from .errors import CloseError
from .operations import ConnectionContext, WriteKind
from .query import PaginationLike, ReadMode
from .registry import ConnectionRegistry, default_registry
from .typing import Document, Pipeline, SortSpec
from .utils import get_object_id, mask_uri


class MongoOps:
    """Connection-scoped operations.

    Usage::

        ops = MongoOps("mongodb://localhost:27017/shop")
        page = await ops.get_data("orders", {"status": "open"},
                                  sort={"created_at": -1},
                                  pagination={"startIndex": 1, "endIndex": 20})
        await ops.write_data("insertOne", "orders", {"status": "open"})
    """

    def __init__(
        self,
        conn_string: Union[str, ConnectionContext],
        *,
        registry: Optional[ConnectionRegistry] = None,
        pool_size: Optional[int] = None,
    ) -> None:
        if isinstance(conn_string, ConnectionContext):
            self.context = conn_string
        else:
            self.context = ConnectionContext(
                conn_string,
                registry or default_registry(),
                pool_size,
            )

    @property
    def conn_string(self) -> str:
        return self.context.conn_string

    @property
    def registry(self) -> ConnectionRegistry:
        return self.context.registry

    @staticmethod
    def get_object_id(value: Any) -> ObjectId:
        return get_object_id(value)

    async def get_data(
        self,
        collection: str,
        query: Union[Document, Pipeline, None] = None,
        *,
        mode: Union[ReadMode, str] = ReadMode.FIND,
        projection: Optional[Document] = None,
        sort: Optional[SortSpec] = None,
        pagination: PaginationLike = None,
        collation: Optional[Document] = None,
        aggregate_options: Optional[Document] = None,
    ) -> Any:
        return await operations.get_data(
            self.context,
            collection,
            query,
            mode=mode,
            projection=projection,
            sort=sort,
            pagination=pagination,
            collation=collation,
            aggregate_options=aggregate_options,
        )

    async def search(
        self,
        collection: str,
        search_spec: Document,
        *,
        projection: Optional[Document] = None,
        sort: Optional[SortSpec] = None,
        pagination: PaginationLike = None,
        include_count: bool = False,
    ) -> Any:
        return await operations.search(
            self.context,
            collection,
            search_spec,
            projection=projection,
            sort=sort,
            pagination=pagination,
            include_count=include_count,
        )

    async def write_data(
        self,
        kind: Union[WriteKind, str],
        collection: str,
        document: Optional[Document] = None,
        filter: Optional[Document] = None,
    ) -> Any:
        return await operations.write_data(self.context, kind, collection, document, filter)

    async def write_bulk_data(
        self,
        kind: Union[BulkKind, str],
        collection: str,
        documents: List[Any],
        ordered: bool = False,
    ) -> Any:
        return await operations.write_bulk_data(self.context, kind, collection, documents, ordered)

    async def close(self) -> List[CloseError]:
        """Close every client in this connection's registry."""

        return await operations.close_connections(self.context)

    def __repr__(self) -> str:
        return f"MongoOps({mask_uri(self.conn_string)!r})"
