"""Read, search, write and bulk-write operations over a connection context.

Every function takes either a ``ConnectionContext`` or a bare connection
string (bound to the process default registry). Argument problems are
raised before any connection is acquired; driver failures surface as
``StoreError``. Nothing here retries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Union

from loguru import logger
from pymongo.errors import PyMongoError

from .bulk import BulkKind, build_bulk_requests
from .errors import CloseError, ConfigError, InvalidOperationError, ValidationError, store_error_from
from .query import PaginationLike, QueryDescriptor, ReadMode, build_search_pipeline, normalize_projection
from .registry import ConnectionRegistry, default_registry
from .settings import MongoOpsSettings
from .settings import settings as default_settings
from .typing import Document, Pipeline, SortSpec


class WriteKind(str, Enum):
    INSERT_ONE = "insertOne"
    REPLACE_ONE = "replaceOne"
    UPDATE_ONE = "updateOne"
    UPDATE_MANY = "updateMany"
    DELETE_ONE = "deleteOne"
    DELETE_MANY = "deleteMany"


_NEEDS_DOCUMENT = {WriteKind.INSERT_ONE, WriteKind.REPLACE_ONE, WriteKind.UPDATE_ONE, WriteKind.UPDATE_MANY}
_NEEDS_FILTER = {
    WriteKind.REPLACE_ONE,
    WriteKind.UPDATE_ONE,
    WriteKind.UPDATE_MANY,
    WriteKind.DELETE_ONE,
    WriteKind.DELETE_MANY,
}


@dataclass(frozen=True)
class ConnectionContext:
    """Connection string plus the registry its handle lives in."""

    conn_string: str
    registry: ConnectionRegistry = field(default_factory=default_registry, compare=False)
    pool_size: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.conn_string:
            raise ConfigError("missing-connection-string")

    @classmethod
    def from_settings(
        cls,
        settings: Optional[MongoOpsSettings] = None,
        registry: Optional[ConnectionRegistry] = None,
    ) -> "ConnectionContext":
        """Build a context from ``MONGO_URI`` / ``MONGO_POOL_SIZE``."""

        settings = settings or default_settings
        if not settings.uri:
            raise ConfigError("MONGO_URI is not configured")
        return cls(
            settings.uri,
            registry or default_registry(),
            settings.pool_size,
        )

    async def collection(self, name: str) -> Any:
        handle = await self.registry.acquire(self.conn_string, self.pool_size)
        return handle.collection(name)


Target = Union[ConnectionContext, str]


def as_context(target: Optional[Target]) -> ConnectionContext:
    if isinstance(target, ConnectionContext):
        return target
    return ConnectionContext(target or "")


def _require_collection(collection: Optional[str]) -> None:
    if not collection:
        raise ConfigError("missing-collection-name")


async def read(target: Target, collection: str, descriptor: QueryDescriptor) -> Any:
    """Run a find, count or aggregate request described by ``descriptor``."""

    context = as_context(target)
    _require_collection(collection)

    if descriptor.mode is ReadMode.AGGREGATE:
        pipeline = descriptor.pipeline()
        options = dict(descriptor.aggregate_options or {})
        logger.debug(
            "aggregate {collection}: {stages} stage(s)",
            collection=collection,
            stages=len(pipeline),
        )
        coll = await context.collection(collection)
        try:
            return await coll.aggregate(pipeline, **options).to_list(length=None)
        except PyMongoError as exc:
            raise store_error_from(exc) from exc

    query = descriptor.filter
    if descriptor.mode is ReadMode.COUNT:
        logger.debug("count {collection}", collection=collection)
        coll = await context.collection(collection)
        try:
            return await coll.count_documents(query, **descriptor.count_options())
        except PyMongoError as exc:
            raise store_error_from(exc) from exc

    options = descriptor.find_options()
    if options.get("limit") == 0:
        logger.debug("find {collection}: empty page, skipping query", collection=collection)
        return []
    logger.debug(
        "find {collection} skip={skip} limit={limit}",
        collection=collection,
        skip=options.get("skip"),
        limit=options.get("limit"),
    )
    coll = await context.collection(collection)
    try:
        cursor = coll.find(query, normalize_projection(descriptor.projection), **options)
        return await cursor.to_list(length=None)
    except PyMongoError as exc:
        raise store_error_from(exc) from exc


async def get_data(
    target: Target,
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
    """Get documents, a document count, or aggregation results.

    ``mode="find"`` returns a list of documents, ``mode="count"`` an int and
    ``mode="aggregate"`` the materialised pipeline output. Pagination is a
    1-based inclusive ``{"startIndex": 11, "endIndex": 20}`` range.
    """

    try:
        mode = ReadMode(mode)
    except ValueError:
        raise InvalidOperationError(f"invalid-read-mode: {mode!r}") from None
    descriptor = QueryDescriptor(
        query=query,
        mode=mode,
        projection=projection,
        sort=sort,
        pagination=pagination,
        collation=collation,
        aggregate_options=aggregate_options,
    )
    return await read(target, collection, descriptor)


async def search(
    target: Optional[Target],
    collection: str,
    search_spec: Optional[Document],
    *,
    projection: Optional[Document] = None,
    sort: Optional[SortSpec] = None,
    pagination: PaginationLike = None,
    include_count: bool = False,
) -> Any:
    """Full-text ``$search`` with a relevance ``score`` field.

    Returns a list of documents, or with ``include_count`` a single
    ``{"metadata": [{"total": n, "page": p}], "data": [...]}`` record whose
    metadata list is empty when nothing matched.
    """

    if not target or not collection or not search_spec:
        raise ValidationError("search requires a connection string, a collection and a search spec")
    context = as_context(target)
    window = QueryDescriptor(pagination=pagination).window
    if window is not None and window.limit == 0:
        logger.debug("search {collection}: empty page, skipping query", collection=collection)
        return []

    pipeline = build_search_pipeline(
        search_spec,
        projection=projection,
        sort=sort,
        window=window,
        include_count=include_count,
    )
    logger.debug(
        "search {collection} include_count={include_count} window={window}",
        collection=collection,
        include_count=include_count,
        window=window,
    )
    coll = await context.collection(collection)
    try:
        results = await coll.aggregate(pipeline).to_list(length=None)
    except PyMongoError as exc:
        raise store_error_from(exc) from exc
    if not include_count:
        return results
    if results:
        return results[0]
    return {"metadata": [], "data": []}


async def write_data(
    target: Target,
    kind: Union[WriteKind, str],
    collection: str,
    document: Optional[Document] = None,
    filter: Optional[Document] = None,
) -> Any:
    """Run a single-document or multi-document write.

    ``insertOne`` ignores ``filter``; ``deleteOne``/``deleteMany`` ignore
    ``document``. Returns the PyMongo result object.
    """

    context = as_context(target)
    try:
        kind = WriteKind(kind)
    except ValueError:
        raise InvalidOperationError(f"invalid-writeData-type: {kind!r}") from None
    _require_collection(collection)
    if kind in _NEEDS_DOCUMENT and document is None:
        raise ValidationError(f"{kind.value} requires a document")
    if kind in _NEEDS_FILTER and filter is None:
        raise ValidationError(f"{kind.value} requires a filter")

    logger.debug("{kind} on {collection}", kind=kind.value, collection=collection)
    coll = await context.collection(collection)
    try:
        if kind is WriteKind.INSERT_ONE:
            return await coll.insert_one(document)
        if kind is WriteKind.REPLACE_ONE:
            return await coll.replace_one(filter, document)
        if kind is WriteKind.UPDATE_ONE:
            return await coll.update_one(filter, document)
        if kind is WriteKind.UPDATE_MANY:
            return await coll.update_many(filter, document)
        if kind is WriteKind.DELETE_ONE:
            return await coll.delete_one(filter)
        return await coll.delete_many(filter)
    except PyMongoError as exc:
        raise store_error_from(exc) from exc
    except (TypeError, ValueError) as exc:
        raise ValidationError(str(exc)) from exc


async def write_bulk_data(
    target: Target,
    kind: Union[BulkKind, str],
    collection: str,
    documents: List[Any],
    ordered: bool = False,
) -> Any:
    """Submit a batch of writes with ``bulk_write``.

    With ``ordered=True`` the server stops at the first failing operation;
    otherwise it carries on and reports every failure. On failure the
    raised ``StoreError`` carries the partial result in ``result``.
    """

    context = as_context(target)
    requests = build_bulk_requests(kind, documents)
    _require_collection(collection)
    if not requests:
        raise ValidationError("No bulk operations to execute")

    logger.debug(
        "{kind} on {collection}: {count} operation(s), ordered={ordered}",
        kind=BulkKind(kind).value,
        collection=collection,
        count=len(requests),
        ordered=ordered,
    )
    coll = await context.collection(collection)
    try:
        return await coll.bulk_write(requests, ordered=ordered)
    except PyMongoError as exc:
        raise store_error_from(exc) from exc
    except (TypeError, ValueError) as exc:
        raise ValidationError(str(exc)) from exc


async def close_connections(
    target: Union[Target, ConnectionRegistry, None] = None,
) -> List[CloseError]:
    """Close every handle of the target's registry (the default one if omitted)."""

    if isinstance(target, ConnectionRegistry):
        registry = target
    elif isinstance(target, ConnectionContext):
        registry = target.registry
    else:
        registry = default_registry()
    return await registry.close_all()
