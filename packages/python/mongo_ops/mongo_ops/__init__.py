"""Async MongoDB convenience layer built on Motor.

Example usage::

    from mongo_ops import MongoToolSet

    orders = MongoToolSet("orders", "mongodb://localhost:27017/shop")
    await orders.insert_bulk_unordered([{"sku": "a"}, {"sku": "b"}])
    page = await orders.get_all_data(pagination={"startIndex": 1, "endIndex": 10})
"""

from .bulk import BulkKind, build_bulk_requests
from .client import ClientHandle, Handle, connect
from .errors import (
    CloseError,
    ConfigError,
    ConnectError,
    InvalidOperationError,
    InvalidQueryError,
    MongoOpsError,
    StoreError,
    ValidationError,
)
from .operations import (
    ConnectionContext,
    WriteKind,
    close_connections,
    get_data,
    read,
    search,
    write_bulk_data,
    write_data,
)
from .ops import MongoOps
from .query import Pagination, QueryDescriptor, ReadMode, Window, resolve_pagination
from .registry import ConnectionRegistry, default_registry
from .settings import MongoOpsSettings, settings
from .toolset import MongoToolSet
from .utils import get_object_id

__all__ = [
    "BulkKind",
    "ClientHandle",
    "CloseError",
    "ConfigError",
    "ConnectError",
    "ConnectionContext",
    "ConnectionRegistry",
    "Handle",
    "InvalidOperationError",
    "InvalidQueryError",
    "MongoOps",
    "MongoOpsError",
    "MongoOpsSettings",
    "MongoToolSet",
    "Pagination",
    "QueryDescriptor",
    "ReadMode",
    "StoreError",
    "ValidationError",
    "Window",
    "WriteKind",
    "build_bulk_requests",
    "close_connections",
    "connect",
    "default_registry",
    "get_data",
    "get_object_id",
    "read",
    "resolve_pagination",
    "search",
    "settings",
    "write_bulk_data",
    "write_data",
]
