"""Registry of shared client handles, one per connection string.

A handle is opened lazily on the first ``acquire`` for a connection string
and reused afterwards. When a cached handle no longer reports itself as
connected, ``acquire`` opens a replacement; the stale handle stays open
until ``close_all`` since other callers may still hold it. Each connection
string has its own ``asyncio.Lock`` so concurrent callers never open
duplicate handles.
"""

from __future__ import annotations

import asyncio
from functools import lru_cache, partial
from typing import Dict, Iterator, List, Optional

from loguru import logger

from .client import Connector, Handle, connect
from .errors import CloseError, ConfigError
from .settings import MongoOpsSettings
from .settings import settings as default_settings
from .utils import mask_uri


class ConnectionRegistry:
    """Connection string -> live client handle."""

    def __init__(
        self,
        connector: Optional[Connector] = None,
        *,
        settings: Optional[MongoOpsSettings] = None,
    ) -> None:
        self.settings = settings or default_settings
        self._connector: Connector = connector or partial(
            connect,
            db_name=self.settings.db_name,
            ping=self.settings.ping_on_acquire,
        )
        self._handles: Dict[str, Handle] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._retired: List[Handle] = []

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, conn_string: object) -> bool:
        return conn_string in self._handles

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._handles))

    def get(self, conn_string: str) -> Optional[Handle]:
        """Return the cached handle without checking or opening anything."""

        return self._handles.get(conn_string)

    async def acquire(self, conn_string: str, pool_size: Optional[int] = None) -> Handle:
        """Return a connected handle for ``conn_string``, opening one if needed.

        ``pool_size`` only applies when a client is opened; a different size
        requested for a handle that is already open is ignored.
        """

        if not conn_string:
            raise ConfigError("missing-connection-string")
        if pool_size is not None and pool_size <= 0:
            raise ConfigError(f"pool_size must be a positive integer, got {pool_size}")
        size = pool_size or self.settings.pool_size

        lock = self._locks.setdefault(conn_string, asyncio.Lock())
        async with lock:
            handle = self._handles.get(conn_string)
            if handle is None:
                handle = await self._open(conn_string, size)
            elif not await handle.is_connected():
                logger.warning(
                    "Client for {uri} is not connected, reconnecting",
                    uri=mask_uri(conn_string),
                )
                # Other callers may still be using the stale client; it is
                # closed with the rest on close_all.
                self._retired.append(handle)
                handle = await self._open(conn_string, size)
            elif pool_size is not None and pool_size != handle.pool_size:
                logger.debug(
                    "Ignoring pool_size={requested} for {uri}, client already open with {current}",
                    requested=pool_size,
                    uri=mask_uri(conn_string),
                    current=handle.pool_size,
                )
            return handle

    async def close_all(self) -> List[CloseError]:
        """Close every cached and retired handle and empty the registry.

        Closing continues past individual failures; the failures are logged
        and returned so callers can inspect them. Calling this on an empty
        registry does nothing.
        """

        handles = self._retired + list(self._handles.values())
        self._handles.clear()
        self._retired = []
        self._locks.clear()
        failures: List[CloseError] = []
        for handle in handles:
            try:
                await handle.close()
            except CloseError as exc:
                logger.warning(
                    "Failed to close client for {uri}: {error}",
                    uri=mask_uri(handle.conn_string),
                    error=exc,
                )
                failures.append(exc)
        if handles:
            logger.info(
                "Closed {count} Mongo client(s), {failed} failure(s)",
                count=len(handles),
                failed=len(failures),
            )
        return failures

    async def _open(self, conn_string: str, pool_size: int) -> Handle:
        handle = await self._connector(conn_string, pool_size)
        self._handles[conn_string] = handle
        return handle


@lru_cache
def default_registry() -> ConnectionRegistry:
    """Return the process-wide registry used when none is passed explicitly."""

    return ConnectionRegistry()
