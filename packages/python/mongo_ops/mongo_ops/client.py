"""Motor client handles bound to a single connection string."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, Protocol, runtime_checkable

from loguru import logger
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import ConfigurationError, PyMongoError

from .errors import CloseError, ConfigError, ConnectError, store_error_from
from .utils import mask_uri


@runtime_checkable
class Handle(Protocol):
    """What the registry and the operations need from an open client."""

    conn_string: str
    pool_size: int

    async def is_connected(self) -> bool:
        """Return True while the client can still serve requests."""

    def collection(self, name: str) -> Any:
        """Return the named collection of the handle's database."""

    async def close(self) -> None:
        """Release the client; raises ``CloseError`` on failure."""


Connector = Callable[[str, int], Awaitable[Handle]]


class ClientHandle:
    """Shared Motor client plus the connection string it was opened with."""

    def __init__(
        self,
        conn_string: str,
        client: AsyncIOMotorClient,
        *,
        pool_size: int,
        db_name: Optional[str] = None,
        ping: bool = True,
    ) -> None:
        self.conn_string = conn_string
        self.pool_size = pool_size
        self._client = client
        self._db_name = db_name
        self._ping = ping
        self._closed = False

    @property
    def client(self) -> AsyncIOMotorClient:
        return self._client

    @property
    def closed(self) -> bool:
        return self._closed

    async def is_connected(self) -> bool:
        if self._closed:
            return False
        if not self._ping:
            return True
        try:
            await self._client.admin.command("ping")
        except PyMongoError as exc:
            logger.warning(
                "Ping failed for {uri}: {error}",
                uri=mask_uri(self.conn_string),
                error=exc,
            )
            return False
        return True

    def database(self) -> AsyncIOMotorDatabase:
        """Return the database named in the URI, falling back to ``db_name``."""

        try:
            return self._client.get_default_database(default=self._db_name)
        except ConfigurationError as exc:
            raise ConfigError(
                f"No database in {mask_uri(self.conn_string)} and no default db_name configured"
            ) from exc

    def collection(self, name: str) -> AsyncIOMotorCollection:
        return self.database()[name]

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._client.close()
        except (PyMongoError, OSError) as exc:
            raise CloseError(
                f"Failed to close client for {mask_uri(self.conn_string)}: {exc}"
            ) from exc
        logger.info("Closed Mongo client for {uri}", uri=mask_uri(self.conn_string))

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"ClientHandle({mask_uri(self.conn_string)!r}, pool_size={self.pool_size}, {state})"


async def connect(
    conn_string: str,
    pool_size: int,
    *,
    db_name: Optional[str] = None,
    ping: bool = True,
) -> ClientHandle:
    """Open a Motor client and make sure the server answers before handing it out."""

    try:
        client = AsyncIOMotorClient(conn_string, maxPoolSize=pool_size)
    except PyMongoError as exc:
        raise store_error_from(exc, ConnectError) from exc
    try:
        await client.admin.command("ping")
    except PyMongoError as exc:
        client.close()
        raise store_error_from(exc, ConnectError) from exc
    logger.info(
        "Opened Mongo client for {uri} (maxPoolSize={pool_size})",
        uri=mask_uri(conn_string),
        pool_size=pool_size,
    )
    return ClientHandle(conn_string, client, pool_size=pool_size, db_name=db_name, ping=ping)
