"""Configuration for mongo_ops connections.

Values come from ``MONGO_*`` environment variables (or a local ``.env``).
Applications can build their own ``MongoOpsSettings`` and hand it to a
``ConnectionRegistry`` or ``ConnectionContext`` to override the defaults.
"""

from __future__ import annotations

from typing import Optional

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_POOL_SIZE = 5


class MongoOpsSettings(BaseSettings):
    """Connection defaults shared by every registry and context."""

    model_config = SettingsConfigDict(env_prefix="MONGO_", env_file=".env", extra="ignore")

    uri: Optional[str] = None
    db_name: Optional[str] = None
    pool_size: int = Field(default=DEFAULT_POOL_SIZE, gt=0)
    # Ping the server before reusing a cached client.
    ping_on_acquire: bool = True


def _default_settings() -> MongoOpsSettings:
    return MongoOpsSettings()


settings: MongoOpsSettings = _default_settings()
logger.debug(
    "MongoOpsSettings initialized with db_name={db_name} pool_size={pool_size}",
    db_name=settings.db_name,
    pool_size=settings.pool_size,
)
