import re
from typing import Any

from bson import ObjectId

_CREDENTIALS = re.compile(r"(?P<scheme>mongodb(?:\+srv)?://)(?P<user>[^:@/]+):[^@/]*@")


def get_object_id(value: Any) -> ObjectId:
    """Return an ``ObjectId`` for a hex string (or an existing ``ObjectId``)."""

    return ObjectId(value)


def mask_uri(conn_string: str) -> str:
    """Hide the password part of a connection string for logging."""

    return _CREDENTIALS.sub(r"\g<scheme>\g<user>:***@", conn_string or "")
