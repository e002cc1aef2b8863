"""Translation of bulk-write payloads into PyMongo request objects."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Sequence, Union

from pymongo import DeleteMany, DeleteOne, InsertOne, ReplaceOne, UpdateMany, UpdateOne

from .errors import InvalidOperationError, ValidationError

BulkRequest = Union[InsertOne, ReplaceOne, UpdateOne, UpdateMany, DeleteOne, DeleteMany]

REQUEST_TYPES = (InsertOne, ReplaceOne, UpdateOne, UpdateMany, DeleteOne, DeleteMany)


class BulkKind(str, Enum):
    INSERT = "insertBulk"
    REPLACE = "replaceBulk"
    UPDATE = "updateBulk"
    DELETE = "deleteBulk"
    ALL = "allBulk"


# Shell-style option names -> PyMongo keyword arguments.
_OPTION_NAMES = {
    "upsert": "upsert",
    "collation": "collation",
    "hint": "hint",
    "arrayFilters": "array_filters",
    "array_filters": "array_filters",
}


def _options(spec: Mapping[str, Any], *allowed: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {}
    for key, value in spec.items():
        name = _OPTION_NAMES.get(key)
        if name in allowed and value is not None:
            options[name] = value
    return options


def _insert_one(spec: Mapping[str, Any]) -> InsertOne:
    document = spec["document"]
    if not isinstance(document, Mapping):
        raise TypeError(f"document must be a mapping, got {type(document).__name__}")
    return InsertOne(document)


def _replace_one(spec: Mapping[str, Any]) -> ReplaceOne:
    return ReplaceOne(
        spec["filter"], spec["replacement"], **_options(spec, "upsert", "collation", "hint")
    )


def _update_one(spec: Mapping[str, Any]) -> UpdateOne:
    return UpdateOne(
        spec["filter"],
        spec["update"],
        **_options(spec, "upsert", "collation", "array_filters", "hint"),
    )


def _update_many(spec: Mapping[str, Any]) -> UpdateMany:
    return UpdateMany(
        spec["filter"],
        spec["update"],
        **_options(spec, "upsert", "collation", "array_filters", "hint"),
    )


def _delete_one(spec: Mapping[str, Any]) -> DeleteOne:
    return DeleteOne(spec["filter"], **_options(spec, "collation", "hint"))


def _delete_many(spec: Mapping[str, Any]) -> DeleteMany:
    return DeleteMany(spec["filter"], **_options(spec, "collation", "hint"))


_TAGGED_BUILDERS: Dict[str, Callable[[Mapping[str, Any]], BulkRequest]] = {
    "insertOne": _insert_one,
    "replaceOne": _replace_one,
    "updateOne": _update_one,
    "updateMany": _update_many,
    "deleteOne": _delete_one,
    "deleteMany": _delete_many,
}


def _from_tagged(index: int, item: Any) -> BulkRequest:
    if isinstance(item, REQUEST_TYPES):
        return item
    if not isinstance(item, Mapping) or len(item) != 1:
        raise ValidationError(
            f"Bulk operation {index} must be a single-key operation document, got {item!r}"
        )
    (tag, spec), = item.items()
    builder = _TAGGED_BUILDERS.get(tag)
    if builder is None:
        raise InvalidOperationError(f"invalid-bulk-operation: {tag!r} at index {index}")
    return _build(index, builder, spec)


def _build(index: int, builder: Callable[[Mapping[str, Any]], BulkRequest], spec: Any) -> BulkRequest:
    if not isinstance(spec, Mapping):
        raise ValidationError(f"Bulk operation {index} must be a document, got {spec!r}")
    try:
        return builder(spec)
    except KeyError as exc:
        raise ValidationError(f"Bulk operation {index} is missing {exc.args[0]!r}") from exc
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Bulk operation {index} is invalid: {exc}") from exc


def build_bulk_requests(kind: Union[BulkKind, str], documents: Sequence[Any]) -> List[BulkRequest]:
    """Wrap ``documents`` into the request objects for a bulk ``kind``.

    ``insertBulk`` takes plain documents; ``replaceBulk``, ``updateBulk`` and
    ``deleteBulk`` take ``{filter, replacement|update, ...}`` documents;
    ``allBulk`` takes tagged operations such as ``{"updateMany": {...}}``
    or PyMongo request objects. The input sequence is not modified.
    """

    try:
        kind = BulkKind(kind)
    except ValueError:
        raise InvalidOperationError(f"invalid-writeBulkData-type: {kind!r}") from None
    if documents is None or isinstance(documents, (str, bytes, Mapping)):
        raise ValidationError("Bulk write requires a list of documents")

    if kind is BulkKind.ALL:
        return [_from_tagged(index, item) for index, item in enumerate(documents)]
    if kind is BulkKind.INSERT:
        return [
            _build(index, _insert_one, {"document": document})
            for index, document in enumerate(documents)
        ]
    builder = {
        BulkKind.REPLACE: _replace_one,
        BulkKind.UPDATE: _update_one,
        BulkKind.DELETE: _delete_one,
    }[kind]
    return [_build(index, builder, spec) for index, spec in enumerate(documents)]
