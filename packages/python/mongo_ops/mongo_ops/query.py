"""Normalisation of read requests into the shapes PyMongo expects."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt
from pymongo import ASCENDING

from .errors import InvalidOperationError, InvalidQueryError, ValidationError
from .typing import Document, Pipeline, SortSpec


class ReadMode(str, Enum):
    FIND = "find"
    COUNT = "count"
    AGGREGATE = "aggregate"


class Window(NamedTuple):
    """Resolved ``skip``/``limit`` pair."""

    skip: int
    limit: int


class Pagination(BaseModel):
    """1-based inclusive range of documents, e.g. ``startIndex=11, endIndex=20``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    start_index: StrictInt = Field(alias="startIndex")
    end_index: StrictInt = Field(alias="endIndex")

    def window(self) -> Window:
        start = max(self.start_index, 1)
        return Window(skip=start - 1, limit=max(self.end_index - start + 1, 0))


PaginationLike = Union[Pagination, Mapping[str, Any], None]


def _integral(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def resolve_pagination(pagination: PaginationLike) -> Optional[Window]:
    """Turn a pagination spec into a ``Window``.

    Returns None (no pagination) when either bound is missing or not an
    integer. A window with ``limit == 0`` means the read can return an
    empty result without asking the server.
    """

    if pagination is None:
        return None
    if isinstance(pagination, Pagination):
        return pagination.window()
    if not isinstance(pagination, Mapping):
        return None
    start = _integral(pagination.get("startIndex", pagination.get("start_index")))
    end = _integral(pagination.get("endIndex", pagination.get("end_index")))
    if start is None or end is None:
        return None
    return Pagination(start_index=start, end_index=end).window()


def normalize_sort(sort: Optional[SortSpec]) -> Optional[List[Tuple[str, Any]]]:
    """Return sort keys as the ``[(field, direction), ...]`` list PyMongo takes."""

    if not sort:
        return None
    if isinstance(sort, str):
        return [(sort, ASCENDING)]
    if isinstance(sort, Mapping):
        return list(sort.items())
    pairs: List[Tuple[str, Any]] = []
    for item in sort:
        if isinstance(item, str):
            pairs.append((item, ASCENDING))
        elif isinstance(item, Sequence) and len(item) == 2 and isinstance(item[0], str):
            pairs.append((item[0], item[1]))
        else:
            raise ValidationError(f"Invalid sort key: {item!r}")
    return pairs


def normalize_projection(projection: Any) -> Optional[Dict[str, Any]]:
    """Return a projection document, or None to return every field."""

    if not projection:
        return None
    if isinstance(projection, Mapping):
        return dict(projection)
    if isinstance(projection, str):
        return {projection: 1}
    return {field: 1 for field in projection}


def ensure_pipeline(query: Any) -> List[Dict[str, Any]]:
    """Check that ``query`` is a sequence of stage documents."""

    if isinstance(query, (str, bytes, Mapping)) or not isinstance(query, Sequence):
        raise InvalidQueryError(
            f"Aggregation requires a pipeline (list of stages), got {type(query).__name__}"
        )
    stages: List[Dict[str, Any]] = []
    for index, stage in enumerate(query):
        if not isinstance(stage, Mapping) or not stage:
            raise InvalidQueryError(f"Pipeline stage {index} is not a stage document: {stage!r}")
        stages.append(dict(stage))
    return stages


@dataclass(frozen=True)
class QueryDescriptor:
    """One read request: filter (or pipeline) plus its shaping options."""

    query: Union[Document, Pipeline, None] = None
    mode: ReadMode = ReadMode.FIND
    projection: Optional[Document] = None
    sort: Optional[SortSpec] = None
    pagination: PaginationLike = None
    collation: Optional[Document] = None
    aggregate_options: Optional[Document] = None

    def __post_init__(self) -> None:
        try:
            mode = ReadMode(self.mode)
        except ValueError:
            raise InvalidOperationError(f"invalid-read-mode: {self.mode!r}") from None
        object.__setattr__(self, "mode", mode)

    @property
    def window(self) -> Optional[Window]:
        return resolve_pagination(self.pagination)

    @property
    def filter(self) -> Dict[str, Any]:
        if self.query is None:
            return {}
        if not isinstance(self.query, Mapping):
            raise ValidationError(f"Filter must be a document, got {type(self.query).__name__}")
        return dict(self.query)

    def pipeline(self) -> List[Dict[str, Any]]:
        return ensure_pipeline(self.query)

    def find_options(self) -> Dict[str, Any]:
        """Keyword arguments for ``Collection.find`` besides filter and projection."""

        options: Dict[str, Any] = {}
        sort = normalize_sort(self.sort)
        if sort:
            options["sort"] = sort
        if self.collation:
            options["collation"] = dict(self.collation)
        window = self.window
        if window is not None:
            options["skip"] = window.skip
            options["limit"] = window.limit
        return options

    def count_options(self) -> Dict[str, Any]:
        return {"collation": dict(self.collation)} if self.collation else {}


def build_search_pipeline(
    search_spec: Document,
    *,
    projection: Any = None,
    sort: Optional[SortSpec] = None,
    window: Optional[Window] = None,
    include_count: bool = False,
    score_field: str = "score",
) -> List[Dict[str, Any]]:
    """Build the ``$search`` aggregation used for full-text search.

    With ``include_count`` the last stage is a ``$facet`` that returns a
    single ``{metadata: [{total, page}], data: [...]}`` document.
    """

    pipeline: List[Dict[str, Any]] = [
        {"$search": dict(search_spec)},
        {"$addFields": {score_field: {"$meta": "searchScore"}}},
    ]
    fields = normalize_projection(projection)
    if fields:
        # An inclusion projection would otherwise drop the score added above.
        if any(key != "_id" and value not in (0, False) for key, value in fields.items()):
            fields.setdefault(score_field, 1)
        pipeline.append({"$project": fields})
    sort_pairs = normalize_sort(sort)
    if sort_pairs:
        pipeline.append({"$sort": dict(sort_pairs)})

    page_stages: List[Dict[str, Any]] = []
    if window is not None:
        page_stages = [{"$skip": window.skip}, {"$limit": window.limit}]

    if include_count:
        page = math.ceil((window.skip + 1) / window.limit) if window else 1
        pipeline.append(
            {
                "$facet": {
                    "metadata": [{"$count": "total"}, {"$addFields": {"page": page}}],
                    "data": page_stages,
                }
            }
        )
    else:
        pipeline.extend(page_stages)
    return pipeline
