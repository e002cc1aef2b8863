"""Typing helpers for the payloads handed to MongoDB."""

from typing import Any, Mapping, Sequence, Tuple, Union

# Filters, projections, sort specs, updates and pipeline stages all share
# the same shape: string keys mapping to primitives, mappings or sequences.
Document = Mapping[str, Any]
Pipeline = Sequence[Document]
SortSpec = Union[str, Document, Sequence[Tuple[str, Any]]]
