"""Translate nested records into dotted-path MongoDB filters and updates.

Nested records flatten into dotted paths so that matching or updating one
nested field leaves its siblings alone::

    {"stateData": {"code": 200}}  ->  {"stateData.code": 200}

Values under a key named ``id`` or ``_id`` are store identifiers and are
converted to ``ObjectId``. A top-level ``id`` addresses the store's ``_id``.
"""

from enum import Enum
from typing import Any, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel

from .errors import ErrorKind, QueueError

ID_KEYS = ("id", "_id")

Record = dict[str, Any]


def coerce_identifier(value: Union[str, ObjectId]) -> ObjectId:
    """Convert an identifier string to an ``ObjectId``.

    Raises:
        QueueError: INVALID_IDENTIFIER if the value is not a valid identifier
    """
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str):
        raise QueueError(ErrorKind.INVALID_IDENTIFIER, f"Invalid identifier: {value!r}")
    try:
        return ObjectId(value)
    except InvalidId as e:
        raise QueueError(ErrorKind.INVALID_IDENTIFIER, f"Invalid identifier: {value!r}") from e


def _as_record(value: Any) -> Any:
    # Only the fields the caller set
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_unset=True)
    return value


def _leaf(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _flatten(record: Record, parent: str, out: Record) -> None:
    for key, value in _as_record(record).items():
        value = _as_record(value)
        if not parent and key in ID_KEYS:
            out["_id"] = coerce_identifier(value)
            continue

        path = f"{parent}.{key}" if parent else key
        if isinstance(value, dict) and key not in ID_KEYS:
            _flatten(value, path, out)
        elif key in ID_KEYS:
            out[path] = coerce_identifier(value)
        else:
            out[path] = _leaf(value)


def flatten_record(record: Record) -> Record:
    """Flatten a nested record into ``{dotted.path: value}``."""
    out: Record = {}
    _flatten(record, "", out)
    return out


def to_filter(match_spec: Record) -> Record:
    """Build an equality filter from a nested match spec."""
    return {path: {"$eq": value} for path, value in flatten_record(match_spec).items()}


def to_update(partial: Record) -> Record:
    """Build ``$set`` assignments from a partial record.

    The identifier is immutable, so a top-level ``id``/``_id`` is ignored.
    """
    assignments = flatten_record(partial)
    assignments.pop("_id", None)
    return assignments
