"""
Base record model and helpers shared by all tables.
"""

from __future__ import annotations

import datetime
import logging
from logging import Logger
from typing import Any, ClassVar, Iterable

from pydantic import BaseModel, ConfigDict, ValidationError

from ..exceptions import LogicError

__all__ = [
    "BaseRecord",
    "parse_record",
    "parse_records",
    "timestamp_ms",
    "utcnow",
]

EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


class BaseRecord(BaseModel):
    """
    A single row of a flat table.

    Columns not declared by a subclass are kept as extra fields so that
    server-computed values survive a round trip.
    """

    model_config = ConfigDict(extra="allow")

    primary_key: ClassVar[str] = "id"
    """
    Field acting as primary key.
    """

    local_fields: ClassVar[frozenset[str]] = frozenset()
    """
    Fields private to this device, never sent to the remote store.
    """

    updated_at: datetime.datetime | None = None
    """
    Time of last local edit; the sole signal for conflict resolution.
    """

    @property
    def key(self) -> str:
        """
        Primary key as a string.
        """
        return str(getattr(self, self.primary_key))

    @property
    def updated_ms(self) -> int:
        """
        `updated_at` in milliseconds since epoch, 0 if not set.
        """
        return timestamp_ms(self.updated_at)

    def to_row(self) -> dict[str, Any]:
        """
        Dump as a remote row, omitting fields private to this device.
        """
        return self.model_dump(mode="json", exclude=set(self.local_fields))


def parse_record[RecordT: BaseModel](
    cls: type[RecordT], raw: Any
) -> RecordT:
    """
    Validate a raw mapping as the given model, raising {obj}`LogicError`
    if malformed.
    """
    if isinstance(raw, cls):
        return raw

    if not isinstance(raw, dict):
        raise LogicError(f"Expected mapping for {cls.__name__}, got {raw!r}")

    try:
        return cls.model_validate(raw)
    except ValidationError as e:
        raise LogicError(
            f"Malformed {cls.__name__}: {e.error_count()} error(s): {e}"
        ) from e


def parse_records[RecordT: BaseModel](
    cls: type[RecordT],
    raws: Iterable[Any] | None,
    *,
    logger: Logger | None = None,
    context: str = "",
) -> list[RecordT]:
    """
    Validate each raw mapping, skipping and logging malformed ones.
    """
    logger = logger or logging.getLogger()
    records: list[RecordT] = []

    if raws is None:
        return records

    for raw in raws:
        try:
            records.append(parse_record(cls, raw))
        except LogicError as e:
            where = f" in {context}" if context else ""
            logger.warning(f"Skipping malformed record{where}: {e.message}")

    return records


def timestamp_ms(value: datetime.datetime | str | None) -> int:
    """
    Convert a timestamp to milliseconds since epoch. Missing values map to 0
    and naive datetimes are interpreted as UTC.
    """
    if value is None:
        return 0

    if isinstance(value, str):
        try:
            value = datetime.datetime.fromisoformat(value)
        except ValueError:
            return 0

    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)

    return (value - EPOCH) // datetime.timedelta(milliseconds=1)


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)
