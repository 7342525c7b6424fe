"""Request and response shapes exchanged with the client dispatch layer.

The dispatch layer speaks camelCase (``eventId``, ``hasMedia``...), the index
speaks snake_case. Every model accepts both and dumps camelCase with
``model_dump(by_alias=True)``.
"""

from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .errors import ValidationError

# Largest value a 64-bit integer column holds, plus one
MAX_INTEGER = 2**63


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageRecord(Record):
    """One chat event as stored in the search index."""

    event_id: str = Field(min_length=1)
    room_id: Optional[str] = None
    sender: str
    timestamp: int = Field(ge=0, lt=MAX_INTEGER)
    body: Optional[str] = None
    tokens: List[str] = []
    tags: List[str] = []
    reactions: List[str] = []
    has_media: bool = False
    media_types: List[str] = []


class MediaRecord(Record):
    """One media attachment or link referenced by a chat event."""

    id: str = Field(min_length=1)
    event_id: str = Field(min_length=1)
    room_id: Optional[str] = None
    media_type: str = Field(alias="type")
    mxc_url: Optional[str] = None
    thumbnail_mxc: Optional[str] = None
    file_name: Optional[str] = None
    size: Optional[int] = Field(default=None, ge=0, lt=MAX_INTEGER)
    mimetype: Optional[str] = None
    sender: str
    timestamp: int = Field(ge=0, lt=MAX_INTEGER)
    body: Optional[str] = None
    url: Optional[str] = None


class SearchQuery(Record):
    """Filter for a local search. Present fields are AND-ed together."""

    term: Optional[str] = None
    room_id: Optional[str] = None
    senders: Optional[List[str]] = None
    from_ts: Optional[int] = Field(default=None, gt=-MAX_INTEGER, lt=MAX_INTEGER)
    to_ts: Optional[int] = Field(default=None, gt=-MAX_INTEGER, lt=MAX_INTEGER)
    has_media: Optional[bool] = None
    media_types: Optional[List[str]] = None
    limit: Optional[int] = Field(default=None, ge=0, lt=MAX_INTEGER)
    mention_target: Optional[str] = None


class SmartCollection(Record):
    id: str
    label: str
    description: str
    count: int
    token: str


class RoomIndex(Record):
    messages: List[MessageRecord] = []
    media: List[MediaRecord] = []


RecordT = TypeVar("RecordT", bound=Record)


def coerce(model: Type[RecordT], value: Any) -> RecordT:
    """Turn a decoded dispatch payload into a record, raising the index's ValidationError."""
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid {model.__name__}: {exc}") from exc
