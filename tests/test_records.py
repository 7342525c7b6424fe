"""Tests for the dispatch-layer record shapes."""

import pytest

from matrix_index.errors import ValidationError
from matrix_index.records import MediaRecord, MessageRecord, SearchQuery, coerce


def test_message_accepts_camel_case_and_snake_case():
    camel = coerce(
        MessageRecord,
        {"eventId": "E1", "sender": "@a", "timestamp": 100, "hasMedia": True, "mediaTypes": ["image"]},
    )
    snake = coerce(
        MessageRecord,
        {"event_id": "E1", "sender": "@a", "timestamp": 100, "has_media": True, "media_types": ["image"]},
    )
    assert camel == snake
    assert camel.tokens == []
    assert camel.body is None


def test_message_dumps_camel_case():
    record = MessageRecord(event_id="E1", room_id="R1", sender="@a", timestamp=1)
    dumped = record.model_dump(by_alias=True)
    assert dumped["eventId"] == "E1"
    assert dumped["roomId"] == "R1"
    assert dumped["hasMedia"] is False


def test_media_type_uses_type_alias():
    record = coerce(
        MediaRecord,
        {"id": "E1:0", "eventId": "E1", "type": "video", "sender": "@a", "timestamp": 5, "mxcUrl": "mxc://hs/x"},
    )
    assert record.media_type == "video"
    assert record.mxc_url == "mxc://hs/x"
    assert record.model_dump(by_alias=True)["type"] == "video"


@pytest.mark.parametrize(
    "payload",
    [
        {"sender": "@a", "timestamp": 1},
        {"eventId": "", "sender": "@a", "timestamp": 1},
        {"eventId": "E1", "sender": "@a", "timestamp": "yesterday"},
        {"eventId": "E1", "sender": "@a", "timestamp": -1},
        {"eventId": "E1", "timestamp": 1},
        None,
    ],
)
def test_invalid_messages_raise_validation_error(payload):
    with pytest.raises(ValidationError):
        coerce(MessageRecord, payload)


def test_search_query_rejects_negative_limit():
    with pytest.raises(ValidationError):
        coerce(SearchQuery, {"limit": -1})


def test_coerce_passes_models_through():
    query = SearchQuery(term="x")
    assert coerce(SearchQuery, query) is query
