"""Batch ingestion of message and media records for one room."""

from typing import Any, Iterable, List, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import TransactionFailure, ValidationError
from .logger import get_logger
from .normalize import encode_list, fold, search_surface, search_text
from .records import MediaRecord, MessageRecord, coerce
from .schema import IndexedMessage, MediaItem

logger = get_logger(__name__)


def validate_batch(
    room_id: str,
    messages: Iterable[Any],
    media_items: Iterable[Any],
) -> Tuple[List[MessageRecord], List[MediaRecord]]:
    """Validate every record of a batch before anything is written.

    Records without a room inherit ``room_id``. A message claiming another
    room is rejected, media items may point at any room.
    """
    if not isinstance(room_id, str) or not room_id:
        raise ValidationError("Batch room_id must be a non-empty string")

    message_records = []
    for raw in messages or ():
        record = coerce(MessageRecord, raw)
        if record.room_id is None:
            record = record.model_copy(update={"room_id": room_id})
        elif record.room_id != room_id:
            raise ValidationError(
                f"Message {record.event_id} belongs to {record.room_id}, not {room_id}"
            )
        message_records.append(record)

    media_records = []
    for raw in media_items or ():
        record = coerce(MediaRecord, raw)
        if not record.room_id:
            record = record.model_copy(update={"room_id": room_id})
        media_records.append(record)

    return message_records, media_records


def message_row(record: MessageRecord) -> IndexedMessage:
    return IndexedMessage(
        room_id=record.room_id,
        event_id=record.event_id,
        sender=record.sender,
        timestamp=record.timestamp,
        body=record.body,
        tokens=encode_list(record.tokens),
        tags=encode_list(record.tags),
        reactions=encode_list(record.reactions),
        media_types=encode_list(record.media_types),
        has_media=record.has_media,
        search_surface=search_surface(record.tokens),
        body_folded=fold(record.body) if record.body is not None else None,
        search_text=search_text(record.body, record.sender, record.tags, record.reactions),
    )


def media_row(record: MediaRecord) -> MediaItem:
    return MediaItem(
        id=record.id,
        event_id=record.event_id,
        room_id=record.room_id,
        media_type=record.media_type,
        mxc_url=record.mxc_url,
        thumbnail_mxc=record.thumbnail_mxc,
        file_name=record.file_name,
        size=record.size,
        mimetype=record.mimetype,
        sender=record.sender,
        timestamp=record.timestamp,
        body=record.body,
        url=record.url,
    )


def upsert_batch(
    session: Session,
    room_id: str,
    messages: Sequence[Any],
    media_items: Sequence[Any],
) -> None:
    """Insert or overwrite a room's messages and media in a single transaction.

    Rows are keyed by (room_id, event_id) and by media id. An existing row has
    every column replaced by the incoming record (last write wins). Any
    database error rolls back the whole batch.
    """
    if not messages and not media_items:
        return

    message_records, media_records = validate_batch(room_id, messages, media_items)
    logger.debug(
        f"Upserting {len(message_records)} messages and {len(media_records)} media items into {room_id}"
    )

    try:
        for record in message_records:
            session.merge(message_row(record))
        for record in media_records:
            session.merge(media_row(record))
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Rolled back index batch for room {room_id}: {e}")
        raise TransactionFailure(f"Index batch for room {room_id} failed: {e}") from e
