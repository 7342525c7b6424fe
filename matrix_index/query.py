"""Structured search over the local index.

Every caller-supplied value reaches the database as a bound parameter. LIKE
patterns are built with ``autoescape=True`` so ``%`` and ``_`` in user input
stay literal.
"""

from typing import List, Optional

from sqlalchemy import Select, or_, select
from sqlalchemy.orm import Session

from .normalize import decode_list, encode_item, normalize_term, pad_token
from .records import MediaRecord, MessageRecord, RoomIndex, SearchQuery
from .schema import IndexedMessage, MediaItem

NEWEST_FIRST = (
    IndexedMessage.timestamp.desc(),
    IndexedMessage.room_id.asc(),
    IndexedMessage.event_id.asc(),
)


def message_record(row: IndexedMessage) -> MessageRecord:
    return MessageRecord(
        event_id=row.event_id,
        room_id=row.room_id,
        sender=row.sender,
        timestamp=row.timestamp,
        body=row.body,
        tokens=decode_list(row.tokens, "tokens"),
        tags=decode_list(row.tags, "tags"),
        reactions=decode_list(row.reactions, "reactions"),
        has_media=bool(row.has_media),
        media_types=decode_list(row.media_types, "media_types"),
    )


def media_record(row: MediaItem) -> MediaRecord:
    return MediaRecord(
        id=row.id,
        event_id=row.event_id,
        room_id=row.room_id,
        media_type=row.media_type,
        mxc_url=row.mxc_url,
        thumbnail_mxc=row.thumbnail_mxc,
        file_name=row.file_name,
        size=row.size,
        mimetype=row.mimetype,
        sender=row.sender,
        timestamp=row.timestamp,
        body=row.body,
        url=row.url,
    )


def mentions_token(token: str):
    """Whole-token match of ``token`` against the search surface."""
    return IndexedMessage.search_surface.contains(pad_token(token), autoescape=True)


def contains_element(column, value: str):
    """Match rows whose JSON-encoded list column holds ``value`` as an element.

    Inside an encoded string every quote is escaped, so an element can only
    start right after ``[`` or the ``, `` separator.
    """
    item = encode_item(value)
    return or_(
        column.startswith(f"[{item}", autoescape=True),
        column.contains(f", {item}", autoescape=True),
    )


def build_search(query: SearchQuery, mention_target: Optional[str] = None) -> Select:
    """Compose the SELECT for a search query, newest message first."""
    stmt = select(IndexedMessage)

    if query.room_id:
        stmt = stmt.where(IndexedMessage.room_id == query.room_id)
    if query.senders:
        stmt = stmt.where(IndexedMessage.sender.in_(query.senders))
    if query.from_ts is not None:
        stmt = stmt.where(IndexedMessage.timestamp >= query.from_ts)
    if query.to_ts is not None:
        stmt = stmt.where(IndexedMessage.timestamp <= query.to_ts)
    if query.has_media:
        stmt = stmt.where(IndexedMessage.has_media.is_(True))

    # One clause per type: a message must reference every requested type.
    for media_type in query.media_types or ():
        stmt = stmt.where(contains_element(IndexedMessage.media_types, media_type))

    target = mention_target if mention_target is not None else query.mention_target
    target = normalize_term(target)
    if target:
        stmt = stmt.where(mentions_token(target))

    needle = normalize_term(query.term)
    if needle:
        stmt = stmt.where(
            or_(
                IndexedMessage.search_text.contains(needle, autoescape=True),
                IndexedMessage.search_surface.contains(needle, autoescape=True),
            )
        )

    stmt = stmt.order_by(*NEWEST_FIRST)
    if query.limit is not None:
        stmt = stmt.limit(query.limit)
    return stmt


def search(
    session: Session, query: SearchQuery, mention_target: Optional[str] = None
) -> List[MessageRecord]:
    rows = session.scalars(build_search(query, mention_target)).all()
    return [message_record(row) for row in rows]


def load_room_index(session: Session, room_id: str) -> RoomIndex:
    """Every stored message and media item of a room, newest first."""
    messages = session.scalars(
        select(IndexedMessage)
        .where(IndexedMessage.room_id == room_id)
        .order_by(*NEWEST_FIRST)
    ).all()
    media = session.scalars(
        select(MediaItem)
        .where(MediaItem.room_id == room_id)
        .order_by(MediaItem.timestamp.desc(), MediaItem.id.asc())
    ).all()
    return RoomIndex(
        messages=[message_record(row) for row in messages],
        media=[media_record(row) for row in media],
    )
