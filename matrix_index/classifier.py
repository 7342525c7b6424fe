"""Smart collections: heuristic, counted groupings computed from the index on demand."""

from typing import List, Optional

from sqlalchemy import false, func, or_, select
from sqlalchemy.orm import Session

from .errors import ValidationError
from .normalize import user_localpart
from .query import NEWEST_FIRST, contains_element, mentions_token, message_record
from .records import MessageRecord, SmartCollection
from .schema import IndexedMessage

IMPORTANT_TAG = "important"
EMPHASIS_REACTIONS = ("⭐", "🔥", "❗")

IMPORTANT_TOKEN = "smart:important"
MENTIONS_TOKEN = "smart:mentions"


def important_clause():
    return or_(
        contains_element(func.lower(IndexedMessage.tags), IMPORTANT_TAG),
        *(contains_element(IndexedMessage.reactions, glyph) for glyph in EMPHASIS_REACTIONS),
    )


def mentions_clause(localpart: str):
    return or_(
        mentions_token(localpart),
        IndexedMessage.body_folded.contains(f"@{localpart}", autoescape=True),
    )


def _clause_for(token: str, user_id: str):
    if token == IMPORTANT_TOKEN:
        return important_clause()
    if token == MENTIONS_TOKEN:
        localpart = user_localpart(user_id)
        return mentions_clause(localpart) if localpart else false()
    raise ValidationError(f"Unknown smart collection token: {token!r}")


def _count(session: Session, clause) -> int:
    return session.scalar(select(func.count()).select_from(IndexedMessage).where(clause)) or 0


def compute_smart_collections(session: Session, user_id: str) -> List[SmartCollection]:
    """Count the important and mention collections for ``user_id``.

    Collections with nothing in them are left out rather than reported
    with a zero count.
    """
    collections = []

    important = _count(session, important_clause())
    if important:
        collections.append(
            SmartCollection(
                id="important",
                label="Important",
                description="Messages tagged important or marked with an emphasis reaction",
                count=important,
                token=IMPORTANT_TOKEN,
            )
        )

    localpart = user_localpart(user_id)
    if localpart:
        mentions = _count(session, mentions_clause(localpart))
        if mentions:
            collections.append(
                SmartCollection(
                    id="mentions",
                    label="Missed mentions",
                    description="Messages where you were mentioned",
                    count=mentions,
                    token=MENTIONS_TOKEN,
                )
            )

    return collections


def collection_messages(
    session: Session, token: str, user_id: str, limit: Optional[int] = None
) -> List[MessageRecord]:
    """Messages behind a smart collection token, newest first."""
    stmt = select(IndexedMessage).where(_clause_for(token, user_id)).order_by(*NEWEST_FIRST)
    if limit is not None:
        stmt = stmt.limit(limit)
    return [message_record(row) for row in session.scalars(stmt).all()]
