"""Database schema for the local Matrix message index."""

from sqlalchemy import BigInteger, Boolean, Column, String, Text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase

from .errors import StorageUnavailable
from .logger import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class IndexedMessage(Base):
    """Searchable copy of a Matrix message event."""

    __tablename__ = "matrix_index_messages"

    room_id = Column(String(255), primary_key=True, index=True)
    event_id = Column(String(255), primary_key=True)
    sender = Column(String(255), nullable=False, index=True)
    timestamp = Column(BigInteger, nullable=False)
    body = Column(Text, nullable=True)
    # JSON-encoded lists of strings
    tokens = Column(Text, nullable=False, default="[]")
    tags = Column(Text, nullable=False, default="[]")
    reactions = Column(Text, nullable=False, default="[]")
    media_types = Column(Text, nullable=False, default="[]")
    has_media = Column(Boolean, nullable=False, default=False)
    # " tok1 tok2 ... " so that " word " only matches whole tokens
    search_surface = Column(Text, nullable=False, default=" ")
    # Lowercased in Python at write time; SQL lower() only folds ASCII
    body_folded = Column(Text, nullable=True)
    search_text = Column(Text, nullable=False, default="")


class MediaItem(Base):
    """Media attachment or link referenced by a message event."""

    __tablename__ = "matrix_index_media"

    id = Column(String(512), primary_key=True)
    event_id = Column(String(255), nullable=False)
    room_id = Column(String(255), nullable=False, index=True)
    media_type = Column(String(50), nullable=False)
    mxc_url = Column(Text, nullable=True)
    thumbnail_mxc = Column(Text, nullable=True)
    file_name = Column(Text, nullable=True)
    size = Column(BigInteger, nullable=True)
    mimetype = Column(String(255), nullable=True)
    sender = Column(String(255), nullable=False)
    timestamp = Column(BigInteger, nullable=False)
    body = Column(Text, nullable=True)
    url = Column(Text, nullable=True)


def ensure_schema(engine: Engine) -> None:
    """Create the index tables and their indexes unless they already exist."""
    try:
        Base.metadata.create_all(engine, checkfirst=True)
    except SQLAlchemyError as e:
        logger.error(f"Failed to prepare index schema on {engine.url!r}: {e}")
        raise StorageUnavailable(f"Could not prepare index schema: {e}") from e
    logger.info(f"Index schema ready on {engine.url!r}")
