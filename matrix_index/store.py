"""Entry point used by the client dispatch layer.

``LocalIndexStore`` owns one engine for one profile's index file. Every call
opens its own session, runs to completion and closes it again; nothing is
cached between calls.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from . import classifier, ingest, query
from .config import Settings
from .errors import StorageUnavailable
from .logger import get_logger
from .records import MessageRecord, RoomIndex, SearchQuery, SmartCollection, coerce
from .schema import ensure_schema

logger = get_logger(__name__)


def _engine_options(url: str) -> dict:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return {"pool_pre_ping": True}
    # Calls are dispatched from worker threads
    options = {"connect_args": {"check_same_thread": False}}
    if parsed.database in (None, "", ":memory:"):
        # One shared connection, otherwise each call would see a fresh empty database
        options["poolclass"] = StaticPool
    return options


class LocalIndexStore:
    def __init__(self, url: str) -> None:
        self.url = url
        try:
            self.engine: Engine = create_engine(url, **_engine_options(url))
        except (SQLAlchemyError, ImportError, ValueError) as e:
            logger.error(f"Cannot open index store {url!r}: {e}")
            raise StorageUnavailable(f"Cannot open index store: {e}") from e
        self._schema_ready = False
        self._schema_error: Optional[StorageUnavailable] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalIndexStore":
        """Open the store configured for this profile, creating its directory if needed."""
        database = settings.database
        if database.type == "sqlite" and database.database not in ("", ":memory:"):
            Path(database.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
        return cls(database.url)

    def ensure_schema(self) -> None:
        """Create tables on first use. A failure disables the store for good."""
        if self._schema_ready:
            return
        if self._schema_error is not None:
            raise self._schema_error
        try:
            ensure_schema(self.engine)
        except StorageUnavailable as e:
            self._schema_error = e
            raise
        self._schema_ready = True

    @contextmanager
    def _session(self) -> Iterator[Session]:
        self.ensure_schema()
        with Session(self.engine) as session:
            yield session

    @contextmanager
    def _reading(self) -> Iterator[Session]:
        with self._session() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                logger.error(f"Index query failed: {e}")
                raise StorageUnavailable(f"Index query failed: {e}") from e

    def upsert_batch(
        self,
        room_id: str,
        messages: Sequence[Any] = (),
        media_items: Sequence[Any] = (),
    ) -> None:
        if not messages and not media_items:
            return
        with self._session() as session:
            ingest.upsert_batch(session, room_id, messages, media_items)

    def search(self, search_query: Any, mention_target: Optional[str] = None) -> List[MessageRecord]:
        search_query = coerce(SearchQuery, search_query or {})
        with self._reading() as session:
            return query.search(session, search_query, mention_target)

    def load_room_index(self, room_id: str) -> RoomIndex:
        with self._reading() as session:
            return query.load_room_index(session, room_id)

    def compute_smart_collections(self, user_id: str) -> List[SmartCollection]:
        with self._reading() as session:
            return classifier.compute_smart_collections(session, user_id)

    def collection_messages(
        self, token: str, user_id: str, limit: Optional[int] = None
    ) -> List[MessageRecord]:
        with self._reading() as session:
            return classifier.collection_messages(session, token, user_id, limit)

    def dispose(self) -> None:
        self.engine.dispose()
