import asyncio
import json
from typing import Any, Dict, Iterable, Optional

from nio import (
    AsyncClient,
    LoginResponse,
    MatrixRoom,
    MessageDirection,
    RoomMessage,
    RoomMessagesResponse,
    SyncResponse,
)

from .config import Settings
from .events import build_batch
from .logger import get_logger, setup_logging
from .store import LocalIndexStore

logger = get_logger(__name__)


class MatrixIndexBridge:
    """Fills the local index from a Matrix account: one backfill pass, then live events."""

    def __init__(self, settings: Settings, store: Optional[LocalIndexStore] = None) -> None:
        self.settings: Settings = settings
        self.matrix_client: AsyncClient = AsyncClient(
            settings.matrix.homeserver, settings.matrix.user
        )
        self.store: LocalIndexStore = store or LocalIndexStore.from_settings(settings)
        self.store.ensure_schema()
        # Pagination token to continue backfilling each room from
        self.room_tokens: Dict[str, Optional[str]] = {}
        self.monitored_rooms = set(settings.matrix.room_ids)
        self.load_sync_state()

    def load_sync_state(self) -> None:
        """Load the backfill token of each room from file"""
        try:
            with open(self.settings.sync_state_file, "r") as f:
                state = json.load(f)
                self.room_tokens = {room: token for room, token in state.items()}
                for room_id, token in self.room_tokens.items():
                    logger.info(f"Room {room_id} backfill token: {token}")
        except FileNotFoundError:
            logger.info("No previous sync state found")
            self.room_tokens = {}
        except (json.JSONDecodeError, AttributeError):
            logger.warning("Corrupted sync state file found, starting fresh")
            self.room_tokens = {}

    def save_sync_state(self) -> None:
        """Save the backfill token of each room to file"""
        with open(self.settings.sync_state_file, "w") as f:
            json.dump(self.room_tokens, f)

    async def connect_to_matrix(self) -> None:
        logger.info(f"Logging in to Matrix as {self.settings.matrix.user}...")
        response = await self.matrix_client.login(password=self.settings.matrix.password)
        if not isinstance(response, LoginResponse):
            logger.error(f"Failed to log in: {response}")
            raise ConnectionError(f"Failed to log in: {response}")
        logger.info("Successfully logged in")

    async def index_events(self, room_id: str, events: Iterable[Any]) -> int:
        """Index one page of room events, off the event loop. Returns the number of messages."""
        messages, media = build_batch(room_id, events, self.settings.matrix.homeserver)
        if messages or media:
            await asyncio.to_thread(self.store.upsert_batch, room_id, messages, media)
            logger.debug(
                f"Indexed {len(messages)} messages and {len(media)} media items in {room_id}"
            )
        return len(messages)

    async def initial_sync(self) -> None:
        """Sync once, index the returned timelines and note where backfill starts"""
        response = await self.matrix_client.sync(timeout=0, full_state=True)
        if not isinstance(response, SyncResponse):
            logger.error(f"Initial sync failed: {response}")
            raise ConnectionError(f"Initial sync failed: {response}")

        if not self.monitored_rooms:
            self.monitored_rooms = set(response.rooms.join.keys())

        for room_id, info in response.rooms.join.items():
            if room_id not in self.monitored_rooms:
                continue
            await self.index_events(room_id, info.timeline.events)
            if room_id not in self.room_tokens:
                self.room_tokens[room_id] = info.timeline.prev_batch
        self.save_sync_state()

    async def fetch_historical_messages(self, limit: int = 100) -> None:
        """Backfill one page of older messages in every monitored room"""
        for room_id in sorted(self.monitored_rooms):
            token = self.room_tokens.get(room_id)
            if not token:
                logger.info(f"Nothing left to backfill in room {room_id}")
                continue
            logger.info(f"Backfilling room {room_id} from {token}")

            response = await self.matrix_client.room_messages(
                room_id=room_id,
                start=token,
                limit=limit,
                direction=MessageDirection.back,
            )
            if not isinstance(response, RoomMessagesResponse):
                logger.error(f"Failed to fetch messages from room {room_id}: {response}")
                continue

            count = await self.index_events(room_id, response.chunk)
            logger.info(f"Backfilled {count} messages in room {room_id}")
            # No end token means the start of the room was reached
            self.room_tokens[room_id] = response.end if response.chunk else None
            self.save_sync_state()

    async def message_callback(self, room: MatrixRoom, event: RoomMessage) -> None:
        """Callback for new messages"""
        if room.room_id not in self.monitored_rooms:
            return
        logger.debug(f"New message in {room.room_id} from {event.sender}")
        await self.index_events(room.room_id, [event])

    async def run(self) -> None:
        """Main run loop"""
        await self.connect_to_matrix()

        for room_id in self.settings.matrix.room_ids:
            await self.matrix_client.join(room_id)
            logger.info(f"Monitoring room {room_id}")

        await self.initial_sync()
        await self.fetch_historical_messages()

        self.matrix_client.add_event_callback(self.message_callback, RoomMessage)

        logger.info("Starting sync loop for new messages...")
        await self.matrix_client.sync_forever(timeout=30000)


async def run_bridge() -> None:
    settings: Settings = Settings()

    setup_logging(settings)
    logger.info("Starting Matrix local index")

    bridge: MatrixIndexBridge = MatrixIndexBridge(settings)
    try:
        await bridge.run()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        await bridge.matrix_client.close()
        bridge.store.dispose()


def main() -> None:
    asyncio.run(run_bridge())


if __name__ == "__main__":
    main()
