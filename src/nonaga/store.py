"""In-memory game storage with optimistic concurrency.

Each record carries a version number. Writers read a record, compute the next
state with the engine, and commit it with ``compare_and_swap``; a writer that
raced another one gets ``StaleStateError`` and must refetch instead of
overwriting a newer state.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from .config import settings
from .game import GameState

logger = logging.getLogger(__name__)


class GameNotFound(LookupError):
    pass


class StaleStateError(Exception):
    """The record changed since the caller read it."""

    def __init__(self, game_id: str, expected: int, actual: int):
        self.game_id = game_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Game {game_id} is at version {actual}, not {expected}; refetch and retry"
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StoredGame:
    game_id: str
    room_code: str
    payload: str  # GameState as JSON
    version: int
    created_at: datetime
    updated_at: datetime
    expires_at: datetime

    @property
    def state(self) -> GameState:
        return GameState.model_validate_json(self.payload)


class GameStore:
    """Keeps games keyed by id, with a secondary index on room code.

    ``on_drop`` is called with the id of every record removed on expiry.
    """

    def __init__(
        self,
        ttl_seconds: int = settings.game_ttl_seconds,
        room_code_length: int = settings.room_code_length,
        clock: Optional[Callable[[], datetime]] = None,
        on_drop: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._games: Dict[str, StoredGame] = {}
        self._rooms: Dict[str, str] = {}  # room code -> game id
        self._lock = threading.Lock()
        self._ttl = timedelta(seconds=ttl_seconds)
        self._room_code_length = room_code_length
        self._clock = clock or _utcnow
        self._on_drop = on_drop

    def create(self, state: GameState) -> StoredGame:
        with self._lock:
            self._purge_expired()
            for _ in range(10):
                room_code = self._generate_room_code()
                if room_code not in self._rooms:
                    break
            else:
                raise RuntimeError("Unable to allocate room code")

            now = self._clock()
            record = StoredGame(
                game_id=uuid.uuid4().hex,
                room_code=room_code,
                payload=_dump(state),
                version=1,
                created_at=now,
                updated_at=now,
                expires_at=now + self._ttl,
            )
            self._games[record.game_id] = record
            self._rooms[room_code] = record.game_id

        logger.info(f"Created game {record.game_id} in room {room_code}")
        return record

    def get(self, game_id: str) -> StoredGame:
        with self._lock:
            return self._live(game_id)

    def get_by_room_code(self, room_code: str) -> StoredGame:
        normalized = room_code.strip().upper()
        with self._lock:
            game_id = self._rooms.get(normalized)
            if game_id is None:
                raise GameNotFound(f"No game in room {normalized}")
            return self._live(game_id)

    def compare_and_swap(
        self, game_id: str, expected_version: int, state: GameState
    ) -> StoredGame:
        """Store ``state`` only if the record is still at ``expected_version``."""
        with self._lock:
            current = self._live(game_id)
            if current.version != expected_version:
                logger.warning(
                    f"Rejected stale write to {game_id}: "
                    f"expected v{expected_version}, found v{current.version}"
                )
                raise StaleStateError(game_id, expected_version, current.version)
            record = replace(
                current,
                payload=_dump(state),
                version=current.version + 1,
                updated_at=self._clock(),
            )
            self._games[game_id] = record
            return record

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_expired()

    def __len__(self) -> int:
        """Number of live records; expired ones awaiting a purge are skipped."""
        with self._lock:
            now = self._clock()
            return sum(1 for r in self._games.values() if r.expires_at > now)

    # ---- internals (lock held) ----

    def _live(self, game_id: str) -> StoredGame:
        record = self._games.get(game_id)
        if record is None or record.expires_at <= self._clock():
            if record is not None:
                self._drop(record)
            raise GameNotFound(f"Game {game_id} not found")
        return record

    def _purge_expired(self) -> int:
        now = self._clock()
        expired = [r for r in self._games.values() if r.expires_at <= now]
        for record in expired:
            self._drop(record)
        if expired:
            logger.info(f"Purged {len(expired)} expired games")
        return len(expired)

    def _drop(self, record: StoredGame) -> None:
        self._games.pop(record.game_id, None)
        self._rooms.pop(record.room_code, None)
        if self._on_drop is not None:
            self._on_drop(record.game_id)

    def _generate_room_code(self) -> str:
        return uuid.uuid4().hex[: self._room_code_length].upper()


def _dump(state: GameState) -> str:
    return state.model_dump_json(by_alias=True)
