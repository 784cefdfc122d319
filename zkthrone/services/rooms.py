"""Room registry: creation, lookup, listing and deletion of rooms.

Rooms live in memory only. Each room carries its own lock; the registry map
has a separate lock that is only held while the dict itself is touched, so
work on one room never waits on another.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional
import logging
import threading
import time

from zkthrone.errors import InvalidState, RoomFull, RoomNotFound, ValidationError
from zkthrone.models import (
    JOIN_CODE_LENGTH,
    Player,
    Room,
    RoomState,
    display_name_for,
    generate_room_id,
)


def epoch_ms() -> int:
    return int(time.time() * 1000)


def _positive_int(value, name: str) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f'{name} must be a positive integer')
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be a positive integer')
    if number <= 0:
        raise ValidationError(f'{name} must be a positive integer')
    return number


@dataclass(frozen=True)
class RoomCreated:
    room_id: str
    join_code: str

    def to_dict(self):
        return {'roomId': self.room_id, 'joinCode': self.join_code}


@dataclass(frozen=True)
class JoinResult:
    player_count: int
    already_joined: bool

    def to_dict(self):
        return {'playerCount': self.player_count, 'alreadyJoined': self.already_joined}


class RoomRegistry:
    def __init__(
        self,
        clock: Callable[[], int] = epoch_ms,
        logger: Optional[logging.Logger] = None,
        notifier: Optional[Callable[[str, str], None]] = None,
        countdown_ms: int = 15000,
        default_max_players: int = 4,
        default_total_rounds: int = 7,
        waiting_ttl_sec: int = 0,
        finished_ttl_sec: int = 0,
    ):
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)
        self.notifier = notifier
        self.countdown_ms = countdown_ms
        self.default_max_players = default_max_players
        self.default_total_rounds = default_total_rounds
        self.waiting_ttl_ms = int(waiting_ttl_sec) * 1000
        self.finished_ttl_ms = int(finished_ttl_sec) * 1000
        self._rooms: Dict[str, Room] = {}
        self._map_lock = threading.Lock()

    # ---- store access ----

    def get(self, room_id: str) -> Room:
        with self._map_lock:
            room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        return room

    @contextmanager
    def locked(self, room_id: str) -> Iterator[Room]:
        """Hold the room's lock for the duration of the block.

        Raises RoomNotFound if the room is absent or was deleted while we
        waited for the lock.
        """
        room = self.get(room_id)
        with room.lock:
            with self._map_lock:
                current = self._rooms.get(room_id)
            if current is not room:
                raise RoomNotFound(room_id)
            yield room

    def rooms(self) -> List[Room]:
        with self._map_lock:
            return list(self._rooms.values())

    def notify(self, room_id: str, event: str) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier(room_id, event)
        except Exception as exc:
            self.logger.warning(f"[notify-fail] room={room_id} event={event} error={exc}")

    # ---- operations ----

    def create_room(self, host_wallet: str, max_players=None, total_rounds=None) -> RoomCreated:
        if not host_wallet:
            raise ValidationError('hostWallet required')
        if not isinstance(host_wallet, str):
            raise ValidationError('hostWallet must be a string')
        max_players = _positive_int(
            self.default_max_players if max_players is None else max_players, 'maxPlayers'
        )
        total_rounds = _positive_int(
            self.default_total_rounds if total_rounds is None else total_rounds, 'totalRounds'
        )
        self.purge_expired()

        now = self.clock()
        host = Player(
            wallet=host_wallet,
            display_name=display_name_for(host_wallet),
            is_host=True,
            is_ready=True,
            joined_at=now,
        )
        with self._map_lock:
            room_id = generate_room_id()
            while room_id in self._rooms:
                room_id = generate_room_id()
            room = Room(
                room_id=room_id,
                host_wallet=host_wallet,
                max_players=max_players,
                total_rounds=total_rounds,
                created_at=now,
                countdown_ms=self.countdown_ms,
                players=[host],
            )
            self._rooms[room_id] = room

        self.logger.info(f"[room-create] room={room_id} host={host_wallet} max_players={max_players} rounds={total_rounds}")
        return RoomCreated(room_id=room.room_id, join_code=room.join_code)

    def join_room(self, room_id: str, player_wallet: str) -> JoinResult:
        if not room_id or not player_wallet:
            raise ValidationError('roomId and playerWallet required')
        if not isinstance(room_id, str) or not isinstance(player_wallet, str):
            raise ValidationError('roomId and playerWallet must be strings')
        with self.locked(room_id) as room:
            if room.state != RoomState.WAITING:
                raise InvalidState('Game already started')
            if room.find_player(player_wallet):
                return JoinResult(player_count=len(room.players), already_joined=True)
            if len(room.players) >= room.max_players:
                raise RoomFull('Room is full')
            room.players.append(Player(
                wallet=player_wallet,
                display_name=display_name_for(player_wallet),
                is_host=False,
                is_ready=False,
                joined_at=self.clock(),
            ))
            count = len(room.players)
        self.logger.info(f"[room-join] room={room_id} player={player_wallet} count={count}")
        self.notify(room_id, 'player_joined')
        return JoinResult(player_count=count, already_joined=False)

    def get_room_state(self, room_id: str) -> dict:
        with self.locked(room_id) as room:
            return room.to_public_dict()

    def find_by_join_code(self, join_code: str) -> str:
        if not isinstance(join_code, str):
            raise ValidationError('joinCode must be a string')
        code = join_code.strip().upper()
        if len(code) != JOIN_CODE_LENGTH:
            raise RoomNotFound(join_code)
        for room in self.rooms():
            if room.join_code == code:
                return room.room_id
        raise RoomNotFound(join_code)

    def list_public_rooms(self) -> List[dict]:
        self.purge_expired()
        summaries = []
        for room in self.rooms():
            with room.lock:
                if room.state == RoomState.WAITING and len(room.players) < room.max_players:
                    summaries.append(room.to_summary_dict())
        self.logger.info(f"[room-list] public={len(summaries)}")
        return summaries

    def delete_room(self, room_id: str) -> bool:
        with self._map_lock:
            room = self._rooms.get(room_id)
        if room is None:
            return False
        with room.lock:
            with self._map_lock:
                removed = self._rooms.pop(room_id, None) is not None
        if removed:
            self.logger.info(f"[room-delete] room={room_id}")
            self.notify(room_id, 'room_deleted')
        return removed

    def purge_expired(self, now: Optional[int] = None) -> List[str]:
        """Delete abandoned lobbies and long-finished rooms."""
        if not self.waiting_ttl_ms and not self.finished_ttl_ms:
            return []
        now = self.clock() if now is None else now
        expired = []
        for room in self.rooms():
            with room.lock:
                if (
                    self.waiting_ttl_ms
                    and room.state == RoomState.WAITING
                    and now - room.created_at > self.waiting_ttl_ms
                ):
                    expired.append(room.room_id)
                elif (
                    self.finished_ttl_ms
                    and room.state == RoomState.FINISHED
                    and room.finished_at is not None
                    and now - room.finished_at > self.finished_ttl_ms
                ):
                    expired.append(room.room_id)
        for room_id in expired:
            self.delete_room(room_id)
        if expired:
            self.logger.info(f"[room-purge] removed={len(expired)}")
        return expired
