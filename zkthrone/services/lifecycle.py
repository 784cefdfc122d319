"""Room lifecycle: WAITING -> COUNTDOWN -> IN_PROGRESS -> FINISHED.

No transition leads back to WAITING. The COUNTDOWN -> IN_PROGRESS step is
deferred through the CountdownScheduler and carries the countdown start
instant as its token, so a stale timer can tell it no longer applies.
"""

from dataclasses import dataclass
from typing import List, Optional
import logging

from zkthrone.errors import Forbidden, InsufficientPlayers, InvalidState, RoomNotFound, ValidationError
from zkthrone.models import LeaderboardEntry, Room, RoomState
from zkthrone.services.rooms import RoomRegistry
from zkthrone.services.scheduler import CountdownScheduler


@dataclass(frozen=True)
class CountdownStarted:
    countdown_ends_at: int

    def to_dict(self):
        return {'countdownEndsAt': self.countdown_ends_at}


@dataclass(frozen=True)
class FinalResults:
    winner: Optional[LeaderboardEntry]
    leaderboard: List[LeaderboardEntry]
    total_rounds: int

    def to_dict(self):
        return {
            'winner': self.winner.to_dict() if self.winner else None,
            'leaderboard': [e.to_dict() for e in self.leaderboard],
            'totalRounds': self.total_rounds,
        }


def rank_players(room: Room) -> List[LeaderboardEntry]:
    """Score descending, then earliest final completion, then join order."""
    order = sorted(
        enumerate(room.players),
        key=lambda item: (
            -item[1].score,
            item[1].last_completed_at is None,
            item[1].last_completed_at or 0,
            item[0],
        ),
    )
    return [
        LeaderboardEntry(
            wallet=p.wallet,
            display_name=p.display_name,
            score=p.score,
            accuracy=(p.score / room.total_rounds) * 100,
            rank=rank,
        )
        for rank, (_, p) in enumerate(order, start=1)
    ]


class RoomLifecycle:
    def __init__(
        self,
        registry: RoomRegistry,
        scheduler: CountdownScheduler,
        min_players: int = 2,
        logger: Optional[logging.Logger] = None,
    ):
        self.registry = registry
        self.scheduler = scheduler
        self.min_players = min_players
        self.logger = logger or registry.logger

    def start_game(self, room_id: str, requester_wallet: str) -> CountdownStarted:
        if not requester_wallet:
            raise ValidationError('hostWallet required')
        if not isinstance(requester_wallet, str):
            raise ValidationError('hostWallet must be a string')
        with self.registry.locked(room_id) as room:
            if room.host_wallet != requester_wallet:
                raise Forbidden('Only host can start game')
            if room.state != RoomState.WAITING:
                raise InvalidState('Game already started')
            if len(room.players) < self.min_players:
                raise InsufficientPlayers(f'Need at least {self.min_players} players to start')
            room.state = RoomState.COUNTDOWN
            room.countdown_started_at = self.registry.clock()
            token = room.countdown_started_at
            ends_at = room.countdown_ends_at
            # Timer is set before the lock is released; if it cannot be set
            # the room never leaves WAITING.
            try:
                self.scheduler.schedule(room_id, token, room.countdown_ms, self.begin_game)
            except Exception:
                room.state = RoomState.WAITING
                room.countdown_started_at = None
                self.logger.exception(f"[timer-error] room={room_id} token={token} could not schedule")
                raise

        self.logger.info(f"[countdown] room={room_id} ends_at={ends_at}")
        self.registry.notify(room_id, 'countdown_started')
        return CountdownStarted(countdown_ends_at=ends_at)

    def begin_game(self, room_id: str, token: Optional[int] = None) -> bool:
        """Deferred transition into play. Returns False when it no longer applies."""
        try:
            with self.registry.locked(room_id) as room:
                if room.state != RoomState.COUNTDOWN:
                    self.logger.info(f"[timer-abort] room={room_id} state={room.state.value}")
                    return False
                if token is not None and room.countdown_started_at != token:
                    self.logger.info(f"[timer-abort] room={room_id} stale token={token}")
                    return False
                room.state = RoomState.IN_PROGRESS
                room.current_round = 1
        except RoomNotFound:
            self.logger.info(f"[timer-abort] room={room_id} gone")
            return False

        self.logger.info(f"[begin] room={room_id} round=1")
        self.registry.notify(room_id, 'game_started')
        return True

    def finish_game(self, room: Room) -> None:
        """Close the room and snapshot the leaderboard. Caller holds room.lock."""
        room.state = RoomState.FINISHED
        room.finished_at = self.registry.clock()
        room.hidden_leaderboard = rank_players(room)
        self.logger.info(f"[finish] room={room.room_id} finished at round={room.current_round}")

    def get_final_results(self, room_id: str) -> FinalResults:
        with self.registry.locked(room_id) as room:
            if room.state != RoomState.FINISHED:
                raise InvalidState('Game not finished yet')
            leaderboard = list(room.hidden_leaderboard)
            return FinalResults(
                winner=leaderboard[0] if leaderboard else None,
                leaderboard=leaderboard,
                total_rounds=room.total_rounds,
            )
