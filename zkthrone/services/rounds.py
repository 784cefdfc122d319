from dataclasses import dataclass
from typing import Optional
import logging

from zkthrone.errors import InvalidState, NotInRoom
from zkthrone.models import Room, RoomState
from zkthrone.services.lifecycle import RoomLifecycle
from zkthrone.services.rooms import RoomRegistry


@dataclass(frozen=True)
class RecordOutcome:
    round_complete: bool
    already_submitted: bool = False
    game_finished: bool = False


@dataclass(frozen=True)
class RoundStatus:
    current_round: int
    total_players: int
    submitted_count: int
    all_submitted: bool

    def to_dict(self):
        # Counts only: which players submitted stays private
        return {
            'currentRound': self.current_round,
            'totalPlayers': self.total_players,
            'submittedCount': self.submitted_count,
            'allSubmitted': self.all_submitted,
        }


class RoundCoordinator:
    """Room-wide round barrier.

    The shared round counter moves only once every seated player has an
    accepted submission for it. The last round's barrier finishes the game.
    """

    def __init__(self, registry: RoomRegistry, lifecycle: RoomLifecycle, logger: Optional[logging.Logger] = None):
        self.registry = registry
        self.lifecycle = lifecycle
        self.logger = logger or registry.logger

    def _check(self, room: Room, wallet: str, round_label: int):
        if room.state != RoomState.IN_PROGRESS:
            raise InvalidState('Game not in progress')
        player = room.find_player(wallet)
        if player is None:
            raise NotInRoom(wallet)
        if player.has_completed(round_label):
            return player, True
        if round_label != room.current_round:
            raise InvalidState(f'Round {round_label} is not the active round (current: {room.current_round})')
        return player, False

    def check_accepting(self, room_id: str, wallet: str, round_label: int) -> bool:
        """Fail fast before proof work. Returns True for a repeat submission."""
        with self.registry.locked(room_id) as room:
            _, repeat = self._check(room, wallet, round_label)
            return repeat

    def record_accepted_submission(
        self, room_id: str, wallet: str, round_label: int, solution_hash: Optional[str] = None
    ) -> RecordOutcome:
        with self.registry.locked(room_id) as room:
            player, repeat = self._check(room, wallet, round_label)
            if repeat:
                self.logger.info(f"[submit-repeat] room={room_id} player={wallet} round={round_label}")
                return RecordOutcome(round_complete=False, already_submitted=True)

            player.score += 1
            player.completed_rounds.append(round_label)
            player.last_solution_hash = solution_hash
            player.last_completed_at = self.registry.clock()
            self.logger.info(f"[submit] room={room_id} player={wallet} round={round_label} accepted")

            round_complete = room.all_submitted()
            finished = False
            if round_complete:
                finished = self._advance(room)

        if round_complete:
            self.registry.notify(room_id, 'game_finished' if finished else 'round_advanced')
        return RecordOutcome(round_complete=round_complete, game_finished=finished)

    def _advance(self, room: Room) -> bool:
        prev_round = room.current_round
        if room.current_round >= room.total_rounds:
            self.lifecycle.finish_game(room)
            return True
        room.current_round += 1
        self.logger.info(f"[next_round] room={room.room_id} advance round {prev_round} -> {room.current_round}")
        return False

    def get_round_status(self, room_id: str) -> RoundStatus:
        with self.registry.locked(room_id) as room:
            return RoundStatus(
                current_round=room.current_round,
                total_players=len(room.players),
                submitted_count=room.submitted_count(),
                all_submitted=room.all_submitted(),
            )
