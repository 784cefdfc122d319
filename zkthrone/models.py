from zkthrone import db
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
import secrets
import threading

JOIN_CODE_LENGTH = 6


class RoomState(str, Enum):
    WAITING = 'WAITING'
    COUNTDOWN = 'COUNTDOWN'
    IN_PROGRESS = 'IN_PROGRESS'
    FINISHED = 'FINISHED'


def generate_room_id() -> str:
    """Generate an 8 character uppercase hex room id."""
    return secrets.token_hex(4).upper()


def join_code_for(room_id: str) -> str:
    return room_id[:JOIN_CODE_LENGTH]


def display_name_for(wallet: str) -> str:
    return f"Player_{wallet[:4]}"


@dataclass
class Player:
    wallet: str
    display_name: str
    is_host: bool
    is_ready: bool
    joined_at: int
    # Hidden until the room finishes
    score: int = 0
    completed_rounds: List[int] = field(default_factory=list)
    last_solution_hash: Optional[str] = None
    last_completed_at: Optional[int] = None

    def has_completed(self, round_number: int) -> bool:
        return round_number in self.completed_rounds

    def to_public_dict(self):
        return {
            'wallet': self.wallet,
            'displayName': self.display_name,
            'isHost': self.is_host,
            'isReady': self.is_ready,
            'joinedAt': self.joined_at,
        }


@dataclass
class LeaderboardEntry:
    wallet: str
    display_name: str
    score: int
    accuracy: float
    rank: int

    def to_dict(self):
        return {
            'wallet': self.wallet,
            'displayName': self.display_name,
            'score': self.score,
            'accuracy': self.accuracy,
            'rank': self.rank,
        }


@dataclass
class Room:
    room_id: str
    host_wallet: str
    max_players: int
    total_rounds: int
    created_at: int
    countdown_ms: int = 15000
    players: List[Player] = field(default_factory=list)
    state: RoomState = RoomState.WAITING
    countdown_started_at: Optional[int] = None
    current_round: int = 0  # 0 = not started
    finished_at: Optional[int] = None
    hidden_leaderboard: List[LeaderboardEntry] = field(default_factory=list)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def join_code(self) -> str:
        return join_code_for(self.room_id)

    @property
    def countdown_ends_at(self) -> Optional[int]:
        if self.countdown_started_at is None:
            return None
        return self.countdown_started_at + self.countdown_ms

    def find_player(self, wallet: str) -> Optional[Player]:
        for p in self.players:
            if p.wallet == wallet:
                return p
        return None

    def submitted_count(self) -> int:
        return sum(1 for p in self.players if p.has_completed(self.current_round))

    def all_submitted(self) -> bool:
        return all(p.has_completed(self.current_round) for p in self.players)

    def to_public_dict(self):
        # Scores, completed rounds and the leaderboard never leave through here
        return {
            'roomId': self.room_id,
            'joinCode': self.join_code,
            'hostWallet': self.host_wallet,
            'maxPlayers': self.max_players,
            'totalRounds': self.total_rounds,
            'players': [p.to_public_dict() for p in self.players],
            'state': self.state.value,
            'currentRound': self.current_round,
            'createdAt': self.created_at,
            'countdownEndsAt': self.countdown_ends_at,
        }

    def to_summary_dict(self):
        return {
            'roomId': self.room_id,
            'joinCode': self.join_code,
            'hostWallet': self.host_wallet[:8] + '...',
            'playerCount': len(self.players),
            'maxPlayers': self.max_players,
            'totalRounds': self.total_rounds,
            'createdAt': self.created_at,
            'status': 'waiting',
        }


class WalletNonce(db.Model):
    __tablename__ = 'wallet_nonce'
    wallet = db.Column(db.String(128), primary_key=True)
    nonce = db.Column(db.BigInteger, nullable=False, default=0)

    def to_dict(self):
        return {
            'player': self.wallet,
            'nonce': self.nonce,
        }
