"""In-memory shapes the state machine works on.

A `Snapshot` is one room plus its participants. The state machine never
touches the database or the network; the store API and the sync client
convert rows to snapshots with `records.py`.
"""
import copy
from dataclasses import dataclass, field
from typing import Dict, List, Optional

HOME = 'home'
AWAY = 'away'
SIDES = (HOME, AWAY)

# Room phases
SETUP = 'SETUP'
ANTE = 'ANTE'
DRAFT = 'DRAFT'
REVIEW = 'REVIEW'
LIVE = 'LIVE'
PAUSED = 'PAUSED'
PHASES = (SETUP, ANTE, DRAFT, REVIEW, LIVE, PAUSED)

# Draft segment kinds, fixed when a segment starts
INITIAL = 'INITIAL'
REDRAFT = 'REDRAFT'
CATCHUP = 'CATCHUP'
ROUND_KINDS = (INITIAL, REDRAFT, CATCHUP)


def draft_phase_for(side: str) -> str:
    return side.upper()


def side_for(draft_phase: str) -> str:
    return draft_phase.lower()


def other_side(side: str) -> str:
    return AWAY if side == HOME else HOME


@dataclass
class Player:
    id: str
    name: str
    position: str = ''
    jersey_number: int = 0

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'position': self.position,
            'jersey_number': self.jersey_number,
        }

    @classmethod
    def from_dict(cls, data) -> 'Player':
        return cls(
            id=str(data['id']),
            name=data.get('name', ''),
            position=data.get('position', ''),
            jersey_number=int(data.get('jersey_number') or 0),
        )


@dataclass
class Team:
    id: str
    name: str
    color: str = '#333333'
    abbreviation: str = ''

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'color': self.color,
            'abbreviation': self.abbreviation,
        }

    @classmethod
    def from_dict(cls, data) -> 'Team':
        return cls(
            id=str(data['id']),
            name=data.get('name', ''),
            color=data.get('color') or '#333333',
            abbreviation=data.get('abbreviation', ''),
        )


@dataclass
class PendingCatchUp:
    participant_ids: List[str]
    side: str

    def to_dict(self):
        return {'participant_ids': list(self.participant_ids), 'side': self.side}

    @classmethod
    def from_dict(cls, data) -> Optional['PendingCatchUp']:
        if not data:
            return None
        return cls(participant_ids=list(data.get('participant_ids') or []), side=data['side'])


@dataclass
class LastWinner:
    participant_id: str
    participant_name: str
    scoring_player_name: str
    pot_won: int
    timestamp: float

    def to_dict(self):
        return {
            'participant_id': self.participant_id,
            'participant_name': self.participant_name,
            'scoring_player_name': self.scoring_player_name,
            'pot_won': self.pot_won,
            'timestamp': self.timestamp,
        }

    @classmethod
    def from_dict(cls, data) -> Optional['LastWinner']:
        if not data:
            return None
        return cls(
            participant_id=data['participant_id'],
            participant_name=data.get('participant_name', ''),
            scoring_player_name=data.get('scoring_player_name', ''),
            pot_won=int(data.get('pot_won') or 0),
            timestamp=float(data.get('timestamp') or 0),
        )


def _empty_sides():
    return {HOME: [], AWAY: []}


@dataclass
class RoomState:
    code: str
    id: Optional[int] = None
    phase: str = SETUP
    teams: Dict[str, Optional[Team]] = field(default_factory=lambda: {HOME: None, AWAY: None})
    available_players: Dict[str, List[Player]] = field(default_factory=_empty_sides)
    original_roster: Dict[str, List[Player]] = field(default_factory=_empty_sides)
    ante: int = 2
    pot: int = 0
    draft_phase: str = 'HOME'
    draft_order: List[str] = field(default_factory=list)
    current_turn_index: int = 0
    pending_catch_up: Optional[PendingCatchUp] = None
    last_winner: Optional[LastWinner] = None
    draft_round_kind: Optional[str] = None
    draft_exit_phase: Optional[str] = None
    revision: int = 0

    @property
    def draft_side(self) -> str:
        return side_for(self.draft_phase)

    @property
    def current_picker_id(self) -> Optional[str]:
        if self.phase != DRAFT:
            return None
        if 0 <= self.current_turn_index < len(self.draft_order):
            return self.draft_order[self.current_turn_index]
        return None

    def find_available(self, side: str, player_id: str) -> Optional[Player]:
        for p in self.available_players.get(side, []):
            if p.id == player_id:
                return p
        return None


@dataclass
class ParticipantState:
    id: str
    name: str
    room_id: Optional[int] = None
    balance: int = 0
    winnings: int = 0
    is_admin: bool = False
    roster: Dict[str, List[Player]] = field(default_factory=_empty_sides)

    def holds(self, side: str, player_id: str) -> bool:
        return any(p.id == player_id for p in self.roster.get(side, []))

    def has_player_on(self, side: str) -> bool:
        return bool(self.roster.get(side))


@dataclass
class Snapshot:
    room: RoomState
    participants: List[ParticipantState] = field(default_factory=list)

    def copy(self) -> 'Snapshot':
        return copy.deepcopy(self)

    def participant(self, participant_id) -> Optional[ParticipantState]:
        for p in self.participants:
            if p.id == participant_id:
                return p
        return None

    @property
    def participant_ids(self) -> List[str]:
        return [p.id for p in self.participants]


@dataclass(frozen=True)
class Actor:
    """Who is asking. Comes from the local identity, never from shared rows."""

    participant_id: Optional[str] = None
    is_admin: bool = False
