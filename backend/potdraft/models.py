from potdraft import db
from datetime import datetime, timezone
import string
import random

from potdraft.services.draft.records import ROOM_MUTABLE_FIELDS, PARTICIPANT_MUTABLE_FIELDS


def _utcnow():
    return datetime.now(timezone.utc)


def generate_room_code(length=4, taken=None):
    """Generate a short room code of uppercase letters.

    With `taken`, keep drawing until the code is not in use.
    """
    while True:
        code = ''.join(random.choices(string.ascii_uppercase, k=length))
        if taken is None or not taken(code):
            return code


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(4), unique=True, index=True, nullable=False)
    phase = db.Column(db.String(16), default='SETUP', nullable=False)  # SETUP, ANTE, DRAFT, REVIEW, LIVE, PAUSED
    ante = db.Column(db.Integer, default=2, nullable=False)
    pot = db.Column(db.Integer, default=0, nullable=False)
    draft_phase = db.Column(db.String(8), default='HOME', nullable=False)
    current_turn_index = db.Column(db.Integer, default=0, nullable=False)
    draft_order = db.Column(db.JSON, nullable=True)  # list of participant ids
    teams = db.Column(db.JSON, nullable=True)
    available_players = db.Column(db.JSON, nullable=True)
    original_roster = db.Column(db.JSON, nullable=True)
    pending_catch_up = db.Column(db.JSON, nullable=True)
    last_winner = db.Column(db.JSON, nullable=True)
    draft_round_kind = db.Column(db.String(16), nullable=True)
    draft_exit_phase = db.Column(db.String(16), nullable=True)
    # Bumped on every write; lets clients drop stale events and guard picks
    revision = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)
    participants = db.relationship('Participant', back_populates='room', cascade='all, delete-orphan',
                                   order_by='Participant.created_at')

    def apply_changes(self, fields):
        for key in ROOM_MUTABLE_FIELDS:
            if key in fields:
                setattr(self, key, fields[key])

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'phase': self.phase,
            'ante': self.ante,
            'pot': self.pot,
            'draft_phase': self.draft_phase,
            'current_turn_index': self.current_turn_index,
            'draft_order': self.draft_order or [],
            'teams': self.teams or {'home': None, 'away': None},
            'available_players': self.available_players or {'home': [], 'away': []},
            'original_roster': self.original_roster or {'home': [], 'away': []},
            'pending_catch_up': self.pending_catch_up,
            'last_winner': self.last_winner,
            'draft_round_kind': self.draft_round_kind,
            'draft_exit_phase': self.draft_exit_phase,
            'revision': self.revision or 0,
        }


class Participant(db.Model):
    __tablename__ = 'participant'
    id = db.Column(db.String(36), primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    balance = db.Column(db.Integer, default=0, nullable=False)
    winnings = db.Column(db.Integer, default=0, nullable=False)
    is_admin = db.Column(db.Boolean, default=False, nullable=False)
    roster_home = db.Column(db.JSON, nullable=True)
    roster_away = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)
    room = db.relationship('Room', back_populates='participants')

    def apply_changes(self, fields):
        for key in PARTICIPANT_MUTABLE_FIELDS:
            if key in fields:
                setattr(self, key, fields[key])

    def to_dict(self):
        return {
            'id': self.id,
            'room_id': self.room_id,
            'name': self.name,
            'balance': self.balance,
            'winnings': self.winnings,
            'is_admin': self.is_admin,
            'roster_home': self.roster_home or [],
            'roster_away': self.roster_away or [],
        }
