"""Draft-and-score rules: pure state, transitions and record conversion."""
from .errors import (  # noqa: F401
    DraftError, Forbidden, InsufficientParticipants, InvalidAction, NoOwner,
    NotYourTurn, ParticipantNotFound, PlayerUnavailable, RoomNotFound,
    RosterImportError, RosterSlotFull, StoreError, StoreTimeout,
    StoreWriteConflict,
)
from .machine import Action, Rules, apply, new_room, partition_errors  # noqa: F401
from .state import Actor, Snapshot  # noqa: F401
