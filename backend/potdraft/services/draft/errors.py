"""Error taxonomy shared by the state machine, the store API and the sync client."""


class DraftError(Exception):
    """Base class. `code` is the stable wire name, `status` the HTTP status."""

    code = 'draft_error'
    status = 400
    default_message = 'Action rejected'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self):
        return {'error': self.code, 'message': self.message}


class RoomNotFound(DraftError):
    code = 'room_not_found'
    status = 404
    default_message = 'Room not found'


class ParticipantNotFound(DraftError):
    code = 'participant_not_found'
    status = 404
    default_message = 'Participant not found'


class RosterImportError(DraftError):
    code = 'roster_import_error'
    status = 502
    default_message = 'Could not import roster'


class Forbidden(DraftError):
    code = 'forbidden'
    status = 403
    default_message = 'Only the commissioner can do that'


class InsufficientParticipants(DraftError):
    code = 'insufficient_participants'
    status = 400
    default_message = 'Not enough participants to start'


class PlayerUnavailable(DraftError):
    code = 'player_unavailable'
    status = 409
    default_message = 'Someone else just took that player'


class NotYourTurn(DraftError):
    code = 'not_your_turn'
    status = 409
    default_message = 'It is not your turn to pick'


class RosterSlotFull(DraftError):
    code = 'roster_slot_full'
    status = 409
    default_message = 'You already have a player from that team'


class NoOwner(DraftError):
    code = 'no_owner'
    status = 400
    default_message = 'Nobody has that player'


class InvalidAction(DraftError):
    code = 'invalid_action'
    status = 400
    default_message = 'Invalid action'


class StoreError(DraftError):
    code = 'store_error'
    status = 502
    default_message = 'Record store unavailable'


class StoreTimeout(StoreError):
    code = 'store_timeout'
    status = 504
    default_message = 'Record store timed out, retry or resync'


class StoreWriteConflict(StoreError):
    code = 'store_write_conflict'
    status = 409
    default_message = 'Record was changed by someone else'


_BY_CODE = {
    cls.code: cls
    for cls in (
        DraftError, RoomNotFound, ParticipantNotFound, RosterImportError, Forbidden,
        InsufficientParticipants, PlayerUnavailable, NotYourTurn,
        RosterSlotFull, NoOwner, InvalidAction, StoreError, StoreTimeout,
        StoreWriteConflict,
    )
}


def error_from_payload(payload, status=None) -> DraftError:
    """Rebuild the exception a store/API error response describes."""
    payload = payload or {}
    cls = _BY_CODE.get(payload.get('error'))
    if cls is None:
        if status == 404:
            cls = RoomNotFound
        elif status == 409:
            cls = StoreWriteConflict
        else:
            cls = StoreError
    return cls(payload.get('message'))
