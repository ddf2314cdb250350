from flask import Blueprint, jsonify, request, current_app
from sqlalchemy.exc import IntegrityError
import re
import uuid

from potdraft import db
from potdraft.models import Room, Participant, generate_room_code
from potdraft.socketio_events import broadcast_change
from potdraft.services.draft import machine
from potdraft.services.draft.errors import InvalidAction, RoomNotFound, StoreWriteConflict
from potdraft.services.draft.records import (
    ROOM_MUTABLE_FIELDS, PARTICIPANT_MUTABLE_FIELDS, participant_changes, room_changes,
    snapshot_from_records,
)
from potdraft.services.draft.state import Actor, PHASES, ROUND_KINDS

rooms = Blueprint('rooms', __name__)

_CODE_RE = re.compile(r'^[A-Z]{4}$')
# Verbs that create a participant row need a client-side id
_CREATES_PARTICIPANT = ('join_room', 'add_participant')


def _get_room(room_id: int) -> Room:
    room = db.session.get(Room, room_id)
    if room is None:
        raise RoomNotFound(f"No room with id {room_id}")
    return room


def _room_participants(room_id: int):
    return (Participant.query.filter_by(room_id=room_id)
            .order_by(Participant.created_at, Participant.id).all())


def _check_room_fields(fields: dict) -> None:
    unknown = set(fields) - set(ROOM_MUTABLE_FIELDS)
    if unknown:
        raise InvalidAction(f"Unknown room field(s): {', '.join(sorted(unknown))}")
    if 'phase' in fields and fields['phase'] not in PHASES:
        raise InvalidAction(f"Unknown phase {fields['phase']!r}")
    if 'draft_phase' in fields and fields['draft_phase'] not in ('HOME', 'AWAY'):
        raise InvalidAction(f"Unknown draft phase {fields['draft_phase']!r}")
    if fields.get('draft_round_kind') not in (None,) + ROUND_KINDS:
        raise InvalidAction(f"Unknown round kind {fields['draft_round_kind']!r}")


def check_participant_fields(fields: dict) -> None:
    unknown = set(fields) - set(PARTICIPANT_MUTABLE_FIELDS)
    if unknown:
        raise InvalidAction(f"Unknown participant field(s): {', '.join(sorted(unknown))}")


def write_room(room: Room, fields: dict, expected_revision=None) -> None:
    """Stage a partial room update and bump its revision.

    With `expected_revision`, the bump is a conditional UPDATE so two writers
    holding the same revision cannot both win.
    """
    if expected_revision is not None:
        try:
            expected_revision = int(expected_revision)
        except (TypeError, ValueError):
            raise InvalidAction('expected_revision must be a whole number')
        claimed = (Room.query.filter_by(id=room.id, revision=expected_revision)
                   .update({Room.revision: Room.revision + 1}, synchronize_session=False))
        if not claimed:
            db.session.rollback()
            raise StoreWriteConflict(f"Room {room.id} is no longer at revision {expected_revision}")
    else:
        room.revision = Room.revision + 1
    room.apply_changes(fields)


@rooms.route('', methods=['POST'])
def create_room():
    data = request.get_json(silent=True) or {}
    code = (data.pop('code', None) or '').strip().upper()
    data.pop('id', None)
    data.pop('revision', None)
    _check_room_fields(data)
    if not code:
        code = generate_room_code(taken=lambda c: Room.query.filter_by(code=c).first() is not None)
    if not _CODE_RE.match(code):
        raise InvalidAction('Room code must be four letters')
    if Room.query.filter_by(code=code).first() is not None:
        raise StoreWriteConflict(f"Room code {code} is already taken")

    room = Room(code=code)
    room.apply_changes(data)
    db.session.add(room)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise StoreWriteConflict(f"Room code {code} is already taken")
    current_app.logger.info(f"[room-create] room={room.id} code={room.code}")
    return jsonify(room.to_dict()), 201


@rooms.route('/<string:code>', methods=['GET'])
def get_room_by_code(code):
    room = Room.query.filter_by(code=code.upper()).first()
    if room is None:
        raise RoomNotFound(f"No room with code {code.upper()}")
    return jsonify(room.to_dict())


@rooms.route('/id/<int:room_id>', methods=['GET'])
def get_room(room_id):
    return jsonify(_get_room(room_id).to_dict())


@rooms.route('/<int:room_id>', methods=['PATCH'])
def update_room(room_id):
    data = request.get_json(silent=True) or {}
    expected = data.pop('expected_revision', None)
    _check_room_fields(data)
    room = _get_room(room_id)
    write_room(room, data, expected_revision=expected)
    db.session.commit()
    record = room.to_dict()
    current_app.logger.info(f"[room-update] room={room_id} fields={sorted(data)} revision={record['revision']}")
    broadcast_change(room_id, 'rooms', 'update', record)
    return jsonify(record)


@rooms.route('/<int:room_id>/participants', methods=['GET'])
def list_participants(room_id):
    _get_room(room_id)
    return jsonify([p.to_dict() for p in _room_participants(room_id)])


@rooms.route('/<int:room_id>/participants', methods=['POST'])
def create_participant(room_id):
    data = request.get_json(silent=True) or {}
    _get_room(room_id)
    participant_id = str(data.pop('id', None) or uuid.uuid4())
    data.pop('room_id', None)
    check_participant_fields(data)
    if not (data.get('name') or '').strip():
        raise InvalidAction('Participant name is required')

    existing = db.session.get(Participant, participant_id)
    if existing is not None:
        if existing.room_id != room_id:
            raise StoreWriteConflict(f"Participant {participant_id} belongs to another room")
        # Double submission: hand back the row that already exists
        return jsonify(existing.to_dict()), 200

    participant = Participant(id=participant_id, room_id=room_id)
    participant.apply_changes(data)
    db.session.add(participant)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        existing = db.session.get(Participant, participant_id)
        if existing is None or existing.room_id != room_id:
            raise StoreWriteConflict(f"Participant {participant_id} could not be created")
        return jsonify(existing.to_dict()), 200
    record = participant.to_dict()
    current_app.logger.info(f"[participant-create] room={room_id} participant={participant_id}")
    broadcast_change(room_id, 'participants', 'insert', record)
    return jsonify(record), 201


@rooms.route('/<int:room_id>/actions', methods=['POST'])
def run_action(room_id):
    """Run one state machine action server-side and write the resulting diff."""
    data = request.get_json(silent=True) or {}
    verb = data.get('verb')
    if not verb:
        raise InvalidAction('verb is required')
    params = dict(data.get('params') or {})
    if verb in _CREATES_PARTICIPANT:
        params.setdefault('participant_id', str(uuid.uuid4()))
    actor_data = data.get('actor') or {}
    actor = Actor(participant_id=actor_data.get('participant_id'), is_admin=bool(actor_data.get('is_admin')))

    room = _get_room(room_id)
    members = _room_participants(room_id)
    before = snapshot_from_records(room.to_dict(), [p.to_dict() for p in members])
    after = machine.apply(before, machine.Action(verb, params), actor,
                          rules=machine.Rules.from_config(current_app.config))

    fields = room_changes(before.room, after.room)
    inserts, updates, deletes = participant_changes(before, after)
    by_id = {p.id: p for p in members}
    write_room(room, fields, expected_revision=before.room.revision)
    for rec in inserts:
        participant = Participant(id=rec['id'], room_id=room_id)
        participant.apply_changes(rec)
        db.session.add(participant)
    for pid, changed in updates.items():
        by_id[pid].apply_changes(changed)
    for pid in deletes:
        db.session.delete(by_id[pid])
    db.session.commit()

    room_record = room.to_dict()
    participant_records = [p.to_dict() for p in _room_participants(room_id)]
    current_app.logger.info(
        f"[action] room={room_id} verb={verb} actor={actor.participant_id} revision={room_record['revision']}"
    )
    broadcast_change(room_id, 'rooms', 'update', room_record)
    records_by_id = {r['id']: r for r in participant_records}
    for rec in inserts:
        broadcast_change(room_id, 'participants', 'insert', records_by_id[rec['id']])
    for pid in updates:
        broadcast_change(room_id, 'participants', 'update', records_by_id[pid])
    for pid in deletes:
        broadcast_change(room_id, 'participants', 'delete', {'id': pid, 'room_id': room_id})
    return jsonify({'room': room_record, 'participants': participant_records})
