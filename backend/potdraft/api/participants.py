from flask import Blueprint, jsonify, request, current_app

from potdraft import db
from potdraft.api.rooms import check_participant_fields
from potdraft.models import Participant
from potdraft.socketio_events import broadcast_change
from potdraft.services.draft.errors import ParticipantNotFound

participants = Blueprint('participants', __name__)


def _get_participant(participant_id: str) -> Participant:
    participant = db.session.get(Participant, participant_id)
    if participant is None:
        raise ParticipantNotFound(f"Unknown participant {participant_id}")
    return participant


@participants.route('/<string:participant_id>', methods=['GET'])
def get_participant(participant_id):
    return jsonify(_get_participant(participant_id).to_dict())


@participants.route('/<string:participant_id>', methods=['PATCH'])
def update_participant(participant_id):
    data = request.get_json(silent=True) or {}
    data.pop('id', None)
    data.pop('room_id', None)
    check_participant_fields(data)
    participant = _get_participant(participant_id)
    participant.apply_changes(data)
    db.session.commit()
    record = participant.to_dict()
    current_app.logger.info(f"[participant-update] participant={participant_id} fields={sorted(data)}")
    broadcast_change(participant.room_id, 'participants', 'update', record)
    return jsonify(record)


@participants.route('/<string:participant_id>', methods=['DELETE'])
def delete_participant(participant_id):
    participant = _get_participant(participant_id)
    room_id = participant.room_id
    db.session.delete(participant)
    db.session.commit()
    current_app.logger.info(f"[participant-delete] room={room_id} participant={participant_id}")
    broadcast_change(room_id, 'participants', 'delete', {'id': participant_id, 'room_id': room_id})
    return '', 204
