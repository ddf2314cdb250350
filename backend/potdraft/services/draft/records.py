"""Row <-> snapshot conversion and field-scoped diffs.

Records are the plain dicts the store API speaks. Diffs only ever name
columns that changed so a writer never overwrites fields it did not touch.
"""
from typing import Dict, List, Tuple

from .state import (
    SIDES, HOME, AWAY, LastWinner, ParticipantState, PendingCatchUp, Player,
    RoomState, Snapshot, Team,
)

ROOM_MUTABLE_FIELDS = (
    'phase', 'ante', 'pot', 'draft_phase', 'current_turn_index', 'draft_order',
    'teams', 'available_players', 'original_roster', 'pending_catch_up',
    'last_winner', 'draft_round_kind', 'draft_exit_phase',
)

PARTICIPANT_MUTABLE_FIELDS = (
    'name', 'balance', 'winnings', 'is_admin', 'roster_home', 'roster_away',
)


def _players_by_side(mapping):
    return {side: [p.to_dict() for p in mapping.get(side, [])] for side in SIDES}


def _players_from_side_map(data):
    data = data or {}
    return {side: [Player.from_dict(p) for p in (data.get(side) or [])] for side in SIDES}


def room_to_record(room: RoomState) -> dict:
    return {
        'id': room.id,
        'code': room.code,
        'phase': room.phase,
        'ante': room.ante,
        'pot': room.pot,
        'draft_phase': room.draft_phase,
        'current_turn_index': room.current_turn_index,
        'draft_order': list(room.draft_order),
        'teams': {side: (room.teams[side].to_dict() if room.teams.get(side) else None) for side in SIDES},
        'available_players': _players_by_side(room.available_players),
        'original_roster': _players_by_side(room.original_roster),
        'pending_catch_up': room.pending_catch_up.to_dict() if room.pending_catch_up else None,
        'last_winner': room.last_winner.to_dict() if room.last_winner else None,
        'draft_round_kind': room.draft_round_kind,
        'draft_exit_phase': room.draft_exit_phase,
        'revision': room.revision,
    }


def room_from_record(record: dict) -> RoomState:
    teams = record.get('teams') or {}
    return RoomState(
        id=record.get('id'),
        code=record['code'],
        phase=record.get('phase') or 'SETUP',
        teams={side: (Team.from_dict(teams[side]) if teams.get(side) else None) for side in SIDES},
        available_players=_players_from_side_map(record.get('available_players')),
        original_roster=_players_from_side_map(record.get('original_roster')),
        ante=int(record.get('ante') or 0),
        pot=int(record.get('pot') or 0),
        draft_phase=record.get('draft_phase') or 'HOME',
        draft_order=list(record.get('draft_order') or []),
        current_turn_index=int(record.get('current_turn_index') or 0),
        pending_catch_up=PendingCatchUp.from_dict(record.get('pending_catch_up')),
        last_winner=LastWinner.from_dict(record.get('last_winner')),
        draft_round_kind=record.get('draft_round_kind'),
        draft_exit_phase=record.get('draft_exit_phase'),
        revision=int(record.get('revision') or 0),
    )


def participant_to_record(participant: ParticipantState) -> dict:
    return {
        'id': participant.id,
        'room_id': participant.room_id,
        'name': participant.name,
        'balance': participant.balance,
        'winnings': participant.winnings,
        'is_admin': participant.is_admin,
        'roster_home': [p.to_dict() for p in participant.roster.get(HOME, [])],
        'roster_away': [p.to_dict() for p in participant.roster.get(AWAY, [])],
    }


def participant_from_record(record: dict) -> ParticipantState:
    return ParticipantState(
        id=str(record['id']),
        room_id=record.get('room_id'),
        name=record.get('name', ''),
        balance=int(record.get('balance') or 0),
        winnings=int(record.get('winnings') or 0),
        is_admin=bool(record.get('is_admin')),
        roster={
            HOME: [Player.from_dict(p) for p in (record.get('roster_home') or [])],
            AWAY: [Player.from_dict(p) for p in (record.get('roster_away') or [])],
        },
    )


def snapshot_from_records(room_record: dict, participant_records: List[dict]) -> Snapshot:
    return Snapshot(
        room=room_from_record(room_record),
        participants=[participant_from_record(r) for r in participant_records],
    )


def room_changes(before: RoomState, after: RoomState) -> dict:
    old = room_to_record(before)
    new = room_to_record(after)
    return {k: new[k] for k in ROOM_MUTABLE_FIELDS if old[k] != new[k]}


def participant_changes(before: Snapshot, after: Snapshot) -> Tuple[List[dict], Dict[str, dict], List[str]]:
    """Return (inserts, updates by id, deleted ids) between two snapshots."""
    old = {p.id: participant_to_record(p) for p in before.participants}
    inserts, updates = [], {}
    for p in after.participants:
        rec = participant_to_record(p)
        prev = old.get(p.id)
        if prev is None:
            inserts.append(rec)
            continue
        changed = {k: rec[k] for k in PARTICIPANT_MUTABLE_FIELDS if prev[k] != rec[k]}
        if changed:
            updates[p.id] = changed
    kept = {p.id for p in after.participants}
    deletes = [pid for pid in old if pid not in kept]
    return inserts, updates, deletes
