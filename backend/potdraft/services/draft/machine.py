"""Room/draft/scoring state machine.

`apply(snapshot, action, actor)` is the single transition function. It
works on a deep copy and either returns the next snapshot or raises a
`DraftError` without touching its input, so the same call serves the
optimistic path in the sync client and the authoritative path in the
store API.

Which draft segment follows a completed one is decided from the explicit
`draft_round_kind` / `draft_exit_phase` tags set when the draft started,
never from the shape of the rosters:

    INITIAL + HOME complete  -> AWAY segment, order reversed (snake)
    pending catch-up queued  -> CATCHUP segment for the queued side
    otherwise                -> draft_exit_phase (REVIEW or LIVE)
"""
import copy
import inspect
import random
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..settings import config_getter
from .errors import (
    Forbidden, InsufficientParticipants, InvalidAction, NoOwner,
    NotYourTurn, PlayerUnavailable, RosterImportError, RosterSlotFull,
)
from .state import (
    ANTE, AWAY, CATCHUP, DRAFT, HOME, INITIAL, LIVE, PAUSED, REDRAFT, REVIEW,
    SETUP, SIDES, Actor, LastWinner, ParticipantState, PendingCatchUp, Player,
    RoomState, Snapshot, draft_phase_for, other_side,
)

ROSTER_EDIT_PHASES = (SETUP, PAUSED, REVIEW)
MAX_NAME_LENGTH = 24


@dataclass
class Rules:
    default_ante: int = 2
    min_participants: int = 2
    join_buy_in: int = 0
    allow_caller_buy_in: bool = False

    @classmethod
    def from_config(cls, config) -> 'Rules':
        get = config_getter(config)
        return cls(
            default_ante=int(get('DEFAULT_ANTE', 2)),
            min_participants=int(get('MIN_PARTICIPANTS', 2)),
            join_buy_in=int(get('JOIN_BUY_IN', 0)),
            allow_caller_buy_in=bool(get('ALLOW_CALLER_BUY_IN', False)),
        )


@dataclass
class Action:
    verb: str
    params: dict = field(default_factory=dict)


@dataclass
class _Context:
    actor: Actor
    rules: Rules
    rng: random.Random
    clock: Callable[[], float]


_HANDLERS = {}


def _action(verb, admin=False):
    def register(fn):
        _HANDLERS[verb] = (fn, admin)
        return fn
    return register


def verbs() -> List[str]:
    return sorted(_HANDLERS)


def apply(snapshot: Snapshot, action: Action, actor: Actor, rules: Optional[Rules] = None,
          rng: Optional[random.Random] = None, clock: Optional[Callable[[], float]] = None) -> Snapshot:
    entry = _HANDLERS.get(action.verb)
    if entry is None:
        raise InvalidAction(f'Unknown action {action.verb!r}')
    handler, admin_only = entry
    if admin_only and not actor.is_admin:
        raise Forbidden()
    ctx = _Context(actor=actor, rules=rules or Rules(), rng=rng or random.Random(), clock=clock or time.time)
    nxt = snapshot.copy()
    params = dict(action.params or {})
    try:
        inspect.signature(handler).bind(ctx, nxt, **params)
    except TypeError as exc:
        raise InvalidAction(f'Bad parameters for {action.verb}: {exc}') from exc
    handler(ctx, nxt, **params)
    return nxt


def new_room(code: str, teams, rosters, rules: Optional[Rules] = None) -> Snapshot:
    """Build a fresh SETUP room. Refuses to start with an empty pool."""
    rules = rules or Rules()
    for side in SIDES:
        if not rosters.get(side):
            raise RosterImportError(f'No players available for the {side} team')
    room = RoomState(
        code=code.upper(),
        phase=SETUP,
        teams={side: teams.get(side) for side in SIDES},
        available_players={side: copy.deepcopy(list(rosters[side])) for side in SIDES},
        original_roster={side: copy.deepcopy(list(rosters[side])) for side in SIDES},
        ante=rules.default_ante,
        pot=0,
    )
    return Snapshot(room=room, participants=[])


def partition_errors(snapshot: Snapshot) -> List[str]:
    """Players of an original roster not found exactly once in pool + rosters."""
    errors = []
    room = snapshot.room
    for side in SIDES:
        seen = {}
        for p in room.available_players.get(side, []):
            seen[p.id] = seen.get(p.id, 0) + 1
        for participant in snapshot.participants:
            for p in participant.roster.get(side, []):
                seen[p.id] = seen.get(p.id, 0) + 1
        for p in room.original_roster.get(side, []):
            count = seen.get(p.id, 0)
            if count != 1:
                errors.append(f'{side}:{p.id} appears {count} times')
    return errors


# ---- helpers ----

def _side(side) -> str:
    value = str(side or '').lower()
    if value not in SIDES:
        raise InvalidAction(f'Unknown side {side!r}')
    return value


def _require_phase(room: RoomState, allowed, error=InvalidAction) -> None:
    if room.phase not in allowed:
        raise error(f'Not allowed while the room is in {room.phase}')


def _require_participant(snap: Snapshot, participant_id) -> ParticipantState:
    participant = snap.participant(participant_id)
    if participant is None:
        raise InvalidAction(f'Unknown participant {participant_id!r}')
    return participant


def _clean_name(name) -> str:
    n = (name or '').strip()
    if not n or len(n) > MAX_NAME_LENGTH:
        raise InvalidAction('Name must be 1-24 characters')
    if '<' in n or '>' in n or any(ord(ch) < 32 for ch in n):
        raise InvalidAction('Name contains invalid characters')
    return n


def _int(value, label) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidAction(f'{label} must be a whole number') from exc


def _charge_ante(snap: Snapshot) -> None:
    room = snap.room
    for p in snap.participants:
        p.balance -= room.ante
    room.pot += room.ante * len(snap.participants)


def _move_to_roster(room: RoomState, participant: ParticipantState, side: str, player: Player) -> None:
    room.available_players[side] = [p for p in room.available_players[side] if p.id != player.id]
    participant.roster[side] = participant.roster.get(side, []) + [player]


def _return_to_pool(room: RoomState, side: str, players) -> None:
    if not players:
        return
    pool = room.available_players[side] + list(players)
    rank = {p.id: i for i, p in enumerate(room.original_roster[side])}
    pool.sort(key=lambda p: rank.get(p.id, len(rank)))
    room.available_players[side] = pool


def _queue_catch_up(room: RoomState, participant_id: str, side: str) -> None:
    pending = room.pending_catch_up
    if pending is None:
        room.pending_catch_up = PendingCatchUp(participant_ids=[participant_id], side=side)
    elif pending.side != side:
        raise InvalidAction('A catch-up draft for the other team is already queued')
    elif participant_id not in pending.participant_ids:
        pending.participant_ids.append(participant_id)


def _start_segment(room: RoomState, side: str, order, kind: str) -> None:
    room.phase = DRAFT
    room.draft_phase = draft_phase_for(side)
    room.draft_order = list(order)
    room.current_turn_index = 0
    room.draft_round_kind = kind


def _complete_round(room: RoomState) -> None:
    if room.draft_round_kind == INITIAL and room.draft_side == HOME:
        _start_segment(room, AWAY, reversed(room.draft_order), INITIAL)
    elif room.pending_catch_up is not None:
        pending = room.pending_catch_up
        room.pending_catch_up = None
        _start_segment(room, pending.side, pending.participant_ids, CATCHUP)
    else:
        room.phase = room.draft_exit_phase or LIVE
        room.current_turn_index = 0


def _settle_turn(snap: Snapshot) -> None:
    """Skip pickers who already hold a player on the side being drafted.

    Reaching the end of the order completes the segment; the next segment
    is settled the same way until someone can actually pick.
    """
    room = snap.room
    while room.phase == DRAFT:
        side = room.draft_side
        while room.current_turn_index < len(room.draft_order):
            picker = snap.participant(room.draft_order[room.current_turn_index])
            if picker is not None and not picker.has_player_on(side):
                return
            room.current_turn_index += 1
        _complete_round(room)


# ---- participants ----

@_action('join_room')
def join_room(ctx, snap, participant_id, name, buy_in=None):
    name = _clean_name(name)
    if snap.participant(participant_id) is not None:
        return
    balance = ctx.rules.join_buy_in
    if buy_in is not None and ctx.rules.allow_caller_buy_in:
        balance = _int(buy_in, 'Buy-in')
    snap.participants.append(
        ParticipantState(id=participant_id, name=name, room_id=snap.room.id, balance=balance)
    )
    room = snap.room
    if room.phase == DRAFT:
        side = room.draft_side
        room.draft_order.append(participant_id)
        # The initial HOME order is reversed into the AWAY order, so the
        # joiner gets both sides without a catch-up.
        if not (room.draft_round_kind == INITIAL and side == HOME):
            _queue_catch_up(room, participant_id, other_side(side))


@_action('add_participant', admin=True)
def add_participant(ctx, snap, participant_id, name, initial_balance=0):
    _require_phase(snap.room, ROSTER_EDIT_PHASES, Forbidden)
    name = _clean_name(name)
    if snap.participant(participant_id) is not None:
        return
    snap.participants.append(ParticipantState(
        id=participant_id,
        name=name,
        room_id=snap.room.id,
        balance=_int(initial_balance, 'Balance'),
    ))


@_action('remove_participant', admin=True)
def remove_participant(ctx, snap, participant_id):
    room = snap.room
    _require_phase(room, ROSTER_EDIT_PHASES, Forbidden)
    participant = _require_participant(snap, participant_id)
    for side in SIDES:
        _return_to_pool(room, side, participant.roster.get(side, []))
    if participant_id in room.draft_order:
        idx = room.draft_order.index(participant_id)
        del room.draft_order[idx]
        if idx < room.current_turn_index:
            room.current_turn_index -= 1
    pending = room.pending_catch_up
    if pending is not None and participant_id in pending.participant_ids:
        pending.participant_ids.remove(participant_id)
        if not pending.participant_ids:
            room.pending_catch_up = None
    snap.participants = [p for p in snap.participants if p.id != participant_id]


@_action('update_participant_name')
def update_participant_name(ctx, snap, participant_id, name):
    if not ctx.actor.is_admin and ctx.actor.participant_id != participant_id:
        raise Forbidden('You can only rename yourself')
    _require_participant(snap, participant_id).name = _clean_name(name)


@_action('update_player_balance', admin=True)
def update_player_balance(ctx, snap, participant_id, balance):
    _require_participant(snap, participant_id).balance = _int(balance, 'Balance')


@_action('update_ante', admin=True)
def update_ante(ctx, snap, ante):
    ante = _int(ante, 'Ante')
    if ante <= 0:
        raise InvalidAction('Ante must be positive')
    snap.room.ante = ante


# ---- pool editing ----

@_action('remove_player_from_pool', admin=True)
def remove_player_from_pool(ctx, snap, player_id, side):
    room = snap.room
    side = _side(side)
    _require_phase(room, (SETUP,))
    if room.find_available(side, player_id) is None:
        raise PlayerUnavailable('That player is not in the pool')
    room.available_players[side] = [p for p in room.available_players[side] if p.id != player_id]
    room.original_roster[side] = [p for p in room.original_roster[side] if p.id != player_id]


@_action('add_player_to_pool', admin=True)
def add_player_to_pool(ctx, snap, player, side):
    room = snap.room
    side = _side(side)
    _require_phase(room, (SETUP,))
    if not isinstance(player, Player):
        try:
            player = Player.from_dict(player)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidAction('Player needs an id and a name') from exc
    if any(p.id == player.id for p in room.original_roster[side]):
        raise InvalidAction(f'Player {player.id} is already on the {side} roster')
    room.available_players[side].append(copy.deepcopy(player))
    room.original_roster[side].append(copy.deepcopy(player))


# ---- drafting ----

@_action('start_draft', admin=True)
def start_draft(ctx, snap):
    room = snap.room
    _require_phase(room, (SETUP, ANTE))
    if len(snap.participants) < ctx.rules.min_participants:
        raise InsufficientParticipants(
            f'At least {ctx.rules.min_participants} participants are required to start'
        )
    _charge_ante(snap)
    order = snap.participant_ids
    ctx.rng.shuffle(order)
    room.pending_catch_up = None
    room.draft_exit_phase = REVIEW
    _start_segment(room, HOME, order, INITIAL)
    _settle_turn(snap)


@_action('make_pick')
def make_pick(ctx, snap, participant_id, player_id, side):
    room = snap.room
    side = _side(side)
    _require_phase(room, (DRAFT, LIVE))
    if not ctx.actor.is_admin and ctx.actor.participant_id != participant_id:
        raise Forbidden('You can only draft for yourself')
    participant = _require_participant(snap, participant_id)
    player = room.find_available(side, player_id)
    if player is None:
        raise PlayerUnavailable()

    if room.phase == LIVE:
        # Free-agent pickup: no turn order, no roster cap
        _move_to_roster(room, participant, side, player)
        return

    if side != room.draft_side:
        raise InvalidAction(f'The {room.draft_side} team is being drafted')
    idx = room.current_turn_index
    order = room.draft_order
    takes_turn = True
    if participant_id != room.current_picker_id:
        if not ctx.actor.is_admin:
            raise NotYourTurn()
        if participant_id in order[idx + 1:]:
            # Admin override: pull the picker forward into the current slot
            j = order.index(participant_id, idx + 1)
            order[idx], order[j] = order[j], order[idx]
        else:
            takes_turn = False
    if participant.has_player_on(side):
        raise RosterSlotFull()
    _move_to_roster(room, participant, side, player)
    if takes_turn:
        room.current_turn_index += 1
    _settle_turn(snap)


@_action('admin_assign_player', admin=True)
def admin_assign_player(ctx, snap, participant_id, player_id, side):
    room = snap.room
    side = _side(side)
    if room.phase == SETUP:
        raise InvalidAction('Edit the pool instead while the room is in SETUP')
    participant = _require_participant(snap, participant_id)
    player = room.find_available(side, player_id)
    if player is None:
        raise PlayerUnavailable()
    if room.phase != LIVE and participant.has_player_on(side):
        raise RosterSlotFull(f'{participant.name} already has a {side} player')
    _move_to_roster(room, participant, side, player)
    if room.phase == DRAFT:
        _settle_turn(snap)


@_action('start_game', admin=True)
def start_game(ctx, snap):
    _require_phase(snap.room, (REVIEW,))
    snap.room.phase = LIVE


# ---- scoring ----

@_action('record_score', admin=True)
def record_score(ctx, snap, player_id, side):
    room = snap.room
    side = _side(side)
    _require_phase(room, (LIVE,))
    winner, scorer = None, None
    for participant in snap.participants:
        for p in participant.roster.get(side, []):
            if p.id == player_id:
                winner, scorer = participant, p
                break
        if winner is not None:
            break
    if winner is None:
        raise NoOwner()

    pot_won = room.pot
    winner.balance += pot_won
    winner.winnings += 1
    for participant in snap.participants:
        participant.roster[side] = []
    room.available_players[side] = copy.deepcopy(room.original_roster[side])
    room.pot = 0
    room.phase = PAUSED
    room.draft_phase = draft_phase_for(side)
    others = [pid for pid in snap.participant_ids if pid != winner.id]
    ctx.rng.shuffle(others)
    # Winner picks last in the redraft
    room.draft_order = others + [winner.id]
    room.current_turn_index = 0
    room.pending_catch_up = None
    room.last_winner = LastWinner(
        participant_id=winner.id,
        participant_name=winner.name,
        scoring_player_name=scorer.name,
        pot_won=pot_won,
        timestamp=ctx.clock(),
    )


@_action('start_next_round', admin=True)
def start_next_round(ctx, snap):
    room = snap.room
    _require_phase(room, (PAUSED,))
    side = room.draft_side
    _charge_ante(snap)
    for participant in snap.participants:
        participant.roster[side] = []
    room.available_players[side] = copy.deepcopy(room.original_roster[side])

    known = set(snap.participant_ids)
    order = [pid for pid in room.draft_order if pid in known]
    newcomers = [pid for pid in snap.participant_ids if pid not in order]
    winner_id = room.last_winner.participant_id if room.last_winner else None
    if winner_id in order:
        order = [pid for pid in order if pid != winner_id] + newcomers + [winner_id]
    else:
        order = order + newcomers

    other = other_side(side)
    behind = [pid for pid in order if not snap.participant(pid).has_player_on(other)]
    room.pending_catch_up = PendingCatchUp(participant_ids=behind, side=other) if behind else None
    room.draft_exit_phase = LIVE
    _start_segment(room, side, order, REDRAFT)
    _settle_turn(snap)
