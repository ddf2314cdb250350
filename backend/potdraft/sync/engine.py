"""
Client-side sync engine.

Applies actions to the local snapshot straight away, then has the record
store run the same action against its own rows in one transaction, and
folds store change events back in. The store writes the room conditionally
on its revision, so two clients grabbing the same player end with one
success and one PlayerUnavailable.
"""

import logging
import random
import string
import time
import uuid
from typing import Dict, Optional

from potdraft.services.draft import machine
from potdraft.services.draft.errors import (
    DraftError, RoomNotFound, StoreError, StoreWriteConflict,
)
from potdraft.services.draft.records import (
    participant_from_record, room_from_record, room_to_record, snapshot_from_records,
)
from potdraft.services.draft.state import AWAY, HOME, Actor, Snapshot
from potdraft.services.rosters import build_roster_provider
from potdraft.services.settings import config_getter
from potdraft.sync.feed import RESYNC, PollFeed, PushFeed
from potdraft.sync.identity import IdentityManager
from potdraft.sync.store import RecordStore

logger = logging.getLogger(__name__)

PICK_VERBS = ('make_pick', 'admin_assign_player')


class SyncEngine:
    def __init__(self, store: RecordStore, identities: IdentityManager, rosters,
                 rules: Optional[machine.Rules] = None, feed=None, pick_retry_limit: int = 3,
                 code_attempts: int = 5, rng: Optional[random.Random] = None, clock=None):
        self.store = store
        self.identities = identities
        self.rosters = rosters
        self.rules = rules or machine.Rules()
        self.feed = feed
        self.pick_retry_limit = pick_retry_limit
        self.code_attempts = code_attempts
        self.rng = rng or random.Random()
        self.clock = clock or time.time
        self.snapshot: Optional[Snapshot] = None
        self.identity = None

    @classmethod
    def from_config(cls, config, session=None) -> 'SyncEngine':
        get = config_getter(config)
        store = RecordStore(get('STORE_URL'), timeout=float(get('STORE_TIMEOUT_SEC', 5)), session=session)
        identities = IdentityManager(
            get('IDENTITY_DIR'),
            get('IDENTITY_CONTEXT', 'default'),
            allow_admin_elevation=bool(get('ALLOW_ADMIN_ELEVATION', True)),
        )
        if (get('SYNC_MODE', 'push') or 'push').lower() == 'poll':
            feed = PollFeed(store, interval=float(get('POLL_INTERVAL_SEC', 1.0)))
        else:
            feed = PushFeed(get('STORE_URL'), timeout=float(get('STORE_TIMEOUT_SEC', 5)))
        return cls(
            store, identities, build_roster_provider(config),
            rules=machine.Rules.from_config(config),
            feed=feed,
            pick_retry_limit=int(get('PICK_RETRY_LIMIT', 3)),
            code_attempts=int(get('ROOM_CODE_ATTEMPTS', 5)),
        )

    @property
    def actor(self) -> Actor:
        if self.identity is None:
            return Actor()
        return Actor(participant_id=self.identity.participant_id, is_admin=self.identity.is_admin)

    @property
    def room_id(self) -> int:
        if self.snapshot is None:
            raise RoomNotFound('Not in a room')
        return self.snapshot.room.id

    # ---- room lifecycle ----

    def list_games(self):
        return self.rosters.list_games()

    def _new_code(self) -> str:
        return ''.join(self.rng.choice(string.ascii_uppercase) for _ in range(4))

    def create_room(self, home_team_id: str, away_team_id: str, host_name: Optional[str] = None) -> Snapshot:
        """Import both rosters and insert a SETUP room; the creator becomes host."""
        teams = {HOME: self.rosters.team(home_team_id), AWAY: self.rosters.team(away_team_id)}
        rosters = {HOME: self.rosters.import_roster(home_team_id), AWAY: self.rosters.import_roster(away_team_id)}
        for attempt in range(1, self.code_attempts + 1):
            snap = machine.new_room(self._new_code(), teams, rosters, self.rules)
            record = room_to_record(snap.room)
            record.pop('id')
            record.pop('revision')
            try:
                created = self.store.create_room(record)
            except StoreWriteConflict:
                logger.info(f"Room code {snap.room.code} taken (attempt {attempt}/{self.code_attempts})")
                continue
            snap.room = room_from_record(created)
            self.snapshot = snap
            self.identity = self.identities.establish_identity(snap.room.code, None, True, host_name)
            logger.info(f"Created room {snap.room.code} ({teams[AWAY].name} @ {teams[HOME].name})")
            self._start_feed()
            return self.snapshot
        raise StoreWriteConflict(f'No free room code after {self.code_attempts} attempts')

    def join_room(self, code: str, name: str, buy_in=None) -> Snapshot:
        room = self.store.get_room_by_code(code)
        code = room['code']
        previous = self.identities.identity_for(code)
        self.snapshot = self.store.fetch_snapshot(room['id'])
        if previous is not None and self.snapshot.participant(previous.participant_id) is not None:
            # Already in; a second join is a reconnect
            self.identity = previous
            self._start_feed()
            return self.snapshot

        is_admin = bool(previous and previous.is_admin)
        participant_id = str(uuid.uuid4())
        self.identity = None
        self.dispatch('join_room', participant_id=participant_id, name=name, buy_in=buy_in)
        self.identity = self.identities.establish_identity(code, participant_id, is_admin, name)
        self._start_feed()
        return self.snapshot

    def recover(self) -> Optional[Snapshot]:
        """Reattach to the last room this context was in, if it still exists."""
        identity = self.identities.recover_identity(self.store)
        if identity is None:
            return None
        room = self.store.get_room_by_code(identity.room_code)
        self.identity = identity
        self.snapshot = self.store.fetch_snapshot(room['id'])
        if identity.participant_id and self.snapshot.participant(identity.participant_id) is None:
            logger.warning(f"Participant {identity.participant_id} is no longer in room {identity.room_code}")
        self._start_feed()
        return self.snapshot

    def leave_room(self) -> None:
        """Drop the local identity only; the participant row stays."""
        if self.feed is not None:
            self.feed.stop()
        if self.identity is not None:
            self.identities.forget(self.identity.room_code)
        self.identity = None
        self.snapshot = None

    def elevate_to_admin(self):
        if self.snapshot is None:
            raise RoomNotFound('Not in a room')
        self.identity = self.identities.elevate_to_admin(self.snapshot.room.code)
        return self.identity

    def _start_feed(self) -> None:
        if self.feed is not None:
            self.feed.start(self.snapshot.room.id)

    # ---- actions ----

    def dispatch(self, verb: str, **params) -> Snapshot:
        """Apply locally, then have the store run the same action on its own rows.

        The local result shows straight away and the store's result replaces
        it. The store applies the whole action in one transaction against its
        latest rows, so nothing computed from a stale snapshot is written.
        Any rejection rolls the local change back and refetches.
        """
        if self.snapshot is None:
            raise RoomNotFound('Not in a room')
        params = {k: (v.to_dict() if hasattr(v, 'to_dict') else v) for k, v in params.items()}
        if verb in PICK_VERBS:
            # Contended: validate against the freshest rows before showing anything
            self.snapshot = self.store.fetch_snapshot(self.room_id)

        before = self.snapshot
        try:
            self.snapshot = self._apply(before, verb, params)
        except DraftError:
            self._resync_after_error()
            raise

        actor = {'participant_id': self.actor.participant_id, 'is_admin': self.actor.is_admin}
        for attempt in range(1, self.pick_retry_limit + 1):
            try:
                result = self.store.run_action(self.room_id, verb, params, actor)
            except StoreWriteConflict:
                logger.info(f"{verb} lost a write race (attempt {attempt}/{self.pick_retry_limit}), retrying")
                continue
            except DraftError as e:
                logger.warning(f"{verb} rejected by the store, rolling back: {e}")
                self.snapshot = before
                self._resync_after_error()
                raise
            self.snapshot = snapshot_from_records(result['room'], result['participants'])
            self._check_partition(self.snapshot)
            return self.snapshot
        self.snapshot = before
        self._resync_after_error()
        raise StoreWriteConflict(f'Could not complete {verb} after {self.pick_retry_limit} attempts')

    def _apply(self, snap: Snapshot, verb: str, params: Dict) -> Snapshot:
        return machine.apply(snap, machine.Action(verb, params), self.actor,
                             rules=self.rules, rng=self.rng, clock=self.clock)

    # ---- observe / reconcile ----

    def resync(self) -> Snapshot:
        """Replace the local snapshot with the store's rows."""
        fresh = self.store.fetch_snapshot(self.room_id)
        self._check_partition(fresh)
        self.snapshot = fresh
        return self.snapshot

    def _resync_after_error(self) -> None:
        if self.snapshot is None or self.snapshot.room.id is None:
            return
        try:
            self.resync()
        except StoreError as e:
            logger.warning(f"Resync failed, keeping last known state: {e}")

    def _check_partition(self, snap: Snapshot) -> None:
        errors = machine.partition_errors(snap)
        if errors:
            logger.warning(f"Room {snap.room.code} pool/roster mismatch: {'; '.join(errors)}")

    def handle_change(self, event: Dict) -> None:
        """Fold one store change event into the local snapshot.

        Shared fields always come from the store; the local identity never does.
        """
        if self.snapshot is None:
            return
        if event.get('event_type') == RESYNC:
            self.resync()
            return
        table = event.get('table')
        kind = event.get('event_type')
        record = event.get('record') or {}
        if table == 'rooms':
            if record.get('id') != self.snapshot.room.id:
                return
            if int(record.get('revision') or 0) < self.snapshot.room.revision:
                logger.debug(f"Ignoring stale room event at revision {record.get('revision')}")
                return
            self.snapshot.room = room_from_record(record)
            self._check_partition(self.snapshot)
        elif table == 'participants':
            if record.get('room_id') not in (None, self.snapshot.room.id):
                return
            pid = record.get('id')
            others = [p for p in self.snapshot.participants if p.id != pid]
            if kind == 'delete':
                self.snapshot.participants = others
            elif kind in ('insert', 'update'):
                incoming = participant_from_record(record)
                existing = self.snapshot.participant(pid)
                if existing is None:
                    self.snapshot.participants.append(incoming)
                else:
                    idx = self.snapshot.participants.index(existing)
                    self.snapshot.participants[idx] = incoming
            else:
                logger.warning(f"Ignoring unknown participant event {kind!r}")

    def pump(self) -> int:
        """Apply queued feed events on the caller's thread. Returns how many."""
        if self.feed is None:
            return 0
        events = self.feed.drain()
        for event in events:
            self.handle_change(event)
        return len(events)

    def run(self, stop_event, interval: float = 0.1) -> None:
        while not stop_event.is_set():
            try:
                self.pump()
            except StoreError as e:
                logger.warning(f"Change feed unavailable, retrying: {e}")
            time.sleep(interval)
