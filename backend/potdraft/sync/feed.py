"""
Change feeds for the sync engine.

Both feeds hand back change events shaped like the store's Socket.IO
payload, {table, event_type, record}, from `drain()` so the engine applies
them on its own thread.

- PushFeed: Socket.IO client subscribed to room:<id> on /ws
- PollFeed: refetches the room and its participants every interval
"""

import logging
import queue
import time
from typing import Dict, List, Optional

import socketio

from potdraft.services.draft.errors import StoreError

logger = logging.getLogger(__name__)

# Queued after a reconnect: events may have been missed, refetch everything
RESYNC = 'resync'


class PushFeed:
    def __init__(self, url: str, namespace: str = '/ws', timeout: float = 5.0,
                 client: Optional[socketio.Client] = None):
        self.url = url
        self.namespace = namespace
        self.timeout = timeout
        self.client = client or socketio.Client(reconnection=True)
        self.room_id = None
        self._has_connected = False
        self._events: 'queue.Queue[Dict]' = queue.Queue()
        self.client.on('connect', self._on_connect, namespace=namespace)
        self.client.on('change', self._on_change, namespace=namespace)

    def _on_connect(self):
        # Also runs after a reconnect; the server forgot our subscription
        if self._has_connected:
            logger.info(f"Change feed reconnected, resyncing room {self.room_id}")
            self._events.put({'table': None, 'event_type': RESYNC, 'record': None})
        self._has_connected = True
        self._subscribe()

    def _subscribe(self):
        if self.room_id is not None:
            self.client.emit('subscribe', {'room_id': self.room_id}, namespace=self.namespace)

    def _on_change(self, data):
        self._events.put(data)

    def start(self, room_id: int) -> None:
        previous, self.room_id = self.room_id, room_id
        if self.client.connected:
            if previous is not None and previous != room_id:
                self.client.emit('unsubscribe', {'room_id': previous}, namespace=self.namespace)
            self._subscribe()
            return
        try:
            self.client.connect(self.url, namespaces=[self.namespace], wait_timeout=self.timeout)
        except socketio.exceptions.ConnectionError as e:
            logger.error(f"Could not connect change feed to {self.url}: {e}")
            raise StoreError(f"Change feed unavailable: {e}") from e
        logger.info(f"Change feed connected for room {room_id}")

    def stop(self) -> None:
        if self.client.connected:
            if self.room_id is not None:
                self.client.emit('unsubscribe', {'room_id': self.room_id}, namespace=self.namespace)
            self.client.disconnect()
        self.room_id = None
        self._has_connected = False

    def drain(self) -> List[Dict]:
        events = []
        while True:
            try:
                events.append(self._events.get_nowait())
            except queue.Empty:
                return events


class PollFeed:
    def __init__(self, store, interval: float = 1.0, clock=time.monotonic):
        self.store = store
        self.interval = interval
        self.clock = clock
        self.room_id = None
        self._last_poll = None
        self._known = set()

    def start(self, room_id: int) -> None:
        self.room_id = room_id
        self._last_poll = None
        self._known = set()

    def stop(self) -> None:
        self.room_id = None

    def drain(self) -> List[Dict]:
        if self.room_id is None:
            return []
        now = self.clock()
        if self._last_poll is not None and now - self._last_poll < self.interval:
            return []
        self._last_poll = now
        room = self.store.get_room(self.room_id)
        records = self.store.list_participants(self.room_id)
        events = [{'table': 'rooms', 'event_type': 'update', 'record': room}]
        seen = set()
        for rec in records:
            seen.add(rec['id'])
            kind = 'update' if rec['id'] in self._known else 'insert'
            events.append({'table': 'participants', 'event_type': kind, 'record': rec})
        for pid in self._known - seen:
            events.append({'table': 'participants', 'event_type': 'delete',
                           'record': {'id': pid, 'room_id': self.room_id}})
        self._known = seen
        return events
