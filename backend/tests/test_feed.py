from potdraft.sync.feed import RESYNC, PollFeed, PushFeed


class FakeSocketClient:
    """Stands in for socketio.Client: records emits, lets the test fire events."""

    def __init__(self):
        self.connected = False
        self.handlers = {}
        self.emitted = []

    def on(self, event, handler, namespace=None):
        self.handlers[(event, namespace)] = handler

    def connect(self, url, namespaces=None, wait_timeout=None):
        self.connected = True
        self.handlers[('connect', '/ws')]()

    def disconnect(self):
        self.connected = False

    def emit(self, event, data=None, namespace=None):
        self.emitted.append((event, data, namespace))

    def fire(self, event, data):
        self.handlers[(event, '/ws')](data)

    def reconnect(self):
        # socketio.Client fires connect again after its own reconnection
        self.handlers[('connect', '/ws')]()


def test_push_feed_subscribes_and_queues_changes():
    fake = FakeSocketClient()
    feed = PushFeed('http://store.test', client=fake)
    feed.start(7)
    assert fake.emitted == [('subscribe', {'room_id': 7}, '/ws')]

    fake.fire('change', {'table': 'rooms', 'event_type': 'update', 'record': {'id': 7}})
    fake.fire('change', {'table': 'participants', 'event_type': 'delete', 'record': {'id': 'p'}})
    drained = feed.drain()
    assert [e['table'] for e in drained] == ['rooms', 'participants']
    assert feed.drain() == []


def test_push_feed_switches_rooms_and_stops():
    fake = FakeSocketClient()
    feed = PushFeed('http://store.test', client=fake)
    feed.start(1)
    feed.start(2)
    assert fake.emitted[1:] == [('unsubscribe', {'room_id': 1}, '/ws'), ('subscribe', {'room_id': 2}, '/ws')]
    assert feed.drain() == []
    feed.stop()
    assert fake.emitted[-1] == ('unsubscribe', {'room_id': 2}, '/ws')
    assert fake.connected is False


def test_push_feed_resubscribes_and_asks_for_resync_after_reconnect():
    fake = FakeSocketClient()
    feed = PushFeed('http://store.test', client=fake)
    feed.start(5)
    assert feed.drain() == []

    fake.fire('change', {'table': 'rooms', 'event_type': 'update', 'record': {'id': 5}})
    fake.reconnect()
    assert fake.emitted == [('subscribe', {'room_id': 5}, '/ws')] * 2
    assert [e['event_type'] for e in feed.drain()] == ['update', RESYNC]

    # A fresh start after stop is a first connect again
    feed.stop()
    feed.start(6)
    assert feed.drain() == []


class FakeStore:
    def __init__(self):
        self.room = {'id': 3, 'code': 'ABCD', 'revision': 0}
        self.participants = []

    def get_room(self, room_id):
        return dict(self.room)

    def list_participants(self, room_id):
        return [dict(p) for p in self.participants]


def test_poll_feed_diffs_participants():
    store = FakeStore()
    now = {'t': 0.0}
    feed = PollFeed(store, interval=1.0, clock=lambda: now['t'])
    assert feed.drain() == []

    feed.start(3)
    store.participants = [{'id': 'a', 'room_id': 3}]
    events = feed.drain()
    assert [(e['table'], e['event_type']) for e in events] == [('rooms', 'update'), ('participants', 'insert')]

    now['t'] = 1.0
    store.participants = [{'id': 'b', 'room_id': 3}]
    events = feed.drain()
    assert [(e['event_type'], e['record']['id']) for e in events[1:]] == [('insert', 'b'), ('delete', 'a')]
