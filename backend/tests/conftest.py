import os
import random
import sys
from urllib.parse import urlsplit

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

# Ensure the backend root (containing the `potdraft` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from potdraft import create_app, db, socketio
from potdraft.services.draft.machine import Rules, new_room
from potdraft.services.draft.state import AWAY, HOME, ParticipantState, Player, Team
from potdraft.services.rosters import StaticRosterProvider
from potdraft.sync.engine import SyncEngine
from potdraft.sync.identity import IdentityManager
from potdraft.sync.store import RecordStore

STORE_URL = 'http://store.test'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = '*'
    DEFAULT_ANTE = 2
    MIN_PARTICIPANTS = 2
    JOIN_BUY_IN = 0
    ALLOW_CALLER_BUY_IN = False
    ROSTER_PROVIDER = 'static'


class FlaskTestAdapter(BaseAdapter):
    """Route requests made through a requests.Session into the Flask test client."""

    def __init__(self, test_client):
        super().__init__()
        self.test_client = test_client

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        url = urlsplit(request.url)
        path = url.path + (f'?{url.query}' if url.query else '')
        result = self.test_client.open(
            path,
            method=request.method,
            data=request.body,
            headers={'Content-Type': request.headers.get('Content-Type', 'application/json')},
        )
        response = requests.Response()
        response.status_code = result.status_code
        response._content = result.get_data()
        response.headers = CaseInsensitiveDict(result.headers)
        response.encoding = 'utf-8'
        response.url = request.url
        response.reason = result.status
        response.request = request
        return response

    def close(self):
        pass


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import potdraft.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def store(client):
    session = requests.Session()
    session.mount(STORE_URL, FlaskTestAdapter(client))
    return RecordStore(STORE_URL, timeout=1.0, session=session)


@pytest.fixture()
def rosters():
    return StaticRosterProvider()


@pytest.fixture()
def make_engine(store, rosters, tmp_path):
    """Build sync engines that share one store; each gets its own identity context."""
    def factory(context='host', seed=7, **kwargs):
        identities = IdentityManager(tmp_path / 'identity', context)
        return SyncEngine(store, identities, rosters, rules=Rules(), rng=random.Random(seed), **kwargs)
    return factory


# ---- plain state machine fixtures ----

X_PLAYERS = [Player(id=f'p{i}', name=f'Home Player {i}', position='WR', jersey_number=i) for i in (1, 2, 3)]
Y_PLAYERS = [Player(id=f'q{i}', name=f'Away Player {i}', position='RB', jersey_number=i) for i in (1, 2, 3)]


def make_room(*names, ante=2, home=None, away=None):
    """A SETUP room with teams X vs Y and one participant per name (id == lowercase name)."""
    snap = new_room(
        'ABCD',
        {HOME: Team(id='X', name='Team X'), AWAY: Team(id='Y', name='Team Y')},
        {HOME: home or X_PLAYERS, AWAY: away or Y_PLAYERS},
        Rules(default_ante=ante),
    )
    snap.room.id = 1
    for name in names:
        snap.participants.append(ParticipantState(id=name.lower(), name=name, room_id=1))
    return snap


@pytest.fixture()
def room_factory():
    return make_room
