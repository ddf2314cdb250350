import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///potdraft.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = [o for o in os.environ.get('CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173').split(',') if o]
    # Game rules
    DEFAULT_ANTE = int(os.environ.get('DEFAULT_ANTE', '2'))
    MIN_PARTICIPANTS = int(os.environ.get('MIN_PARTICIPANTS', '2'))
    # Balance given to anyone joining by code. Explicit policy, not inferred.
    JOIN_BUY_IN = int(os.environ.get('JOIN_BUY_IN', '0'))
    # When on, a joiner may name their own buy-in instead of JOIN_BUY_IN
    ALLOW_CALLER_BUY_IN = os.environ.get('ALLOW_CALLER_BUY_IN', '0') == '1'
    ROOM_CODE_ATTEMPTS = int(os.environ.get('ROOM_CODE_ATTEMPTS', '5'))
    # Sync client
    STORE_URL = os.environ.get('STORE_URL', 'http://localhost:5000')
    STORE_TIMEOUT_SEC = float(os.environ.get('STORE_TIMEOUT_SEC', '5'))
    SYNC_MODE = os.environ.get('SYNC_MODE', 'push')  # push | poll
    POLL_INTERVAL_SEC = float(os.environ.get('POLL_INTERVAL_SEC', '1.0'))
    PICK_RETRY_LIMIT = int(os.environ.get('PICK_RETRY_LIMIT', '3'))
    # Rosters
    ROSTER_PROVIDER = os.environ.get('ROSTER_PROVIDER', 'espn')  # espn | static
    ESPN_BASE_URL = os.environ.get('ESPN_BASE_URL', 'https://site.api.espn.com/apis/site/v2/sports/football/nfl')
    # Local identity (one directory per browsing context)
    IDENTITY_DIR = os.environ.get('IDENTITY_DIR') or os.path.join(os.path.expanduser('~'), '.potdraft')
    IDENTITY_CONTEXT = os.environ.get('IDENTITY_CONTEXT', 'default')
    # Forced host recovery. Trusts the client; there is no server check.
    ALLOW_ADMIN_ELEVATION = os.environ.get('ALLOW_ADMIN_ELEVATION', '1') == '1'
