"""Client side of the record store: HTTP calls, change feeds, identity, sync engine."""
from .engine import SyncEngine  # noqa: F401
from .identity import Identity, IdentityManager  # noqa: F401
from .store import RecordStore  # noqa: F401
