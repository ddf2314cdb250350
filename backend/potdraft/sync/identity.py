"""
Local session identity, one JSON document per browsing context.

    <root>/<context>/session.json
    {"last_room": "ABCD",
     "rooms": {"ABCD": {"participant_id": "...", "is_admin": true, "name": "Sam"}}}

Identity is trusted as stored. There is no server-side check of the admin
flag, so anyone with access to the file can elevate themselves.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

from potdraft.services.draft.errors import Forbidden, RoomNotFound

logger = logging.getLogger(__name__)


@dataclass
class Identity:
    room_code: str
    participant_id: Optional[str] = None
    is_admin: bool = False
    name: Optional[str] = None

    def to_dict(self):
        data = asdict(self)
        data.pop('room_code')
        return data


class IdentityManager:
    def __init__(self, root_dir, context_id: str = 'default', allow_admin_elevation: bool = True):
        self.path = Path(root_dir).expanduser() / context_id / 'session.json'
        self.allow_admin_elevation = allow_admin_elevation

    def _load(self) -> dict:
        if not self.path.exists():
            return {'last_room': None, 'rooms': {}}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return {'last_room': None, 'rooms': {}}
        data.setdefault('last_room', None)
        data.setdefault('rooms', {})
        return data

    def _save(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self.path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    @property
    def last_room(self) -> Optional[str]:
        return self._load().get('last_room')

    def identity_for(self, room_code: str) -> Optional[Identity]:
        code = room_code.upper()
        entry = self._load()['rooms'].get(code)
        if entry is None:
            return None
        return Identity(
            room_code=code,
            participant_id=entry.get('participant_id'),
            is_admin=bool(entry.get('is_admin')),
            name=entry.get('name'),
        )

    def establish_identity(self, room_code: str, participant_id: Optional[str], is_admin: bool,
                           name: Optional[str] = None) -> Identity:
        """Store who we are in `room_code` and make it the room to recover."""
        identity = Identity(room_code=room_code.upper(), participant_id=participant_id,
                            is_admin=bool(is_admin), name=name)
        data = self._load()
        data['rooms'][identity.room_code] = identity.to_dict()
        data['last_room'] = identity.room_code
        self._save(data)
        logger.info(f"Identity for room {identity.room_code}: participant={participant_id} admin={identity.is_admin}")
        return identity

    def recover_identity(self, store) -> Optional[Identity]:
        """Identity for the last room, or None when that room is gone."""
        code = self.last_room
        if not code:
            return None
        identity = self.identity_for(code)
        if identity is None:
            self.forget(code)
            return None
        try:
            store.get_room_by_code(code)
        except RoomNotFound:
            logger.info(f"Room {code} no longer exists, clearing its identity")
            self.forget(code)
            return None
        return identity

    def elevate_to_admin(self, room_code: str) -> Identity:
        if not self.allow_admin_elevation:
            raise Forbidden('Admin elevation is disabled')
        current = self.identity_for(room_code) or Identity(room_code=room_code.upper())
        logger.warning(f"Elevating local identity to admin for room {current.room_code}")
        return self.establish_identity(current.room_code, current.participant_id, True, current.name)

    def forget(self, room_code: str) -> None:
        code = room_code.upper()
        data = self._load()
        data['rooms'].pop(code, None)
        if data.get('last_room') == code:
            data['last_room'] = None
        self._save(data)
