"""
HTTP client for the record store API.

Every call carries a timeout. Transport failures surface as StoreTimeout or
StoreError; error bodies from the store are turned back into the matching
DraftError subclass so callers handle one exception family.
"""

import logging
from typing import Dict, List, Optional

import requests

from potdraft.services.draft.errors import StoreError, StoreTimeout, error_from_payload
from potdraft.services.draft.records import snapshot_from_records
from potdraft.services.draft.state import Snapshot

logger = logging.getLogger(__name__)


class RecordStore:
    """Client for the /api rooms and participants endpoints."""

    def __init__(self, base_url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, payload: Optional[Dict] = None):
        url = f"{self.base_url}/api{path}"
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.Timeout as e:
            logger.warning(f"{method} {url} timed out after {self.timeout}s")
            raise StoreTimeout() from e
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise StoreError(f"Record store unavailable: {e}") from e

        if response.status_code == 204:
            return None
        try:
            body = response.json()
        except ValueError:
            body = None
        if response.status_code >= 400:
            error = error_from_payload(body if isinstance(body, dict) else None, response.status_code)
            logger.debug(f"{method} {url} -> {response.status_code} {error.code}")
            raise error
        return body

    # ---- rooms ----

    def create_room(self, record: Dict) -> Dict:
        return self._request('POST', '/rooms', record)

    def get_room_by_code(self, code: str) -> Dict:
        return self._request('GET', f'/rooms/{code.upper()}')

    def get_room(self, room_id: int) -> Dict:
        return self._request('GET', f'/rooms/id/{room_id}')

    def update_room(self, room_id: int, fields: Dict, expected_revision: Optional[int] = None) -> Dict:
        payload = dict(fields)
        if expected_revision is not None:
            payload['expected_revision'] = expected_revision
        return self._request('PATCH', f'/rooms/{room_id}', payload)

    # ---- participants ----

    def list_participants(self, room_id: int) -> List[Dict]:
        return self._request('GET', f'/rooms/{room_id}/participants')

    def create_participant(self, room_id: int, record: Dict) -> Dict:
        return self._request('POST', f'/rooms/{room_id}/participants', record)

    def update_participant(self, participant_id: str, fields: Dict) -> Dict:
        return self._request('PATCH', f'/participants/{participant_id}', fields)

    def delete_participant(self, participant_id: str) -> None:
        self._request('DELETE', f'/participants/{participant_id}')

    # ---- helpers ----

    def run_action(self, room_id: int, verb: str, params: Dict, actor: Dict) -> Dict:
        """Have the store run one transition on its own rows and commit the diff at once.

        Returns the resulting `{room, participants}` records.
        """
        return self._request('POST', f'/rooms/{room_id}/actions',
                             {'verb': verb, 'params': params, 'actor': actor})

    def fetch_snapshot(self, room_id: int) -> Snapshot:
        room = self.get_room(room_id)
        return snapshot_from_records(room, self.list_participants(room_id))

    def health(self) -> Dict:
        return self._request('GET', '/health')
