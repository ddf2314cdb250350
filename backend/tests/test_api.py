def _create_room(client, **fields):
    payload = {
        'available_players': {'home': [{'id': 'p1', 'name': 'Home One'}], 'away': [{'id': 'q1', 'name': 'Away One'}]},
        'original_roster': {'home': [{'id': 'p1', 'name': 'Home One'}], 'away': [{'id': 'q1', 'name': 'Away One'}]},
    }
    payload.update(fields)
    res = client.post('/api/rooms', json=payload)
    assert res.status_code == 201
    return res.get_json()


def test_health(client):
    res = client.get('/api/health')
    assert res.status_code == 200
    assert res.get_json()['status'] == 'ok'


def test_create_and_read_room(client):
    room = _create_room(client, code='abcd')
    assert room['code'] == 'ABCD'
    assert room['phase'] == 'SETUP'
    assert room['revision'] == 0

    by_code = client.get('/api/rooms/abcd').get_json()
    by_id = client.get(f"/api/rooms/id/{room['id']}").get_json()
    assert by_code == by_id == room


def test_generated_code_and_duplicates(client):
    room = _create_room(client)
    assert len(room['code']) == 4 and room['code'].isalpha()
    res = client.post('/api/rooms', json={'code': room['code']})
    assert res.status_code == 409
    assert res.get_json()['error'] == 'store_write_conflict'
    res = client.post('/api/rooms', json={'code': 'AB1'})
    assert res.status_code == 400


def test_missing_room_is_404(client):
    res = client.get('/api/rooms/ZZZZ')
    assert res.status_code == 404
    assert res.get_json() == {'error': 'room_not_found', 'message': 'No room with code ZZZZ'}
    assert client.get('/api/rooms/id/999').status_code == 404


def test_patch_room_bumps_revision_and_checks_expected(client):
    room = _create_room(client)
    res = client.patch(f"/api/rooms/{room['id']}", json={'ante': 5})
    assert res.status_code == 200
    assert res.get_json()['ante'] == 5
    assert res.get_json()['revision'] == 1

    ok = client.patch(f"/api/rooms/{room['id']}", json={'pot': 10, 'expected_revision': 1})
    assert ok.status_code == 200
    assert ok.get_json()['revision'] == 2

    stale = client.patch(f"/api/rooms/{room['id']}", json={'pot': 99, 'expected_revision': 1})
    assert stale.status_code == 409
    assert stale.get_json()['error'] == 'store_write_conflict'
    assert client.get(f"/api/rooms/id/{room['id']}").get_json()['pot'] == 10


def test_patch_room_rejects_unknown_fields(client):
    room = _create_room(client)
    res = client.patch(f"/api/rooms/{room['id']}", json={'code': 'WXYZ'})
    assert res.status_code == 400
    assert res.get_json()['error'] == 'invalid_action'
    res = client.patch(f"/api/rooms/{room['id']}", json={'phase': 'OVERTIME'})
    assert res.status_code == 400


def test_participant_insert_is_idempotent(client):
    room = _create_room(client)
    body = {'id': 'f3a1c9d2-0000-4000-8000-000000000001', 'name': 'Alice', 'balance': 0}
    first = client.post(f"/api/rooms/{room['id']}/participants", json=body)
    again = client.post(f"/api/rooms/{room['id']}/participants", json=body)
    assert first.status_code == 201
    assert again.status_code == 200
    assert first.get_json() == again.get_json()
    listed = client.get(f"/api/rooms/{room['id']}/participants").get_json()
    assert [p['name'] for p in listed] == ['Alice']


def test_participant_needs_a_name(client):
    room = _create_room(client)
    res = client.post(f"/api/rooms/{room['id']}/participants", json={'id': 'x'})
    assert res.status_code == 400


def test_update_and_delete_participant(client):
    room = _create_room(client)
    pid = client.post(f"/api/rooms/{room['id']}/participants", json={'name': 'Bob'}).get_json()['id']
    res = client.patch(f'/api/participants/{pid}', json={'balance': 7, 'roster_home': [{'id': 'p1', 'name': 'Home One'}]})
    assert res.status_code == 200
    assert res.get_json()['balance'] == 7
    assert res.get_json()['roster_home'][0]['id'] == 'p1'
    assert client.patch(f'/api/participants/{pid}', json={'room_id': 3, 'secret': 1}).status_code == 400

    assert client.delete(f'/api/participants/{pid}').status_code == 204
    res = client.delete(f'/api/participants/{pid}')
    assert res.status_code == 404
    assert res.get_json()['error'] == 'participant_not_found'


def test_actions_endpoint_runs_the_state_machine(client):
    room = _create_room(client)
    url = f"/api/rooms/{room['id']}/actions"
    admin = {'is_admin': True}
    for name in ('Alice', 'Bob'):
        res = client.post(url, json={'verb': 'join_room', 'params': {'name': name}})
        assert res.status_code == 200

    res = client.post(url, json={'verb': 'start_draft', 'params': {}, 'actor': {'participant_id': 'nobody'}})
    assert res.status_code == 403

    state = client.post(url, json={'verb': 'start_draft', 'actor': admin}).get_json()
    assert state['room']['phase'] == 'DRAFT'
    assert state['room']['pot'] == 4
    assert [p['balance'] for p in state['participants']] == [-2, -2]
    picker = state['room']['draft_order'][0]

    res = client.post(url, json={'verb': 'make_pick', 'actor': {'participant_id': picker},
                                 'params': {'participant_id': picker, 'player_id': 'p1', 'side': 'home'}})
    assert res.status_code == 200
    body = res.get_json()
    assert body['room']['available_players']['home'] == []
    mine = next(p for p in body['participants'] if p['id'] == picker)
    assert mine['roster_home'][0]['id'] == 'p1'

    res = client.post(url, json={'verb': 'make_pick', 'actor': admin,
                                 'params': {'participant_id': picker, 'player_id': 'p1', 'side': 'home'}})
    assert res.status_code == 409
    assert res.get_json()['error'] == 'player_unavailable'


def test_actions_endpoint_validates_verb(client):
    room = _create_room(client)
    res = client.post(f"/api/rooms/{room['id']}/actions", json={})
    assert res.status_code == 400
    res = client.post(f"/api/rooms/{room['id']}/actions", json={'verb': 'teleport'})
    assert res.status_code == 400
    assert res.get_json()['error'] == 'invalid_action'
