def _flush(sio_client):
    sio_client.get_received('/ws')


def _changes(sio_client):
    return [pkt['args'][0] for pkt in sio_client.get_received('/ws') if pkt['name'] == 'change']


def test_socket_connect_and_ping(sio_client):
    assert sio_client.is_connected('/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'connected' for pkt in received)

    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert {'name': 'pong', 'args': [{'n': 1}], 'namespace': '/ws'} in received


def test_subscribe_requires_room_id(sio_client):
    _flush(sio_client)
    sio_client.emit('subscribe', {}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert received[0]['name'] == 'error'


def test_writes_are_pushed_to_subscribers(client, sio_client):
    room = client.post('/api/rooms', json={'code': 'PUSH'}).get_json()
    _flush(sio_client)
    sio_client.emit('subscribe', {'room_id': room['id']}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert received[0]['name'] == 'subscribed'
    assert received[0]['args'][0] == {'room': f"room:{room['id']}"}

    client.patch(f"/api/rooms/{room['id']}", json={'ante': 3})
    pid = client.post(f"/api/rooms/{room['id']}/participants", json={'name': 'Alice'}).get_json()['id']
    client.patch(f'/api/participants/{pid}', json={'balance': 4})
    client.delete(f'/api/participants/{pid}')

    events = _changes(sio_client)
    assert [(e['table'], e['event_type']) for e in events] == [
        ('rooms', 'update'),
        ('participants', 'insert'),
        ('participants', 'update'),
        ('participants', 'delete'),
    ]
    assert events[0]['record']['ante'] == 3
    assert events[0]['record']['revision'] == 1
    assert events[2]['record']['balance'] == 4
    assert events[3]['record'] == {'id': pid, 'room_id': room['id']}


def test_unsubscribed_clients_hear_nothing(client, sio_client):
    room = client.post('/api/rooms', json={'code': 'QUIE'}).get_json()
    sio_client.emit('subscribe', {'room_id': room['id']}, namespace='/ws')
    sio_client.emit('unsubscribe', {'room_id': room['id']}, namespace='/ws')
    _flush(sio_client)
    client.patch(f"/api/rooms/{room['id']}", json={'pot': 2})
    assert _changes(sio_client) == []


def test_other_rooms_are_not_broadcast(client, sio_client):
    mine = client.post('/api/rooms', json={'code': 'MINE'}).get_json()
    other = client.post('/api/rooms', json={'code': 'OTHR'}).get_json()
    sio_client.emit('subscribe', {'room_id': mine['id']}, namespace='/ws')
    _flush(sio_client)
    client.patch(f"/api/rooms/{other['id']}", json={'pot': 2})
    assert _changes(sio_client) == []
