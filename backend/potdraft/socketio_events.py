from flask_socketio import join_room, leave_room, emit
from potdraft import socketio
from flask import current_app


def room_channel(room_id) -> str:
    return f"room:{room_id}"


def broadcast_change(room_id, table: str, event_type: str, record: dict) -> None:
    """Push one row change to every client subscribed to the room.

    Payload: {table: rooms|participants, event_type: insert|update|delete, record}
    """
    socketio.emit(
        'change',
        {'table': table, 'event_type': event_type, 'record': record},
        to=room_channel(room_id),
        namespace='/ws',
    )


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect():
    # Subscriptions are dropped with the socket; rooms outlive their clients
    pass


def handle_subscribe(data):
    room_id = (data or {}).get('room_id')
    if room_id is None:
        emit('error', {'message': 'room_id is required'})
        return
    channel = room_channel(room_id)
    join_room(channel)
    current_app.logger.debug(f"[subscribe] {channel}")
    emit('subscribed', {'room': channel})


def handle_unsubscribe(data):
    room_id = (data or {}).get('room_id')
    if room_id is None:
        emit('error', {'message': 'room_id is required'})
        return
    channel = room_channel(room_id)
    leave_room(channel)
    emit('unsubscribed', {'room': channel})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('disconnect', handle_disconnect, namespace='/ws')
    socketio.on_event('subscribe', handle_subscribe, namespace='/ws')
    socketio.on_event('unsubscribe', handle_unsubscribe, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')

    if testing:
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('disconnect', handle_disconnect, namespace='/')
        socketio.on_event('subscribe', handle_subscribe, namespace='/')
        socketio.on_event('unsubscribe', handle_unsubscribe, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
