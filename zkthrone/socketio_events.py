from flask import current_app, request
from flask_socketio import join_room, leave_room, emit
from zkthrone import socketio


def room_channel(room_id: str) -> str:
    return f"room:{room_id}"


def emit_room_update(room_id: str, event: str) -> None:
    """Tell watchers a room changed. Carries no scores or submission detail."""
    # Use socketio.emit since this may be called from a background task
    socketio.emit('room_update', {'roomId': room_id, 'event': event}, to=room_channel(room_id), namespace='/ws')


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    # Flask-SocketIO drops the sid from every channel it joined
    current_app.logger.info(f"[ws-disconnect] sid={request.sid}")


def handle_watch_room(data):
    room_id = (data or {}).get('roomId')
    if not room_id:
        emit('error', {'message': 'roomId is required'})
        return
    channel = room_channel(room_id)
    join_room(channel)
    emit('watching', {'room': channel})


def handle_unwatch_room(data):
    room_id = (data or {}).get('roomId')
    if not room_id:
        emit('error', {'message': 'roomId is required'})
        return
    channel = room_channel(room_id)
    leave_room(channel)
    emit('unwatched', {'room': channel})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for ns in namespaces:
        socketio.on_event('connect', handle_connect, namespace=ns)
        socketio.on_event('disconnect', handle_disconnect, namespace=ns)
        socketio.on_event('watch_room', handle_watch_room, namespace=ns)
        socketio.on_event('unwatch_room', handle_unwatch_room, namespace=ns)
        socketio.on_event('ping', handle_ping, namespace=ns)
