from flask import Blueprint, jsonify, request, current_app
from zkthrone.errors import CoordinatorError, RoomNotFound


rooms = Blueprint('rooms', __name__)


def _coordinator():
    return current_app.extensions['zkthrone']


def _error(exc: CoordinatorError, status: int):
    current_app.logger.info(f"[rejected] {request.method} {request.path} code={exc.code} error={exc.message}")
    return jsonify(exc.to_dict()), status


@rooms.route('/list', methods=['GET'])
def list_rooms():
    public_rooms = _coordinator().registry.list_public_rooms()
    return jsonify({'success': True, 'rooms': public_rooms})


@rooms.route('/create', methods=['POST'])
def create_room():
    data = request.get_json(silent=True) or {}
    try:
        created = _coordinator().registry.create_room(
            data.get('hostWallet'),
            max_players=data.get('maxPlayers'),
            total_rounds=data.get('totalRounds'),
        )
    except CoordinatorError as exc:
        return _error(exc, 400)
    payload = created.to_dict()
    payload.update({'success': True, 'message': f'Room created! Share code: {created.join_code}'})
    return jsonify(payload)


@rooms.route('/join', methods=['POST'])
def join_room():
    data = request.get_json(silent=True) or {}
    registry = _coordinator().registry
    room_id = data.get('roomId')
    try:
        if not room_id and data.get('joinCode'):
            room_id = registry.find_by_join_code(data['joinCode'])
        result = registry.join_room(room_id, data.get('playerWallet'))
        room_state = registry.get_room_state(room_id)
    except CoordinatorError as exc:
        return _error(exc, 400)
    payload = result.to_dict()
    payload.update({
        'success': True,
        'message': 'Already in room' if result.already_joined else 'Joined room',
        'roomState': room_state,
    })
    return jsonify(payload)


@rooms.route('/code/<string:join_code>', methods=['GET'])
def get_room_by_code(join_code):
    registry = _coordinator().registry
    try:
        return jsonify(registry.get_room_state(registry.find_by_join_code(join_code)))
    except RoomNotFound as exc:
        return _error(exc, 404)


@rooms.route('/<string:room_id>/state', methods=['GET'])
def get_room_state(room_id):
    try:
        return jsonify(_coordinator().registry.get_room_state(room_id))
    except CoordinatorError as exc:
        return _error(exc, 404)


@rooms.route('/<string:room_id>/start', methods=['POST'])
def start_game(room_id):
    data = request.get_json(silent=True) or {}
    try:
        started = _coordinator().lifecycle.start_game(room_id, data.get('hostWallet'))
    except CoordinatorError as exc:
        return _error(exc, 400)
    payload = started.to_dict()
    seconds = _coordinator().registry.countdown_ms // 1000
    payload.update({'success': True, 'message': f'Game starting in {seconds} seconds!'})
    return jsonify(payload)


@rooms.route('/<string:room_id>/submit-proof', methods=['POST'])
def submit_proof(room_id):
    data = request.get_json(silent=True) or {}
    try:
        result = _coordinator().pipeline.submit_proof(
            room_id,
            data.get('playerWallet'),
            data.get('roundId'),
            data.get('solution'),
        )
    except CoordinatorError as exc:
        return _error(exc, 400)
    return jsonify(result.to_dict())


@rooms.route('/<string:room_id>/round-status', methods=['GET'])
def round_status(room_id):
    try:
        return jsonify(_coordinator().rounds.get_round_status(room_id).to_dict())
    except CoordinatorError as exc:
        return _error(exc, 404)


@rooms.route('/<string:room_id>/results', methods=['GET'])
def final_results(room_id):
    try:
        return jsonify(_coordinator().lifecycle.get_final_results(room_id).to_dict())
    except CoordinatorError as exc:
        return _error(exc, 400)


@rooms.route('/<string:room_id>', methods=['DELETE'])
def delete_room(room_id):
    _coordinator().registry.delete_room(room_id)
    return jsonify({'success': True, 'message': 'Room deleted'})
