from flask import Blueprint, jsonify, current_app

main = Blueprint('main', __name__)


def _registry():
    return current_app.extensions['relay']['registry']


@main.route('/')
def index():
    return jsonify({'message': 'Server is live!'})


@main.route('/health')
def health():
    return jsonify({'status': 'healthy', 'rooms': len(_registry())})


@main.route('/api/rooms/<string:code>', methods=['GET'])
def get_room(code):
    """Read-only room summary; codes are matched case-insensitively."""
    room = _registry().get(code)
    if room is None:
        return jsonify({'error': 'Room not found'}), 404
    return jsonify(room.summary())
