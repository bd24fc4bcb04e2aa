import logging

import eventlet
from flask import Flask, current_app, jsonify, request
from flask_socketio import SocketIO, emit

from events import EventType
from room_registry import COMMANDS, RoomRegistry
from utils import get_local_ip, scheduler_for

logger = logging.getLogger(__name__)

socketio = SocketIO()


def deliver(session, event_name, payload):
    """Send one engine event to one player's Socket.IO session."""
    socketio.emit(event_name, payload, to=session)


def create_app(config_object='config.Config'):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.from_prefixed_env('MAHJONG')

    async_mode = app.config['ASYNC_MODE']
    socketio.init_app(app, async_mode=async_mode,
                      cors_allowed_origins=app.config['CORS_ALLOWED_ORIGINS'])
    app.extensions['mahjong_registry'] = RoomRegistry(
        deliver=deliver,
        claim_timeout=app.config['CLAIM_TIMEOUT_SECONDS'],
        scheduler=scheduler_for(async_mode),
    )

    @app.route('/health')
    def health():
        registry = app.extensions['mahjong_registry']
        return jsonify({'status': 'ok', 'tables': len(registry.games)})

    return app


def get_registry():
    return current_app.extensions['mahjong_registry']


@socketio.on('connect')
def handle_connect():
    logger.info("Client connected with SID: %s", request.sid)


@socketio.on('disconnect')
def handle_disconnect(*args):
    logger.info("Client with SID %s disconnected", request.sid)
    get_registry().disconnect(request.sid)


def _command_handler(command):
    def handler(data=None):
        get_registry().dispatch(request.sid, command, data)
    handler.__name__ = f"on_{command}"
    return handler


for _command in COMMANDS:
    socketio.on_event(_command, _command_handler(_command))


@socketio.on_error_default
def handle_unexpected_error(e):
    logger.exception("Unhandled error in %s from %s", request.event.get('message'), request.sid)
    emit(EventType.ERROR.value, {'code': 'server_error', 'message': 'Internal server error.'}, to=request.sid)


if __name__ == '__main__':
    eventlet.monkey_patch()
    app = create_app()
    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    local_ip = get_local_ip()
    port = app.config['PORT']
    logger.info("Server running at: http://%s:%s", local_ip, port)
    socketio.run(app, host=app.config['HOST'], port=port)
