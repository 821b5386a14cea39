from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import logging
import click
from config import Config

socketio = SocketIO(async_mode=None)


def _parse_origins(value):
    if isinstance(value, (list, tuple)):
        return list(value)
    origins = [o.strip() for o in str(value or '*').split(',') if o.strip()]
    return '*' if origins in ([], ['*']) else origins


def _configure_logging(flask_app):
    level = str(flask_app.config.get('LOG_LEVEL', 'INFO')).upper()
    if not logging.getLogger().handlers:
        logging.basicConfig(format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    logging.getLogger('relay').setLevel(level)
    flask_app.logger.setLevel(level)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    _configure_logging(flask_app)

    allowed_origins = _parse_origins(flask_app.config.get('CORS_ORIGINS'))
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from relay.services.games.lobby import Lobby
    from relay.services.games.registry import RoomRegistry
    from relay.services.games.room import RoomSettings
    from relay.services.games.scheduler import BackgroundScheduler, InlineScheduler
    from relay.transport import SocketIOTransport

    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/')
    inline = flask_app.config.get('TESTING') and not flask_app.config.get('ENABLE_SCHEDULER_IN_TESTS')
    scheduler = InlineScheduler() if inline else BackgroundScheduler(socketio)
    transport = SocketIOTransport(socketio, namespace=namespace)
    registry = RoomRegistry(
        transport,
        scheduler,
        settings=RoomSettings.from_config(flask_app.config),
        code_length=int(flask_app.config.get('ROOM_CODE_LENGTH', 5)),
    )
    flask_app.extensions['relay'] = {
        'registry': registry,
        'lobby': Lobby(),
        'transport': transport,
    }

    from relay.main import main
    flask_app.register_blueprint(main)

    # Handlers look the registry up through current_app, so each app
    # instance owns its rooms
    from relay.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace=namespace)

    if not inline:
        registry.start_reaper(float(flask_app.config.get('REAP_INTERVAL_SEC', 300)))

    @click.command('serve')
    @click.option('--host', default='0.0.0.0', show_default=True)
    @click.option('--port', default=3000, type=int, show_default=True)
    @click.option('--debug/--no-debug', default=False)
    def serve_command(host, port, debug):
        """Run the relay with the Socket.IO server."""
        flask_app.logger.info(f"[serve] host={host} port={port}")
        socketio.run(flask_app, host=host, port=port, debug=debug, allow_unsafe_werkzeug=True)

    flask_app.cli.add_command(serve_command)

    return flask_app
