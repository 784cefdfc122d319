from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from zkthrone.socketio_events import register_socketio_handlers, emit_room_update
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Room services live on the app, one coordinator per process
    from zkthrone.services import build_coordinator
    flask_app.extensions['zkthrone'] = build_coordinator(
        flask_app.config,
        logger=flask_app.logger,
        notifier=emit_room_update,
        start_task=socketio.start_background_task,
        sleep=socketio.sleep,
    )

    from zkthrone.main import main
    flask_app.register_blueprint(main)

    from zkthrone.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/room')

    @click.command('purge-rooms')
    def purge_rooms_command():
        """Deletes expired lobbies and finished rooms."""
        removed = flask_app.extensions['zkthrone'].registry.purge_expired()
        print(f'Purged {len(removed)} room(s).')

    @click.command('reset-nonce')
    @click.argument('wallet')
    def reset_nonce_command(wallet):
        """Resets the attestation nonce for WALLET."""
        with flask_app.app_context():
            flask_app.extensions['zkthrone'].nonces.reset(wallet)
        print(f'Nonce reset for {wallet}')

    flask_app.cli.add_command(purge_rooms_command)
    flask_app.cli.add_command(reset_nonce_command)

    return flask_app
