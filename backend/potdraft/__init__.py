from flask import Flask, jsonify
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
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from potdraft.main import main
    flask_app.register_blueprint(main, url_prefix='/api')

    from potdraft.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from potdraft.api.participants import participants
    flask_app.register_blueprint(participants, url_prefix='/api/participants')

    from potdraft.services.draft.errors import DraftError

    @flask_app.errorhandler(DraftError)
    def handle_draft_error(exc):
        return jsonify(exc.to_dict()), exc.status

    # Change feed handlers bind to the initialized socketio instance
    from potdraft.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the room and participant tables."""
        import potdraft.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
