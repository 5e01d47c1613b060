from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from livequiz.main import main
    flask_app.register_blueprint(main)

    from livequiz.api.quizzes import quizzes
    # Mount the shared-state routes under /api to match the frontend client
    flask_app.register_blueprint(quizzes, url_prefix='/api')

    # Register Socket.IO event handlers on the initialized socketio instance
    try:
        from livequiz.socketio_events import register_socketio_handlers
        register_socketio_handlers(testing=flask_app.config.get('TESTING', False))
    except Exception as exc:
        flask_app.logger.warning(f"SocketIO events not loaded: {exc}")

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database with a demo quiz."""
        from livequiz.models import Quiz
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            demo = Quiz(
                title='Demo Quiz',
                description='Two warm-up questions',
                questions=[
                    {'question': 'How many days are in a week?', 'options': ['5', '6', '7', '8'], 'correct_answer': 2},
                    {'question': 'Which is a primary colour?', 'options': ['Green', 'Red', 'Purple', 'Orange'], 'correct_answer': 1},
                ],
            )
            db.session.add(demo)
            db.session.commit()
            print(f'Database has been reset and seeded! Demo quiz id: {demo.id}')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
