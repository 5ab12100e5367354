from flask import Flask

from linkpulse.api import api_bp
from linkpulse.auth import auth_bp
from linkpulse.config import Config
from linkpulse.extensions import db, login_manager, migrate
from linkpulse.jobs.scheduler import start_scheduler


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp)

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized LinkPulse database.")

    with app.app_context():
        db.create_all()

    start_scheduler(app)
    return app
