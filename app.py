import logging
import sys

import click
from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from config import Config
from utils import errors
from utils.extensions import db, login_manager, mail, migrate


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    app.logger.setLevel(level)

    # The promotion engine logs under utils.*, outside app.logger
    engine_logger = logging.getLogger('utils')
    engine_logger.setLevel(level)
    if not engine_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter('[%(asctime)s] %(levelname)s in %(module)s: %(message)s'))
        engine_logger.addHandler(handler)


def register_error_handlers(app):
    @app.errorhandler(errors.DojoError)
    def handle_dojo_error(error):
        if error.status_code >= 500:
            app.logger.error("Storage failure: %s", error.message, exc_info=error)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        db.session.rollback()
        app.logger.exception("Database error: %s", error)
        return jsonify(errors.StorageError("Database unavailable.").to_dict()), 503

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'error': error.description}), error.code


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_logging(app)

    db.init_app(app)
    mail.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    from models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized_callback():
        return jsonify({'error': 'Authentication required.'}), 401

    # Register Blueprints with explicit names
    from utils.auth_routes import auth_bp
    from rank_routes import rank_bp
    from student_routes import student_bp, guardian_bp
    from class_routes import class_bp, attendance_bp
    from promotion_routes import promotion_bp
    from report_routes import report_bp

    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(rank_bp, url_prefix='/ranks')
    app.register_blueprint(student_bp, url_prefix='/students')
    app.register_blueprint(guardian_bp, url_prefix='/guardians')
    app.register_blueprint(class_bp, url_prefix='/classes')
    app.register_blueprint(attendance_bp, url_prefix='/attendance')
    app.register_blueprint(promotion_bp, url_prefix='/promotion')
    app.register_blueprint(report_bp, url_prefix='/reports')

    register_error_handlers(app)

    @app.after_request
    def set_headers(response):
        response.headers['X-Content-Type-Options'] = 'nosniff'
        return response

    @app.route('/health')
    def health_check():
        return jsonify({'status': 'ok'})

    @app.before_request
    def initialize_database():
        if not app.config.get('SEED_ON_STARTUP') or app.extensions.get('dojo_seeded'):
            return
        from utils.seed import seed_defaults
        seed_defaults()
        app.extensions['dojo_seeded'] = True

    @app.cli.command('seed')
    def seed_command():
        """Create tables, the admin account and the default belt ranks."""
        from utils.seed import seed_defaults
        created = seed_defaults()
        click.echo(f"{created} rank(s) created.")

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000, debug=False)
