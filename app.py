import logging
from logging.handlers import RotatingFileHandler

from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError

from config import Config
from extensions import db
from errors import (
    ScheduleValidationError, DataIntegrityError, InvalidStatusTransition, ConfirmationRequired, RecordNotFound,
)
from blueprints.main import main_bp
from blueprints.admin import admin_bp
from blueprints.finance import finance_bp
from blueprints.students import students_bp
from blueprints.tracking import tracking_bp
from cli_commands import register_commands


def configure_logging(app):
    log_level = getattr(logging, app.config['LOG_LEVEL'], logging.INFO)
    formatter = logging.Formatter(app.config['LOG_FORMAT'])

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    handlers = [stream_handler]

    if app.config.get('LOG_FILE'):
        file_handler = RotatingFileHandler(app.config['LOG_FILE'], maxBytes=1_000_000, backupCount=5)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    app.logger.setLevel(log_level)
    # Avoid duplicate handlers when the factory runs more than once
    app.logger.handlers.clear()
    for handler in handlers:
        app.logger.addHandler(handler)

    # Domain modules log through their own module loggers
    for name in ('class_generation', 'reconciliation', 'class_tracking'):
        module_logger = logging.getLogger(name)
        module_logger.setLevel(log_level)
        module_logger.handlers.clear()
        for handler in handlers:
            module_logger.addHandler(handler)


def register_error_handlers(app):

    @app.errorhandler(ScheduleValidationError)
    def schedule_error(e):
        app.logger.warning(f"Rejected schedule: {e}")
        return jsonify({'error': str(e), 'slots': e.slots}), 400

    @app.errorhandler(DataIntegrityError)
    def integrity_error(e):
        app.logger.error(f"Data integrity error: {e}")
        return jsonify({'error': str(e)}), 422

    @app.errorhandler(InvalidStatusTransition)
    def transition_error(e):
        return jsonify({'error': str(e)}), 409

    @app.errorhandler(ConfirmationRequired)
    def confirmation_error(e):
        return jsonify({'error': str(e), 'requires_confirmation': True}), 409

    @app.errorhandler(RecordNotFound)
    def lookup_error(e):
        return jsonify({'error': str(e)}), 404

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(SQLAlchemyError)
    def database_error(e):
        db.session.rollback()
        app.logger.error(f"Database error: {e}", exc_info=True)
        return jsonify({'error': 'Database error'}), 500


def create_app(test_config=None):
    app = Flask(__name__)

    app.config.from_object(Config)
    if test_config:
        app.config.from_mapping(test_config)

    configure_logging(app)

    db.init_app(app)

    # Register Blueprints
    app.register_blueprint(main_bp)
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(finance_bp, url_prefix='/finance')
    app.register_blueprint(students_bp, url_prefix='/students')
    app.register_blueprint(tracking_bp, url_prefix='/tracking')

    register_error_handlers(app)
    register_commands(app)

    with app.app_context():
        db.create_all()

    return app


if __name__ == '__main__':
    create_app().run(debug=True, port=5000)
