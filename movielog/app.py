import logging
import os

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from movielog.errors import ApiError
from movielog.gate import init_gate
from movielog.models import db
from movielog.routes import auth_bp, main_bp, movies_bp, tmdb_bp
from movielog.tmdb_client import TmdbClient

load_dotenv()

logger = logging.getLogger(__name__)


def configure_logging(level=None):
    logging.basicConfig(
        level=(level or os.environ.get('LOG_LEVEL', 'INFO')).upper(),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )


def _database_url():
    url = os.environ.get('DATABASE_URL')
    if url:
        return url
    DB_USER = os.environ.get('POSTGRES_USER', 'postgres')
    DB_PASSWORD = os.environ.get('POSTGRES_PASSWORD', 'password')
    DB_HOST = os.environ.get('POSTGRES_HOST', 'localhost')
    DB_NAME = os.environ.get('POSTGRES_DB', 'movielog')
    return f'postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:5432/{DB_NAME}'


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'message': error.description, 'error': error.name}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        logger.exception('Unhandled error')
        body = {'message': 'Internal server error', 'error': 'internal'}
        if app.debug:
            body['detail'] = str(error)
        return jsonify(body), 500


def create_app(test_config=None):
    app = Flask(__name__)
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'change_me_in_production')
    app.config['JWT_EXPIRES_IN'] = int(os.environ.get('JWT_EXPIRES_IN', 7 * 24 * 3600))
    app.config['TMDB_API_KEY'] = os.environ.get('TMDB_API_KEY')
    app.config['TMDB_API_URL'] = os.environ.get('TMDB_API_URL', TmdbClient.BASE_URL)
    app.config['SQLALCHEMY_DATABASE_URI'] = _database_url()
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    if test_config:
        app.config.update(test_config)

    app.config.setdefault('JWT_SECRET', os.environ.get('JWT_SECRET') or app.config['SECRET_KEY'])
    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('postgresql'):
        app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', {
            'pool_pre_ping': True,
            'pool_timeout': 10
        })

    db.init_app(app)
    CORS(app)
    init_gate(app)
    register_error_handlers(app)

    app.extensions['tmdb_client'] = TmdbClient(
        app.config['TMDB_API_KEY'], app.config['TMDB_API_URL'])

    # Register Blueprints
    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(movies_bp)
    app.register_blueprint(tmdb_bp)

    with app.app_context():
        db.create_all()

    return app


if __name__ == '__main__':
    configure_logging()
    app = create_app()
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 3000)), debug=False)
