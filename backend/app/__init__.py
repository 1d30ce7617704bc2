from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import logging

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    from .config.settings import load_settings
    app.config.update(load_settings())

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    app.logger.setLevel(getattr(logging, str(app.config['LOG_LEVEL']), logging.INFO))

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)
    _register_jwt_callbacks()

    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.groups import groups_bp
    from .routes.tables import tables_bp
    from .routes.players import players_bp
    from .routes.notifications import notifications_bp
    from .routes.stats import stats_bp
    from .routes.audit import audit_bp
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(users_bp, url_prefix='/api')
    app.register_blueprint(groups_bp, url_prefix='/api')
    app.register_blueprint(tables_bp, url_prefix='/api')
    app.register_blueprint(players_bp, url_prefix='/api/tables')
    app.register_blueprint(notifications_bp, url_prefix='/api')
    app.register_blueprint(stats_bp, url_prefix='/api/statistics')
    app.register_blueprint(audit_bp, url_prefix='/api/audit')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    @app.teardown_appcontext
    def remove_session(exc):
        SessionLocal.remove()

    from .errors import error_payload, LookupFailure
    from .services.access import AccessLookupError

    @app.errorhandler(AccessLookupError)
    def handle_lookup_error(e):  # type: ignore
        app.logger.error('authorization lookup failed: %s', e, exc_info=e)
        failure = LookupFailure()
        return error_payload(failure.code, failure.name, failure.description, code=failure.error_code), failure.code

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            payload = error_payload(
                e.code, e.name, e.description,
                code=getattr(e, 'error_code', None),
                reason=getattr(e, 'reason', None),
            )
            return payload, e.code
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return error_payload(500, 'Internal Server Error', 'Unexpected error'), 500

    return app


def _register_jwt_callbacks():
    from .errors import error_payload

    @jwt.unauthorized_loader
    def missing_token(reason):  # type: ignore
        return error_payload(401, 'Unauthorized', reason, code='unauthenticated'), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):  # type: ignore
        return error_payload(401, 'Unauthorized', reason, code='unauthenticated'), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):  # type: ignore
        return error_payload(401, 'Unauthorized', 'Token has expired', code='unauthenticated'), 401


def get_db():
    return SessionLocal()
