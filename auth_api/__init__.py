import logging

from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config, validate_config
from .errors import register_error_handlers
from auth_models.db_storage import DBStorage
from auth_models.refresh_token_store import SQLRefreshTokenStore
from auth_models.user_repository import SQLUserRepository
from auth_utils.security import CredentialVerifier, JwtTokenService
from auth_utils.sessions import SessionOrchestrator
from auth_utils.settings import AuthSettings
from auth_utils.users import UserRegistrar

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Auth Session API",
        "version": "1.0.0",
        "description": "Login, registration, refresh-token rotation and logout.",
    },
    "basePath": "/",
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def build_sessions(settings: AuthSettings, storage: DBStorage) -> SessionOrchestrator:
    """Wire the session core against the SQL stores."""
    verifier = CredentialVerifier(
        time_cost=settings.argon2_time_cost,
        memory_cost=settings.argon2_memory_cost,
        parallelism=settings.argon2_parallelism,
    )
    tokens = JwtTokenService(
        secret=settings.jwt_secret,
        access_ttl=settings.access_ttl,
        refresh_ttl=settings.refresh_ttl,
        algorithm=settings.jwt_algorithm,
        refresh_secret=settings.jwt_refresh_secret,
        issuer=settings.jwt_issuer,
    )
    users = SQLUserRepository(storage)
    return SessionOrchestrator(
        users=users,
        verifier=verifier,
        tokens=tokens,
        refresh_tokens=SQLRefreshTokenStore(storage),
        settings=settings,
        registrar=UserRegistrar(users, verifier),
    )


def create_app(config_name: str | None = None, overrides: dict | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    Configuration is read once here; the session core receives an
    AuthSettings value and never looks at app.config itself.
    """
    app = Flask(__name__)

    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)
    validate_config(app.config)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Cross-Origin Resource Sharing: enable for dev, configurable for prod
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Uniform {statusCode, errorCode, message} error envelope
    register_error_handlers(app)

    storage = DBStorage(app.config["DATABASE_URL"], echo=app.config.get("SQL_ECHO", False))
    storage.reload()
    sessions = build_sessions(AuthSettings.from_mapping(app.config), storage)
    app.extensions["auth_storage"] = storage
    app.extensions["auth_sessions"] = sessions

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # calls scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Auth Session API",
            "docs": "/apidocs/",
            "health": "/health",
        }, 200

    return app
