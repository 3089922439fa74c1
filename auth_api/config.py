"""
Environment-aware configuration.
Values are read once at import (after loading .env) and copied into
app.config by create_app(); the session core only ever sees the
AuthSettings built from app.config.
"""
import os
from dotenv import load_dotenv

load_dotenv()  # Read .env if present

DEFAULT_JWT_SECRET = "dev-secret-change-me"


class BaseConfig:
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    PORT = int(os.getenv("PORT", "3000"))
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///auth-session.db")
    SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("1", "true", "yes")
    # jwt configuration; expirations are durations like "15m" or "7d"
    JWT_SECRET = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER")
    JWT_ACCESS_EXPIRATION = os.getenv("JWT_ACCESS_EXPIRATION", "15m")
    JWT_REFRESH_EXPIRATION = os.getenv("JWT_REFRESH_EXPIRATION") or "7d"
    PASSWORD_MIN_LENGTH = int(os.getenv("PASSWORD_MIN_LENGTH", "8"))
    ARGON2_TIME_COST = os.getenv("ARGON2_TIME_COST")
    ARGON2_MEMORY_COST = os.getenv("ARGON2_MEMORY_COST")
    ARGON2_PARALLELISM = os.getenv("ARGON2_PARALLELISM")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = "sqlite://"
    JWT_SECRET = "test-secret-key-for-testing-only"
    JWT_REFRESH_SECRET = None
    JWT_ISSUER = None
    JWT_ACCESS_EXPIRATION = "15m"
    JWT_REFRESH_EXPIRATION = "7d"
    PASSWORD_MIN_LENGTH = 8
    # cheap hashing keeps the suite fast
    ARGON2_TIME_COST = 1
    ARGON2_MEMORY_COST = 1024
    ARGON2_PARALLELISM = 1


class ProductionConfig(BaseConfig):
    DEBUG = False


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig


def validate_config(config) -> None:
    """Refuse to run outside dev/testing with the built-in signing secret."""
    if config.get("DEBUG") or config.get("TESTING"):
        return
    if not config.get("JWT_SECRET") or config.get("JWT_SECRET") == DEFAULT_JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be set in production")
