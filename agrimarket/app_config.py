# agrimarket/app_config.py

import os
from datetime import timedelta


def _database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    user = os.getenv("DB_USER", "postgres")
    password = os.getenv("DB_PASSWORD", "password")
    host = os.getenv("DB_HOST", "localhost")
    port = os.getenv("DB_PORT", "5432")
    name = os.getenv("DB_NAME", "digital_market")
    return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{name}"


def load_config(app, overrides=None):
    """
    Load all Flask configuration in a clean centralized way.
    `overrides` is applied last (tests pass an in-memory database here).
    """
    # ------------------------------
    # Database
    # ------------------------------
    app.config["SQLALCHEMY_DATABASE_URI"] = _database_url()
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {"pool_pre_ping": True}

    # ------------------------------
    # Security Keys
    # ------------------------------
    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "change-me")
    app.config["JWT_SECRET_KEY"] = os.getenv("JWT_SECRET_KEY", "change-me")
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(
        days=int(os.getenv("JWT_ACCESS_TOKEN_EXPIRES_DAYS", "7"))
    )
    app.config["JWT_TOKEN_LOCATION"] = ["headers"]
    app.config["JWT_HEADER_TYPE"] = "Bearer"
    app.config["ADMIN_REGISTRATION_CODE"] = os.getenv("ADMIN_REGISTRATION_CODE") or None

    # ------------------------------
    # Uploads
    # ------------------------------
    app.config["UPLOAD_FOLDER"] = os.getenv(
        "UPLOAD_FOLDER", os.path.join(os.getcwd(), "uploads")
    )
    app.config["MAX_CONTENT_LENGTH"] = int(os.getenv("MAX_UPLOAD_MB", "5")) * 1024 * 1024

    # ------------------------------
    # Runtime
    # ------------------------------
    app.config["APP_ENV"] = os.getenv("APP_ENV") or os.getenv("FLASK_ENV") or "production"
    app.config["DEFAULT_PAGE_SIZE"] = 20

    app.config["LOG_LEVEL"] = os.getenv("LOG_LEVEL", "INFO").upper()

    if overrides:
        app.config.update(overrides)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    app.logger.info(
        "Config loaded (env=%s, database=%s)",
        app.config["APP_ENV"],
        app.config["SQLALCHEMY_DATABASE_URI"].split("@")[-1],
    )
