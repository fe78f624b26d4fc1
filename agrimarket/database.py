# agrimarket/database.py
from __future__ import annotations

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def init_db(app):
    """
    Binds Flask-SQLAlchemy to the app and creates missing tables.
    Call this once during app startup (create_app); the process entry
    point owns the engine, services only ever receive `db.session`.
    """
    db.init_app(app)

    # tables module registers the mapped classes on db.Model
    from agrimarket import tables  # noqa: F401

    with app.app_context():
        db.create_all()

    app.logger.info("Database initialized")
    return db
