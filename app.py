# app.py (local run + gunicorn "app:create_app()")

from flask import Flask, request
from flask_cors import CORS

from agrimarket.app_config import load_config
from agrimarket.database import init_db
from agrimarket.errors import register_error_handlers
from agrimarket.register_blueprints import register_all_blueprints
from agrimarket.services.auth.credentials import init_auth


def create_app(overrides=None):
    app = Flask(__name__)

    # -------------------------
    # Config & security
    # -------------------------
    load_config(app, overrides)

    CORS(app, resources={r"/api/*": {"origins": "*"}, r"/health": {"origins": "*"}})

    # -------------------------
    # Database
    # -------------------------
    init_db(app)

    # -------------------------
    # JWT + bcrypt
    # -------------------------
    init_auth(app)

    # -------------------------
    # Errors & request log
    # -------------------------
    register_error_handlers(app)

    @app.after_request
    def _log_request(response):
        app.logger.info("%s %s -> %s", request.method, request.path, response.status_code)
        return response

    # -------------------------
    # Blueprints
    # -------------------------
    register_all_blueprints(app)

    return app


# Local run only
if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000, debug=True)
