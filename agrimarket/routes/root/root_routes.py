# agrimarket/routes/root/root_routes.py

import os

from flask import Blueprint, abort, current_app, jsonify, send_from_directory
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from agrimarket.database import db
from agrimarket.tables import utcnow

root_bp = Blueprint("root", __name__)


# -----------------------------
# HEALTH
# -----------------------------
@root_bp.get("/health")
def health():
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        current_app.logger.error("Health check failed: %s", e)
        return jsonify(status="ERROR", database="Disconnected"), 500
    return jsonify(status="OK", database="Connected", timestamp=utcnow().isoformat()), 200


# -----------------------------
# UPLOADED IMAGES
# -----------------------------
@root_bp.get("/uploads/<path:filename>")
def uploaded_file(filename):
    folder = current_app.config["UPLOAD_FOLDER"]
    if not os.path.isdir(folder):
        abort(404)
    return send_from_directory(folder, filename, conditional=True)
