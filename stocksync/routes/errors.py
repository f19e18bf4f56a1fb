from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from werkzeug.exceptions import HTTPException

from stocksync.extensions import db

bp = Blueprint("errors", __name__)


@bp.app_errorhandler(Exception)
def handle_exception(error: Exception):
    if isinstance(error, HTTPException) and error.code != 500:
        return (
            jsonify({"status": "error", "message": error.description or error.name}),
            error.code,
        )

    current_app.logger.exception("Unhandled exception", exc_info=error)
    db.session.rollback()
    message = "Internal Server Error"
    original = getattr(error, "original_exception", None) or error
    if str(original):
        message = str(original)
    return jsonify({"status": "error", "message": message}), 500
