from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from stocksync.extensions import db
from stocksync.services import sync_store

bp = Blueprint("api", __name__, url_prefix="/api")


def _error(message: str, status_code: int):
    return jsonify({"status": "error", "message": message}), status_code


@bp.before_request
def _require_database():
    available, _error_detail = sync_store.database_available()
    if not available:
        return _error("Database not connected. Please check server logs.", 503)
    return None


@bp.get("/data")
def get_data():
    try:
        state = sync_store.load_full_state()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to load synced data")
        return _error(f"Database error: {exc}", 500)
    return jsonify({"status": "success", "data": state})


@bp.post("/sync")
def sync():
    # Spreadsheet-style clients post JSON as text/plain.
    payload = request.get_json(force=True, silent=True)
    if not isinstance(payload, dict):
        return _error("Request body must be a JSON object.", 400)

    sync_type = payload.get("type")
    data = payload.get("data")
    version = payload.get("version")
    if version is not None and (isinstance(version, bool) or not isinstance(version, int)):
        return _error("version must be an integer.", 400)
    client_id = payload.get("clientId") or ""
    if not isinstance(client_id, str) or len(client_id) > 64:
        return _error("clientId must be a string of at most 64 characters.", 400)

    try:
        if sync_type == "full_sync":
            synced = sync_store.apply_full_sync(data)
            label = ", ".join(synced) or "nothing"
        else:
            label = sync_store.replace_collection(sync_type, data, version, client_id)
        db.session.commit()
    except sync_store.StaleVersionError as exc:
        db.session.rollback()
        current_app.logger.warning("%s", exc)
        return _error(str(exc), 409)
    except sync_store.PayloadError as exc:
        db.session.rollback()
        return _error(str(exc), 400)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Sync of %s failed", sync_type)
        return _error(f"Database error: {exc}", 500)

    return jsonify({"status": "success", "message": f"Synced {label}"})
