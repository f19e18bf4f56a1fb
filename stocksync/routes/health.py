from __future__ import annotations

from flask import Blueprint, jsonify

from stocksync.services import sync_store

bp = Blueprint("health", __name__)


@bp.get("/")
def index():
    available, error = sync_store.database_available()
    payload = {
        "status": "online",
        "message": "Stocksync sync API is running",
        "database_status": "CONNECTED" if available else "DISCONNECTED (Retrying...)",
    }
    if error:
        payload["error"] = error
    return jsonify(payload)
