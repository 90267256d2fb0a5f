from __future__ import annotations

from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..db import session_scope

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    try:
        with session_scope() as session:
            session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        return jsonify({"status": "error", "database": str(exc)}), 503
    return jsonify({"status": "ok"})
