from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..config import load_settings
from ..schemas import FulfillmentRequest, FulfillmentResponse
from ..services.coordinator import RandomnessCoordinator
from .raffle import get_raffle_engine

bp = Blueprint("oracle", __name__)


def get_coordinator() -> RandomnessCoordinator:
    return current_app.extensions["randomness_coordinator"]


def _require_oracle() -> bool:
    settings = load_settings()
    api_key = settings.oracle_api_key
    if api_key:
        provided = request.headers.get("X-Oracle-Token")
        if provided != api_key:
            return False
    return True


@bp.before_request
def verify_oracle():
    if not _require_oracle():
        return jsonify({"error": "unauthorized"}), 401
    return None


@bp.get("/requests")
def list_requests():
    status = request.args.get("status")
    return jsonify(get_coordinator().list_requests(status=status))


@bp.get("/requests/<int:request_id>")
def get_request(request_id: int):
    return jsonify(get_coordinator().get_request(request_id))


@bp.post("/requests/<int:request_id>/fulfill")
def fulfill_request(request_id: int):
    payload = request.get_json(force=True, silent=True) or {}
    data = FulfillmentRequest(**payload)

    engine = get_raffle_engine()
    words = get_coordinator().fulfill_random_words(request_id, engine, data.random_words)
    winner = engine.get_recent_winner()
    current_app.logger.info("Request %s fulfilled; winner=%s", request_id, winner)

    response = FulfillmentResponse(
        request_id=request_id,
        winner=winner,
        random_words=[str(w) for w in words],
    )
    return jsonify(response.dict())
