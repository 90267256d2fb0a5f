from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from ..schemas import PerformUpkeepResponse, UpkeepStatusResponse
from .raffle import get_raffle_engine

bp = Blueprint("upkeep", __name__)


@bp.get("")
def check_upkeep():
    status = get_raffle_engine().upkeep_status()
    return jsonify(UpkeepStatusResponse(**status.to_dict()).dict())


@bp.post("")
def perform_upkeep():
    engine = get_raffle_engine()
    request_id = engine.perform_upkeep()
    current_app.logger.info("Draw requested; randomness request id=%s", request_id)
    response = PerformUpkeepResponse(request_id=request_id, state=engine.get_raffle_state().name)
    return jsonify(response.dict()), 202
