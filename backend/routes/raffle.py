from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..schemas import EnterRaffleRequest, EnterRaffleResponse, PlayerResponse, RaffleStatusResponse
from ..services.engine import RaffleEngine

bp = Blueprint("raffle", __name__)


def get_raffle_engine() -> RaffleEngine:
    return current_app.extensions["raffle_engine"]


def _limit_arg():
    limit = request.args.get("limit", type=int)
    return limit if limit and limit > 0 else None


@bp.get("")
def get_status():
    snapshot = get_raffle_engine().snapshot()
    return jsonify(RaffleStatusResponse(**snapshot).dict())


@bp.post("/enter")
def enter_raffle():
    payload = request.get_json(force=True, silent=True) or {}
    data = EnterRaffleRequest(**payload)

    engine = get_raffle_engine()
    position = engine.enter(data.player, data.amount)
    current_app.logger.info("Entry %s recorded for %s", position, data.player)

    response = EnterRaffleResponse(
        player=data.player,
        position=position,
        player_count=engine.get_number_of_players(),
        balance=str(engine.get_balance()),
    )
    return jsonify(response.dict()), 201


@bp.get("/players")
def list_players():
    players = get_raffle_engine().get_players()
    return jsonify([PlayerResponse(index=i, player=p).dict() for i, p in enumerate(players)])


@bp.get("/players/<int:index>")
def get_player(index: int):
    player = get_raffle_engine().get_player(index)
    return jsonify(PlayerResponse(index=index, player=player).dict())


@bp.get("/draws")
def list_draws():
    return jsonify(get_raffle_engine().list_draws(limit=_limit_arg()))


@bp.get("/events")
def list_events():
    name = request.args.get("name")
    return jsonify(get_raffle_engine().list_events(name=name, limit=_limit_arg()))
