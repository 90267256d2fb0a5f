from __future__ import annotations

from typing import Callable, Optional

from flask import Flask, jsonify
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from .config import load_settings
from .db import engine
from .models import Base
from .routes.health import bp as health_bp
from .routes.oracle import bp as oracle_bp
from .routes.raffle import bp as raffle_bp
from .routes.upkeep import bp as upkeep_bp
from .services.coordinator import RandomnessCoordinator
from .services.engine import RaffleEngine
from .services.errors import RaffleError


def create_app(clock: Optional[Callable[[], int]] = None) -> Flask:
    settings = load_settings()
    app = Flask(__name__)
    app.config["SECRET_KEY"] = settings.flask.secret_key
    Base.metadata.create_all(engine)

    coordinator = RandomnessCoordinator(settings.raffle.coordinator_address)
    raffle_engine = RaffleEngine(settings.raffle, coordinator, clock=clock)
    raffle_engine.initialise()
    app.extensions["randomness_coordinator"] = coordinator
    app.extensions["raffle_engine"] = raffle_engine

    app.register_blueprint(health_bp)
    app.register_blueprint(raffle_bp, url_prefix="/raffle")
    app.register_blueprint(upkeep_bp, url_prefix="/upkeep")
    app.register_blueprint(oracle_bp, url_prefix="/oracle")

    @app.errorhandler(RaffleError)
    def handle_raffle_error(exc: RaffleError):
        app.logger.warning("Raffle call rejected: %s", exc)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        errors = [{"loc": list(err["loc"]), "msg": err["msg"]} for err in exc.errors()]
        return jsonify({"error": "ValidationError", "details": errors}), 422

    @app.errorhandler(ValueError)
    def handle_value_error(exc: ValueError):
        return jsonify({"error": "ValueError", "details": {"message": str(exc)}}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"error": exc.name}), exc.code

    @app.errorhandler(Exception)
    def handle_error(exc: Exception):
        app.logger.exception("Unhandled error: %s", exc)
        return jsonify({"error": str(exc)}), 500

    return app
