from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from web3 import Web3

REQUEST_CONFIRMATIONS = 3
NUM_WORDS = 1

DEFAULT_RAFFLE_ADDRESS = "0x" + "0" * 39 + "1"
DEFAULT_COORDINATOR_ADDRESS = "0x" + "0" * 39 + "2"
DEFAULT_GAS_LANE = "0x474e34a077df58807dbe9c96d3c009b23b3c6d0cce433e59bbf5b34f823bc56c"


@dataclass(frozen=True)
class FlaskSettings:
    secret_key: str = "raffle-dev-secret"
    debug: bool = True


@dataclass(frozen=True)
class RaffleConfig:
    entrance_fee: int
    interval: int
    coordinator_address: str = DEFAULT_COORDINATOR_ADDRESS
    gas_lane: str = DEFAULT_GAS_LANE
    subscription_id: int = 0
    callback_gas_limit: int = 500000
    raffle_address: str = DEFAULT_RAFFLE_ADDRESS
    request_confirmations: int = REQUEST_CONFIRMATIONS
    num_words: int = NUM_WORDS

    def __post_init__(self) -> None:
        if self.entrance_fee < 0:
            raise ValueError("entrance_fee must not be negative")
        if self.interval < 0:
            raise ValueError("interval must not be negative")
        if self.num_words != NUM_WORDS:
            raise ValueError(f"exactly {NUM_WORDS} random word is requested per draw")


@dataclass(frozen=True)
class AppSettings:
    flask: FlaskSettings
    raffle: RaffleConfig
    database_url: str
    oracle_api_key: Optional[str]


def _int_from_env(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value == "":
        return default
    return int(value)


@lru_cache(maxsize=1)
def load_settings(dotenv_path: Optional[str] = None) -> AppSettings:
    if dotenv_path:
        load_dotenv(dotenv_path)
    else:
        load_dotenv()

    flask_settings = FlaskSettings(
        secret_key=os.getenv("FLASK_SECRET_KEY", "raffle-dev-secret"),
        debug=os.getenv("FLASK_DEBUG", "1") == "1",
    )

    entrance_fee = Web3.to_wei(os.getenv("RAFFLE_ENTRANCE_FEE_ETH", "0.01"), "ether")

    raffle = RaffleConfig(
        entrance_fee=int(entrance_fee),
        interval=_int_from_env("RAFFLE_INTERVAL_SECONDS", 30),
        coordinator_address=Web3.to_checksum_address(
            os.getenv("VRF_COORDINATOR_ADDRESS", DEFAULT_COORDINATOR_ADDRESS)
        ),
        gas_lane=os.getenv("VRF_GAS_LANE", DEFAULT_GAS_LANE),
        subscription_id=_int_from_env("VRF_SUBSCRIPTION_ID", 0),
        callback_gas_limit=_int_from_env("VRF_CALLBACK_GAS_LIMIT", 500000),
        raffle_address=Web3.to_checksum_address(
            os.getenv("RAFFLE_ADDRESS", DEFAULT_RAFFLE_ADDRESS)
        ),
    )

    return AppSettings(
        flask=flask_settings,
        raffle=raffle,
        database_url=os.getenv("DATABASE_URL", "sqlite:///raffle.db"),
        oracle_api_key=os.getenv("ORACLE_API_KEY") or None,
    )
