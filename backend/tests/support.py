from __future__ import annotations

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from backend.config import RaffleConfig
from backend.db import serialize_sqlite_transactions
from backend.models import Base
from backend.services.coordinator import RandomnessCoordinator
from backend.services.engine import RaffleEngine

ENTRANCE_FEE = 10**16
INTERVAL = 30
START_TIME = 1_700_000_000
RAFFLE_ADDRESS = "0x" + "0" * 39 + "1"
COORDINATOR_ADDRESS = "0x" + "0" * 39 + "2"
PLAYERS = ["0x" + str(i) * 40 for i in range(1, 10)]


class FakeClock:
    def __init__(self, now: int = START_TIME) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


def make_config(entrance_fee: int = ENTRANCE_FEE) -> RaffleConfig:
    return RaffleConfig(
        entrance_fee=entrance_fee,
        interval=INTERVAL,
        coordinator_address=COORDINATOR_ADDRESS,
        subscription_id=42,
        callback_gas_limit=500000,
        raffle_address=RAFFLE_ADDRESS,
    )


def make_database(url: str = "sqlite+pysqlite:///:memory:", **engine_kwargs):
    db = serialize_sqlite_transactions(create_engine(url, future=True, **engine_kwargs))
    Base.metadata.create_all(db)
    return db, sessionmaker(bind=db, future=True, expire_on_commit=False)


class EngineTestMixin:
    def setUp(self) -> None:
        self.db, self.Session = make_database()
        self.clock = FakeClock()
        self.config = make_config()
        self.coordinator = RandomnessCoordinator(COORDINATOR_ADDRESS, session_factory=self.Session)
        self.engine = self.make_engine(self.config)
        self.engine.initialise()

    def tearDown(self) -> None:
        self.db.dispose()

    def make_engine(self, config: Optional[RaffleConfig] = None) -> RaffleEngine:
        return RaffleEngine(
            config or self.config, self.coordinator, session_factory=self.Session, clock=self.clock
        )

    def enter_players(self, count: int) -> None:
        for player in PLAYERS[:count]:
            self.engine.enter(player, ENTRANCE_FEE)

    def ready_for_draw(self, count: int = 1) -> None:
        self.enter_players(count)
        self.clock.advance(INTERVAL + 1)
