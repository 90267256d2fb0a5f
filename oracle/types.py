from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class RaffleState(IntEnum):
    OPEN = 0
    DRAWING = 1


@dataclass(frozen=True)
class UpkeepSnapshot:
    upkeep_needed: bool
    state: RaffleState
    balance: int
    player_count: int
    seconds_until_due: int


@dataclass(frozen=True)
class PendingRequest:
    request_id: int
    consumer: str
    num_words: int
    confirmations: int


@dataclass(frozen=True)
class Fulfillment:
    request_id: int
    winner: str
