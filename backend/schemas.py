from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, validator

from .services.treasury import normalise_address


class EnterRaffleRequest(BaseModel):
    player: str = Field(..., description="Address entering the raffle.")
    amount: int = Field(..., description="Payment in wei; must cover the entrance fee.")

    @validator("player")
    def validate_player(cls, value: str) -> str:
        return normalise_address(value)

    @validator("amount")
    def validate_amount(cls, value: int) -> int:
        if value < 0:
            raise ValueError("Payment must not be negative.")
        return value


class EnterRaffleResponse(BaseModel):
    player: str
    position: int
    player_count: int
    balance: str


class RaffleStatusResponse(BaseModel):
    address: str
    entrance_fee: str
    interval: int
    state: str
    recent_winner: Optional[str] = None
    player_count: int
    last_timestamp: int
    balance: str
    request_confirmations: int
    num_words: int


class PlayerResponse(BaseModel):
    index: int
    player: str


class UpkeepStatusResponse(BaseModel):
    upkeep_needed: bool
    time_passed: bool
    is_open: bool
    has_balance: bool
    has_players: bool
    state: str
    balance: str
    player_count: int
    seconds_until_due: int


class PerformUpkeepResponse(BaseModel):
    request_id: int
    state: str


class FulfillmentRequest(BaseModel):
    random_words: Optional[List[int]] = Field(
        None, description="Random words to deliver; derived from the request id when omitted."
    )

    @validator("random_words")
    def validate_words(cls, value: Optional[List[int]]) -> Optional[List[int]]:
        if value is None:
            return value
        for word in value:
            if not 0 <= word < 2**256:
                raise ValueError("Random words must be unsigned 256-bit integers.")
        return value


class FulfillmentResponse(BaseModel):
    request_id: int
    winner: str
    random_words: List[str]
