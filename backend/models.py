from __future__ import annotations

import datetime as dt
import json
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()

ROUND_ID = 1


class RaffleRound(Base):
    __tablename__ = "raffle_round"

    id = Column(Integer, primary_key=True, default=ROUND_ID)
    state = Column(Integer, nullable=False, default=0)
    last_timestamp = Column(Integer, nullable=False)
    recent_winner = Column(String(42), nullable=True)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow, nullable=False)


class RaffleEntry(Base):
    __tablename__ = "raffle_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    position = Column(Integer, nullable=False, unique=True)
    player = Column(String(42), nullable=False)
    amount = Column(String(78), nullable=False)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "position": self.position,
            "player": self.player,
            "amount": self.amount,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Account(Base):
    __tablename__ = "accounts"

    address = Column(String(42), primary_key=True)
    balance = Column(String(78), nullable=False, default="0")
    accepts_payments = Column(Boolean, nullable=False, default=True)

    def get_balance(self) -> int:
        return int(self.balance or 0)

    def set_balance(self, value: int) -> None:
        if value < 0:
            raise ValueError(f"balance of {self.address} cannot go negative")
        self.balance = str(value)


class RandomnessRequest(Base):
    __tablename__ = "randomness_requests"

    request_id = Column(Integer, primary_key=True, autoincrement=False)
    consumer = Column(String(42), nullable=False)
    gas_lane = Column(String(66), nullable=False)
    subscription_id = Column(Integer, nullable=False)
    confirmations = Column(Integer, nullable=False)
    callback_gas_limit = Column(Integer, nullable=False)
    num_words = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    random_words = Column(Text, nullable=True)
    requested_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)
    fulfilled_at = Column(DateTime, nullable=True)

    def set_words(self, words: List[int]) -> None:
        self.random_words = json.dumps([str(w) for w in words])

    def get_words(self) -> Optional[List[int]]:
        if self.random_words is None:
            return None
        return [int(w) for w in json.loads(self.random_words)]

    def to_dict(self) -> dict:
        words = self.get_words()
        return {
            "request_id": self.request_id,
            "consumer": self.consumer,
            "gas_lane": self.gas_lane,
            "subscription_id": self.subscription_id,
            "confirmations": self.confirmations,
            "callback_gas_limit": self.callback_gas_limit,
            "num_words": self.num_words,
            "status": self.status,
            "random_words": [str(w) for w in words] if words is not None else None,
            "requested_at": self.requested_at.isoformat() if self.requested_at else None,
            "fulfilled_at": self.fulfilled_at.isoformat() if self.fulfilled_at else None,
        }


class DrawResult(Base):
    __tablename__ = "draw_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(Integer, nullable=False, index=True)
    winner = Column(String(42), nullable=False)
    prize = Column(String(78), nullable=False)
    player_count = Column(Integer, nullable=False)
    random_word = Column(String(78), nullable=False)
    drawn_at = Column(Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "winner": self.winner,
            "prize": self.prize,
            "player_count": self.player_count,
            "random_word": self.random_word,
            "drawn_at": self.drawn_at,
        }


class EventRecord(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(32), nullable=False, index=True)
    payload = Column(Text, nullable=False)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)

    def set_payload(self, payload: Dict[str, Any]) -> None:
        self.payload = json.dumps(payload)

    def get_payload(self) -> Dict[str, Any]:
        return json.loads(self.payload)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "args": self.get_payload(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
