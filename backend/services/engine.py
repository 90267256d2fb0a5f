from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from enum import IntEnum
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import desc
from sqlalchemy.orm import Session

from ..config import RaffleConfig
from ..db import use_session
from ..models import ROUND_ID, DrawResult, RaffleEntry, RaffleRound
from .coordinator import RandomnessCoordinator
from .errors import (
    IndexOutOfRange,
    InsufficientPayment,
    InvalidRandomWords,
    NoPlayersToDraw,
    OnlyCoordinatorCanFulfill,
    PrizeTransferFailed,
    RoundNotAcceptingEntries,
    UpkeepNotNeeded,
)
from .events import DRAW_REQUESTED, ENTRY_RECORDED, WINNER_PICKED, EventRepository
from .treasury import Treasury, normalise_address


class RaffleState(IntEnum):
    OPEN = 0
    DRAWING = 1


@dataclass(frozen=True)
class UpkeepStatus:
    upkeep_needed: bool
    time_passed: bool
    is_open: bool
    has_balance: bool
    has_players: bool
    state: RaffleState
    balance: int
    player_count: int
    seconds_until_due: int

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.name
        data["balance"] = str(self.balance)
        return data


def _unix_now() -> int:
    return int(time.time())


class RaffleEngine:
    """Single raffle instance: entry ledger, upkeep check and draw coordination.

    Each public call runs as one transaction. When ``session`` is passed the
    call joins that transaction instead, so the caller decides when it
    commits or rolls back.
    """

    def __init__(
        self,
        config: RaffleConfig,
        coordinator: RandomnessCoordinator,
        session_factory: Optional[Callable[[], Session]] = None,
        treasury: Optional[Treasury] = None,
        events: Optional[EventRepository] = None,
        clock: Optional[Callable[[], int]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._config = config
        self._coordinator = coordinator
        self._session_factory = session_factory
        self._treasury = treasury or Treasury()
        self._events = events or EventRepository()
        self._clock = clock or _unix_now
        self._logger = logger or logging.getLogger("raffle.engine")
        self.address = normalise_address(config.raffle_address)

    # ------------------------------------------------------------------ #
    # Round state
    # ------------------------------------------------------------------ #

    def _round(self, session: Session, for_update: bool = False) -> RaffleRound:
        query = session.query(RaffleRound).filter(RaffleRound.id == ROUND_ID)
        if for_update:
            query = query.with_for_update()
        round_ = query.one_or_none()
        if round_ is None:
            raise RuntimeError("Raffle round not initialised; call initialise() first")
        return round_

    def _players(self, session: Session) -> List[str]:
        rows = session.query(RaffleEntry.player).order_by(RaffleEntry.position).all()
        return [row.player for row in rows]

    def _player_count(self, session: Session) -> int:
        return session.query(RaffleEntry).count()

    def initialise(self, session: Optional[Session] = None) -> None:
        with use_session(session, self._session_factory) as active:
            if active.get(RaffleRound, ROUND_ID) is None:
                round_ = RaffleRound(
                    id=ROUND_ID,
                    state=int(RaffleState.OPEN),
                    last_timestamp=int(self._clock()),
                )
                active.add(round_)
                active.flush()
                self._logger.info("Raffle round created at %s", round_.last_timestamp)
            self._treasury.register_account(active, self.address)

    # ------------------------------------------------------------------ #
    # Entry ledger
    # ------------------------------------------------------------------ #

    def enter(self, player: str, amount: int, session: Optional[Session] = None) -> int:
        player = normalise_address(player)
        amount = int(amount)
        with use_session(session, self._session_factory) as active:
            if amount < self._config.entrance_fee:
                raise InsufficientPayment(amount, self._config.entrance_fee)
            round_ = self._round(active, for_update=True)
            if round_.state != RaffleState.OPEN:
                raise RoundNotAcceptingEntries(RaffleState(round_.state))

            position = self._player_count(active)
            active.add(RaffleEntry(position=position, player=player, amount=str(amount)))
            self._treasury.deposit(active, self.address, amount)
            self._events.emit(active, ENTRY_RECORDED, player=player)
            return position

    # ------------------------------------------------------------------ #
    # Upkeep evaluator
    # ------------------------------------------------------------------ #

    def _upkeep_status(self, session: Session, round_: RaffleRound) -> UpkeepStatus:
        state = RaffleState(round_.state)
        balance = self._treasury.balance_of(session, self.address)
        player_count = self._player_count(session)
        elapsed = int(self._clock()) - int(round_.last_timestamp)

        time_passed = elapsed >= self._config.interval
        is_open = state == RaffleState.OPEN
        has_balance = balance > 0
        has_players = player_count > 0
        return UpkeepStatus(
            upkeep_needed=time_passed and is_open and has_balance and has_players,
            time_passed=time_passed,
            is_open=is_open,
            has_balance=has_balance,
            has_players=has_players,
            state=state,
            balance=balance,
            player_count=player_count,
            seconds_until_due=max(self._config.interval - elapsed, 0),
        )

    def upkeep_status(self, session: Optional[Session] = None) -> UpkeepStatus:
        with use_session(session, self._session_factory) as active:
            return self._upkeep_status(active, self._round(active))

    def check_upkeep(self, session: Optional[Session] = None) -> bool:
        return self.upkeep_status(session).upkeep_needed

    # ------------------------------------------------------------------ #
    # Draw coordinator
    # ------------------------------------------------------------------ #

    def perform_upkeep(self, session: Optional[Session] = None) -> int:
        with use_session(session, self._session_factory) as active:
            # Locked before the check so a concurrent call sees DRAWING.
            round_ = self._round(active, for_update=True)
            status = self._upkeep_status(active, round_)
            if not status.upkeep_needed:
                raise UpkeepNotNeeded(status.state, status.balance, status.player_count)

            round_.state = int(RaffleState.DRAWING)
            active.flush()

            cfg = self._config
            request_id = self._coordinator.request_random_words(
                active,
                gas_lane=cfg.gas_lane,
                subscription_id=cfg.subscription_id,
                confirmations=cfg.request_confirmations,
                callback_gas_limit=cfg.callback_gas_limit,
                num_words=cfg.num_words,
                consumer=self.address,
            )
            self._events.emit(active, DRAW_REQUESTED, request_id=request_id)
            return request_id

    def raw_fulfill_random_words(
        self,
        caller: str,
        request_id: int,
        random_words: Sequence[int],
        session: Optional[Session] = None,
    ) -> str:
        coordinator = normalise_address(self._config.coordinator_address)
        if normalise_address(caller) != coordinator:
            raise OnlyCoordinatorCanFulfill(caller, coordinator)
        return self.on_randomness_delivered(request_id, random_words, session=session)

    def on_randomness_delivered(
        self,
        request_id: int,
        random_words: Sequence[int],
        session: Optional[Session] = None,
    ) -> str:
        if not random_words:
            raise InvalidRandomWords(int(request_id), self._config.num_words, 0)
        random_word = int(random_words[0])

        with use_session(session, self._session_factory) as active:
            round_ = self._round(active, for_update=True)
            players = self._players(active)
            if not players:
                raise NoPlayersToDraw(int(request_id))

            winner = players[random_word % len(players)]
            prize = self._treasury.balance_of(active, self.address)
            now = int(self._clock())

            # Round is reset before the payout; a rejected payout undoes both.
            round_.recent_winner = winner
            round_.state = int(RaffleState.OPEN)
            round_.last_timestamp = now
            active.query(RaffleEntry).delete()
            active.add(
                DrawResult(
                    request_id=int(request_id),
                    winner=winner,
                    prize=str(prize),
                    player_count=len(players),
                    random_word=str(random_word),
                    drawn_at=now,
                )
            )
            active.flush()
            self._events.emit(active, WINNER_PICKED, winner=winner)

            if not self._treasury.transfer(active, self.address, winner, prize):
                raise PrizeTransferFailed(winner, prize)

            self._logger.info(
                "Request %s drew %s of %s players; paid %s", request_id, winner, len(players), prize
            )
            return winner

    # ------------------------------------------------------------------ #
    # Query surface
    # ------------------------------------------------------------------ #

    def get_entrance_fee(self) -> int:
        return self._config.entrance_fee

    def get_interval(self) -> int:
        return self._config.interval

    def get_request_confirmations(self) -> int:
        return self._config.request_confirmations

    def get_num_words(self) -> int:
        return self._config.num_words

    def get_raffle_state(self, session: Optional[Session] = None) -> RaffleState:
        with use_session(session, self._session_factory) as active:
            return RaffleState(self._round(active).state)

    def get_recent_winner(self, session: Optional[Session] = None) -> Optional[str]:
        with use_session(session, self._session_factory) as active:
            return self._round(active).recent_winner

    def get_last_timestamp(self, session: Optional[Session] = None) -> int:
        with use_session(session, self._session_factory) as active:
            return int(self._round(active).last_timestamp)

    def get_player(self, index: int, session: Optional[Session] = None) -> str:
        with use_session(session, self._session_factory) as active:
            count = self._player_count(active)
            if index < 0 or index >= count:
                raise IndexOutOfRange(index, count)
            entry = active.query(RaffleEntry).filter(RaffleEntry.position == index).one()
            return entry.player

    def get_players(self, session: Optional[Session] = None) -> List[str]:
        with use_session(session, self._session_factory) as active:
            return self._players(active)

    def get_number_of_players(self, session: Optional[Session] = None) -> int:
        with use_session(session, self._session_factory) as active:
            return self._player_count(active)

    def get_balance(self, session: Optional[Session] = None) -> int:
        with use_session(session, self._session_factory) as active:
            return self._treasury.balance_of(active, self.address)

    def list_draws(self, limit: Optional[int] = None, session: Optional[Session] = None) -> List[Dict[str, Any]]:
        with use_session(session, self._session_factory) as active:
            query = active.query(DrawResult).order_by(desc(DrawResult.id))
            if limit:
                query = query.limit(limit)
            return [draw.to_dict() for draw in query.all()]

    def list_events(
        self,
        name: Optional[str] = None,
        limit: Optional[int] = None,
        session: Optional[Session] = None,
    ) -> List[Dict[str, Any]]:
        with use_session(session, self._session_factory) as active:
            return self._events.list_events(active, name=name, limit=limit)

    def snapshot(self, session: Optional[Session] = None) -> Dict[str, Any]:
        with use_session(session, self._session_factory) as active:
            round_ = self._round(active)
            cfg = self._config
            return {
                "address": self.address,
                "entrance_fee": str(cfg.entrance_fee),
                "interval": cfg.interval,
                "state": RaffleState(round_.state).name,
                "recent_winner": round_.recent_winner,
                "player_count": self._player_count(active),
                "last_timestamp": int(round_.last_timestamp),
                "balance": str(self._treasury.balance_of(active, self.address)),
                "request_confirmations": cfg.request_confirmations,
                "num_words": cfg.num_words,
            }
