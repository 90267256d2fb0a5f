from __future__ import annotations

import asyncio
import json
import logging
import pathlib
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence

from .config import KeeperSettings
from .randomness import RandomnessSource
from .raffle_client import RaffleApiError
from .types import Fulfillment, PendingRequest, UpkeepSnapshot


class RaffleClientProtocol(Protocol):
    async def check_upkeep(self) -> UpkeepSnapshot:
        ...

    async def perform_upkeep(self) -> int:
        ...

    async def list_pending_requests(self) -> List[PendingRequest]:
        ...

    async def fulfill(self, request_id: int, random_words: Sequence[int]) -> Fulfillment:
        ...


@dataclass
class TickResult:
    fulfilled: List[Fulfillment] = field(default_factory=list)
    requested_id: Optional[int] = None


class KeeperStateStore:
    """Remembers the last delivered request across restarts."""

    def __init__(self, path: str) -> None:
        self._path = pathlib.Path(path)

    def load_last_request(self) -> Optional[int]:
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return None
        value = data.get("last_request_id")
        return int(value) if value is not None else None

    def save_last_request(self, request_id: int, winner: str) -> None:
        payload = {"last_request_id": request_id, "last_winner": winner}
        self._path.write_text(json.dumps(payload), encoding="utf-8")


class KeeperScheduler:
    """Delivers randomness for pending draws, then triggers upkeep when due."""

    def __init__(
        self,
        settings: KeeperSettings,
        source: RandomnessSource,
        client: RaffleClientProtocol,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._settings = settings
        self._source = source
        self._client = client
        self._state = KeeperStateStore(settings.state_file)
        self._last_request_id = self._state.load_last_request()
        self._logger = logger or logging.getLogger("raffle.oracle")

    @property
    def last_request_id(self) -> Optional[int]:
        return self._last_request_id

    async def run_forever(self) -> None:
        interval = self._settings.poll_interval_seconds
        self._logger.info("Keeper loop started; poll interval=%s", interval)
        while True:
            try:
                await self._tick()
            except Exception as exc:
                self._logger.exception("Keeper iteration failed: %s", exc)
            await asyncio.sleep(interval)

    async def run_once(self) -> TickResult:
        try:
            return await self._tick()
        finally:
            await self._source.close()

    async def _tick(self) -> TickResult:
        result = TickResult()
        result.fulfilled = await self._fulfill_pending()
        result.requested_id = await self._maybe_request_draw()
        return result

    async def _fulfill_pending(self) -> List[Fulfillment]:
        fulfilled: List[Fulfillment] = []
        for pending in await self._client.list_pending_requests():
            words = await self._source.generate(pending.request_id, pending.num_words)
            try:
                outcome = await self._client.fulfill(pending.request_id, words)
            except RaffleApiError as exc:
                # Left pending on the backend; the next tick retries it.
                self._logger.error("Delivery for request %s rejected: %s", pending.request_id, exc.payload)
                continue
            self._logger.info("Request %s fulfilled; winner=%s", outcome.request_id, outcome.winner)
            self._last_request_id = outcome.request_id
            self._state.save_last_request(outcome.request_id, outcome.winner)
            fulfilled.append(outcome)
        return fulfilled

    async def _maybe_request_draw(self) -> Optional[int]:
        snapshot = await self._client.check_upkeep()
        if not snapshot.upkeep_needed:
            self._logger.debug(
                "Upkeep not needed (state=%s, players=%s, due in %ss).",
                snapshot.state.name,
                snapshot.player_count,
                snapshot.seconds_until_due,
            )
            return None

        try:
            request_id = await self._client.perform_upkeep()
        except RaffleApiError as exc:
            self._logger.info("performUpkeep rejected: %s", exc.payload)
            return None
        self._logger.info(
            "Draw requested for %s players; request id=%s", snapshot.player_count, request_id
        )
        return request_id
