from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence

import requests

from .config import KeeperSettings
from .types import Fulfillment, PendingRequest, RaffleState, UpkeepSnapshot


class RaffleApiError(RuntimeError):
    def __init__(self, status_code: int, payload: Any) -> None:
        super().__init__(f"Raffle API returned {status_code}: {payload}")
        self.status_code = status_code
        self.payload = payload


class RaffleClient:
    """HTTP wrapper around the raffle backend's upkeep and oracle endpoints."""

    def __init__(self, settings: KeeperSettings, session: Optional[requests.Session] = None) -> None:
        self._settings = settings
        self._http = session or requests.Session()
        if settings.api_key:
            self._http.headers["X-Oracle-Token"] = settings.api_key

    def _request(self, method: str, path: str, json_body: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self._settings.api_url}{path}"
        resp = self._http.request(method, url, json=json_body, timeout=self._settings.timeout_seconds)
        try:
            payload = resp.json()
        except ValueError:
            payload = resp.text
        if resp.status_code >= 400:
            raise RaffleApiError(resp.status_code, payload)
        return payload

    async def check_upkeep(self) -> UpkeepSnapshot:
        data = await asyncio.to_thread(self._request, "GET", "/upkeep")
        return UpkeepSnapshot(
            upkeep_needed=bool(data["upkeep_needed"]),
            state=RaffleState[data["state"]],
            balance=int(data["balance"]),
            player_count=int(data["player_count"]),
            seconds_until_due=int(data["seconds_until_due"]),
        )

    async def perform_upkeep(self) -> int:
        data = await asyncio.to_thread(self._request, "POST", "/upkeep")
        return int(data["request_id"])

    async def list_pending_requests(self) -> List[PendingRequest]:
        data = await asyncio.to_thread(self._request, "GET", "/oracle/requests?status=pending")
        return [
            PendingRequest(
                request_id=int(item["request_id"]),
                consumer=item["consumer"],
                num_words=int(item["num_words"]),
                confirmations=int(item["confirmations"]),
            )
            for item in data
        ]

    async def fulfill(self, request_id: int, random_words: Sequence[int]) -> Fulfillment:
        body = {"random_words": [int(w) for w in random_words]}
        data = await asyncio.to_thread(
            self._request, "POST", f"/oracle/requests/{int(request_id)}/fulfill", body
        )
        return Fulfillment(request_id=int(data["request_id"]), winner=data["winner"])

    async def close(self) -> None:
        self._http.close()
