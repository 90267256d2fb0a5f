from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session
from web3 import Web3

from ..db import use_session
from ..models import RandomnessRequest
from .errors import InvalidConsumer, InvalidRandomWords, RequestAlreadyFulfilled, UnknownRequest
from .treasury import normalise_address

PENDING = "pending"
FULFILLED = "fulfilled"


class RandomnessConsumer(Protocol):
    address: str

    def raw_fulfill_random_words(
        self,
        caller: str,
        request_id: int,
        random_words: Sequence[int],
        session: Optional[Session] = None,
    ) -> Any:
        ...


def derive_random_words(request_id: int, num_words: int) -> List[int]:
    """Deterministic words, ``keccak256(abi.encode(request_id, i))`` for each index."""
    return [
        int.from_bytes(Web3.solidity_keccak(["uint256", "uint256"], [request_id, i]), "big")
        for i in range(num_words)
    ]


class RandomnessCoordinator:
    """Local randomness coordinator that correlates requests with deliveries.

    Requests are persisted as pending rows; a delivery is accepted once per
    request and only for the consumer that asked for it.
    """

    def __init__(
        self,
        address: str,
        session_factory: Optional[Callable[[], Session]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.address = normalise_address(address)
        self._session_factory = session_factory
        self._logger = logger or logging.getLogger("raffle.coordinator")

    def request_random_words(
        self,
        session: Session,
        gas_lane: str,
        subscription_id: int,
        confirmations: int,
        callback_gas_limit: int,
        num_words: int,
        consumer: str,
    ) -> int:
        last_id = session.query(func.max(RandomnessRequest.request_id)).scalar()
        request_id = int(last_id or 0) + 1
        request = RandomnessRequest(
            request_id=request_id,
            consumer=normalise_address(consumer),
            gas_lane=gas_lane,
            subscription_id=subscription_id,
            confirmations=confirmations,
            callback_gas_limit=callback_gas_limit,
            num_words=num_words,
            status=PENDING,
        )
        session.add(request)
        session.flush()
        self._logger.info(
            "Randomness requested id=%s consumer=%s sub=%s confirmations=%s",
            request_id,
            request.consumer,
            subscription_id,
            confirmations,
        )
        return request_id

    def fulfill_random_words(
        self,
        request_id: int,
        consumer: RandomnessConsumer,
        random_words: Optional[Sequence[int]] = None,
        session: Optional[Session] = None,
    ) -> List[int]:
        with use_session(session, self._session_factory) as active:
            request = active.get(RandomnessRequest, int(request_id))
            if request is None:
                raise UnknownRequest(int(request_id))
            if request.status != PENDING:
                raise RequestAlreadyFulfilled(request.request_id)
            consumer_address = normalise_address(consumer.address)
            if consumer_address != request.consumer:
                raise InvalidConsumer(request.request_id, request.consumer, consumer_address)

            if random_words is None:
                words = derive_random_words(request.request_id, request.num_words)
            else:
                words = [int(w) for w in random_words]
            if len(words) != request.num_words:
                raise InvalidRandomWords(request.request_id, request.num_words, len(words))

            request.status = FULFILLED
            request.set_words(words)
            request.fulfilled_at = dt.datetime.utcnow()
            active.flush()

            consumer.raw_fulfill_random_words(self.address, request.request_id, words, session=active)
            self._logger.info("Randomness request %s fulfilled", request.request_id)
            return words

    def get_request(self, request_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
        with use_session(session, self._session_factory) as active:
            request = active.get(RandomnessRequest, int(request_id))
            if request is None:
                raise UnknownRequest(int(request_id))
            return request.to_dict()

    def list_requests(
        self, status: Optional[str] = None, session: Optional[Session] = None
    ) -> List[Dict[str, Any]]:
        with use_session(session, self._session_factory) as active:
            query = active.query(RandomnessRequest)
            if status:
                query = query.filter(RandomnessRequest.status == status)
            return [r.to_dict() for r in query.order_by(RandomnessRequest.request_id).all()]
