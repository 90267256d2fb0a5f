"""Error taxonomy raised by the raffle engine and its randomness coordinator.

Every error aborts the triggering call; callers see the error code and the
structured ``details`` payload rather than a free-form message.
"""

from __future__ import annotations

from typing import Any, Dict


class RaffleError(Exception):
    code = "RaffleError"
    status_code = 400

    def details(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "details": self.details()}


class InsufficientPayment(RaffleError):
    code = "InsufficientPayment"

    def __init__(self, amount: int, entrance_fee: int) -> None:
        super().__init__(f"payment {amount} below entrance fee {entrance_fee}")
        self.amount = amount
        self.entrance_fee = entrance_fee

    def details(self) -> Dict[str, Any]:
        return {"amount": str(self.amount), "entrance_fee": str(self.entrance_fee)}


class RoundNotAcceptingEntries(RaffleError):
    code = "RoundNotAcceptingEntries"

    def __init__(self, state: int) -> None:
        super().__init__(f"raffle is not open (state={state})")
        self.state = state

    def details(self) -> Dict[str, Any]:
        return {"state": int(self.state)}


class UpkeepNotNeeded(RaffleError):
    code = "UpkeepNotNeeded"

    def __init__(self, state: int, balance: int, player_count: int) -> None:
        super().__init__(
            f"upkeep not needed (state={state}, balance={balance}, players={player_count})"
        )
        self.state = state
        self.balance = balance
        self.player_count = player_count

    def details(self) -> Dict[str, Any]:
        return {
            "state": int(self.state),
            "balance": str(self.balance),
            "player_count": self.player_count,
        }


class PrizeTransferFailed(RaffleError):
    code = "PrizeTransferFailed"

    def __init__(self, winner: str, amount: int) -> None:
        super().__init__(f"transfer of {amount} to {winner} was rejected")
        self.winner = winner
        self.amount = amount

    def details(self) -> Dict[str, Any]:
        return {"winner": self.winner, "amount": str(self.amount)}


class IndexOutOfRange(RaffleError):
    code = "IndexOutOfRange"
    status_code = 404

    def __init__(self, index: int, player_count: int) -> None:
        super().__init__(f"player index {index} out of range ({player_count} players)")
        self.index = index
        self.player_count = player_count

    def details(self) -> Dict[str, Any]:
        return {"index": self.index, "player_count": self.player_count}


class OnlyCoordinatorCanFulfill(RaffleError):
    code = "OnlyCoordinatorCanFulfill"
    status_code = 403

    def __init__(self, caller: str, coordinator: str) -> None:
        super().__init__(f"{caller} is not the randomness coordinator {coordinator}")
        self.caller = caller
        self.coordinator = coordinator

    def details(self) -> Dict[str, Any]:
        return {"caller": self.caller, "coordinator": self.coordinator}


class UnknownRequest(RaffleError):
    code = "UnknownRequest"
    status_code = 404

    def __init__(self, request_id: int) -> None:
        super().__init__(f"no randomness request with id {request_id}")
        self.request_id = request_id

    def details(self) -> Dict[str, Any]:
        return {"request_id": self.request_id}


class RequestAlreadyFulfilled(RaffleError):
    code = "RequestAlreadyFulfilled"
    status_code = 409

    def __init__(self, request_id: int) -> None:
        super().__init__(f"randomness request {request_id} already fulfilled")
        self.request_id = request_id

    def details(self) -> Dict[str, Any]:
        return {"request_id": self.request_id}


class InvalidConsumer(RaffleError):
    code = "InvalidConsumer"

    def __init__(self, request_id: int, expected: str, actual: str) -> None:
        super().__init__(f"request {request_id} belongs to {expected}, not {actual}")
        self.request_id = request_id
        self.expected = expected
        self.actual = actual

    def details(self) -> Dict[str, Any]:
        return {"request_id": self.request_id, "expected": self.expected, "actual": self.actual}


class InvalidRandomWords(RaffleError):
    code = "InvalidRandomWords"

    def __init__(self, request_id: int, expected: int, actual: int) -> None:
        super().__init__(f"request {request_id} expects {expected} random words, got {actual}")
        self.request_id = request_id
        self.expected = expected
        self.actual = actual

    def details(self) -> Dict[str, Any]:
        return {"request_id": self.request_id, "expected": self.expected, "actual": self.actual}


class NoPlayersToDraw(RaffleError):
    code = "NoPlayersToDraw"

    def __init__(self, request_id: int) -> None:
        super().__init__(f"request {request_id} delivered with no players in the round")
        self.request_id = request_id

    def details(self) -> Dict[str, Any]:
        return {"request_id": self.request_id}
