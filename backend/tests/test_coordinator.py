import unittest

from web3 import Web3

from backend.services.coordinator import derive_random_words
from backend.services.engine import RaffleState
from backend.services.errors import (
    InvalidConsumer,
    InvalidRandomWords,
    RequestAlreadyFulfilled,
    UnknownRequest,
)

from .support import PLAYERS, EngineTestMixin


class OtherConsumer:
    address = "0x" + "9" * 40

    def __init__(self) -> None:
        self.calls = []

    def raw_fulfill_random_words(self, caller, request_id, random_words, session=None):
        self.calls.append((caller, request_id, list(random_words)))


class DeriveRandomWordsTests(unittest.TestCase):
    def test_words_match_keccak_of_request_and_index(self) -> None:
        expected = int.from_bytes(Web3.keccak((7).to_bytes(32, "big") + (0).to_bytes(32, "big")), "big")

        self.assertEqual(derive_random_words(7, 1), [expected])
        self.assertEqual(len(derive_random_words(7, 3)), 3)
        self.assertEqual(derive_random_words(7, 1), derive_random_words(7, 1))


class RandomnessCoordinatorTests(EngineTestMixin, unittest.TestCase):
    def test_request_ids_increase(self) -> None:
        self.ready_for_draw()
        first = self.engine.perform_upkeep()
        self.coordinator.fulfill_random_words(first, self.engine, [0])

        self.engine.enter(PLAYERS[1], self.config.entrance_fee)
        self.clock.advance(self.config.interval)
        second = self.engine.perform_upkeep()

        self.assertEqual((first, second), (1, 2))
        self.assertEqual(
            [r["request_id"] for r in self.coordinator.list_requests(status="pending")], [2]
        )
        self.assertEqual(
            [r["request_id"] for r in self.coordinator.list_requests(status="fulfilled")], [1]
        )

    def test_unknown_request_is_rejected(self) -> None:
        with self.assertRaises(UnknownRequest):
            self.coordinator.fulfill_random_words(5, self.engine, [1])
        with self.assertRaises(UnknownRequest):
            self.coordinator.get_request(5)

    def test_duplicate_delivery_is_rejected(self) -> None:
        self.ready_for_draw(2)
        request_id = self.engine.perform_upkeep()
        self.coordinator.fulfill_random_words(request_id, self.engine, [1])
        self.engine.enter(PLAYERS[2], self.config.entrance_fee)

        with self.assertRaises(RequestAlreadyFulfilled):
            self.coordinator.fulfill_random_words(request_id, self.engine, [0])

        self.assertEqual(self.engine.get_recent_winner(), PLAYERS[1])
        self.assertEqual(self.engine.get_players(), [PLAYERS[2]])

    def test_delivery_to_wrong_consumer_is_rejected(self) -> None:
        self.ready_for_draw()
        request_id = self.engine.perform_upkeep()
        other = OtherConsumer()

        with self.assertRaises(InvalidConsumer):
            self.coordinator.fulfill_random_words(request_id, other, [1])

        self.assertEqual(other.calls, [])
        self.assertEqual(self.engine.get_raffle_state(), RaffleState.DRAWING)

    def test_word_count_must_match_request(self) -> None:
        self.ready_for_draw()
        request_id = self.engine.perform_upkeep()

        with self.assertRaises(InvalidRandomWords):
            self.coordinator.fulfill_random_words(request_id, self.engine, [1, 2])
        with self.assertRaises(InvalidRandomWords):
            self.coordinator.fulfill_random_words(request_id, self.engine, [])

        self.assertEqual(self.coordinator.get_request(request_id)["status"], "pending")

    def test_derived_words_pick_the_winner(self) -> None:
        self.ready_for_draw(4)
        request_id = self.engine.perform_upkeep()

        words = self.coordinator.fulfill_random_words(request_id, self.engine)

        self.assertEqual(words, derive_random_words(request_id, 1))
        self.assertEqual(self.engine.get_recent_winner(), PLAYERS[words[0] % 4])
        stored = self.coordinator.get_request(request_id)
        self.assertEqual(stored["random_words"], [str(words[0])])


if __name__ == "__main__":
    unittest.main()
