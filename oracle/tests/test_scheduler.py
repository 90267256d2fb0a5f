import asyncio
import json
import tempfile
import unittest
from pathlib import Path

from oracle.config import KeeperSettings
from oracle.randomness import KeccakRandomnessSource
from oracle.randomness.base import RandomnessSource
from oracle.raffle_client import RaffleApiError
from oracle.scheduler import KeeperScheduler
from oracle.types import Fulfillment, PendingRequest, RaffleState, UpkeepSnapshot


class FakeSource(RandomnessSource):
    def __init__(self, word: int = 17) -> None:
        self._word = word
        self.closed = False
        self.calls = []

    async def generate(self, request_id: int, num_words: int):
        self.calls.append((request_id, num_words))
        return [self._word] * num_words

    async def close(self) -> None:
        self.closed = True


class FakeClient:
    def __init__(self, snapshot: UpkeepSnapshot, pending=None, request_id: int = 1) -> None:
        self._snapshot = snapshot
        self._pending = list(pending or [])
        self._request_id = request_id
        self.fulfillments = []
        self.upkeep_calls = 0
        self.reject_fulfillment = False

    async def check_upkeep(self) -> UpkeepSnapshot:
        return self._snapshot

    async def perform_upkeep(self) -> int:
        self.upkeep_calls += 1
        return self._request_id

    async def list_pending_requests(self):
        return list(self._pending)

    async def fulfill(self, request_id: int, random_words):
        if self.reject_fulfillment:
            raise RaffleApiError(400, {"error": "PrizeTransferFailed"})
        self.fulfillments.append((request_id, tuple(random_words)))
        return Fulfillment(request_id=request_id, winner="0x" + "5" * 40)


def _snapshot(needed: bool, state: RaffleState = RaffleState.OPEN) -> UpkeepSnapshot:
    return UpkeepSnapshot(
        upkeep_needed=needed,
        state=state,
        balance=60_000_000_000_000_000 if needed else 0,
        player_count=6 if needed else 0,
        seconds_until_due=0,
    )


class KeeperSchedulerTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.state_path = Path(self._tmpdir.name) / "state.json"

    def tearDown(self) -> None:
        self._tmpdir.cleanup()

    def _make_settings(self) -> KeeperSettings:
        return KeeperSettings(
            api_url="http://raffle.test",
            poll_interval_seconds=5,
            run_once=True,
            state_file=str(self.state_path),
        )

    def test_scheduler_skips_when_upkeep_not_needed(self) -> None:
        source = FakeSource()
        client = FakeClient(_snapshot(False))
        scheduler = KeeperScheduler(self._make_settings(), source, client)

        result = asyncio.run(scheduler.run_once())

        self.assertIsNone(result.requested_id)
        self.assertEqual(result.fulfilled, [])
        self.assertEqual(client.upkeep_calls, 0)
        self.assertTrue(source.closed)

    def test_scheduler_requests_draw_when_upkeep_needed(self) -> None:
        client = FakeClient(_snapshot(True), request_id=7)
        scheduler = KeeperScheduler(self._make_settings(), FakeSource(), client)

        result = asyncio.run(scheduler.run_once())

        self.assertEqual(result.requested_id, 7)
        self.assertEqual(client.upkeep_calls, 1)

    def test_scheduler_fulfills_pending_and_persists_state(self) -> None:
        pending = [PendingRequest(request_id=3, consumer="0x" + "1" * 40, num_words=1, confirmations=3)]
        source = FakeSource(word=17)
        client = FakeClient(_snapshot(False, RaffleState.DRAWING), pending=pending)
        scheduler = KeeperScheduler(self._make_settings(), source, client)

        result = asyncio.run(scheduler.run_once())

        self.assertEqual([f.request_id for f in result.fulfilled], [3])
        self.assertEqual(client.fulfillments, [(3, (17,))])
        self.assertEqual(source.calls, [(3, 1)])
        self.assertEqual(scheduler.last_request_id, 3)

        persisted = json.loads(self.state_path.read_text(encoding="utf-8"))
        self.assertEqual(persisted["last_request_id"], 3)

    def test_rejected_delivery_is_left_for_retry(self) -> None:
        pending = [PendingRequest(request_id=4, consumer="0x" + "1" * 40, num_words=1, confirmations=3)]
        client = FakeClient(_snapshot(False, RaffleState.DRAWING), pending=pending)
        client.reject_fulfillment = True
        scheduler = KeeperScheduler(self._make_settings(), FakeSource(), client)

        result = asyncio.run(scheduler.run_once())

        self.assertEqual(result.fulfilled, [])
        self.assertIsNone(scheduler.last_request_id)
        self.assertFalse(self.state_path.exists())

    def test_backend_pending_list_wins_over_persisted_state(self) -> None:
        self.state_path.write_text(json.dumps({"last_request_id": 5, "last_winner": None}), encoding="utf-8")
        pending = [PendingRequest(request_id=5, consumer="0x" + "1" * 40, num_words=1, confirmations=3)]
        client = FakeClient(_snapshot(False, RaffleState.DRAWING), pending=pending)
        scheduler = KeeperScheduler(self._make_settings(), FakeSource(word=9), client)
        self.assertEqual(scheduler.last_request_id, 5)

        result = asyncio.run(scheduler.run_once())

        self.assertEqual([f.request_id for f in result.fulfilled], [5])
        self.assertEqual(client.fulfillments, [(5, (9,))])


class KeccakRandomnessSourceTests(unittest.TestCase):
    def test_seeded_source_is_deterministic_per_request(self) -> None:
        source = KeccakRandomnessSource(seed="fixed")

        first = asyncio.run(source.generate(1, 1))
        again = asyncio.run(source.generate(1, 1))
        other = asyncio.run(source.generate(2, 1))

        self.assertEqual(first, again)
        self.assertNotEqual(first, other)
        self.assertEqual(len(first), 1)
        self.assertTrue(0 <= first[0] < 2**256)


if __name__ == "__main__":
    unittest.main()
