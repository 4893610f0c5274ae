"""Invariants under concurrent callers sharing one file-backed database."""

from __future__ import annotations

import random
import tempfile
import threading
import unittest
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from raffledesk import RaffleDesk, RaffleSettings
from raffledesk.db.engine import get_sessionmaker, make_engine
from raffledesk.errors import AlreadyDrawn, NumberTaken
from raffledesk.models import Base
from raffledesk.notify import Notifier


class SilentNotifier(Notifier):
    def notify(self, event, payload=None):
        pass


def _contact(i: int) -> str:
    return f"(11) 9{i:04d}-{i:04d}"


class ConcurrentDeskTestCase(unittest.TestCase):
    workers = 16

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        db_path = Path(self._tmp.name) / "raffle.db"
        self.engine = make_engine(f"sqlite:///{db_path}", timeout=60)
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)

    def tearDown(self) -> None:
        self.engine.dispose()
        self._tmp.cleanup()

    def _desk(self, settings: RaffleSettings) -> RaffleDesk:
        return RaffleDesk(
            self.Session,
            settings=settings,
            notifier=SilentNotifier(),
            is_operator=lambda: True,
            rng=random.Random(17),
        )

    def _run_all(self, fn, args):
        barrier = threading.Barrier(len(args))

        def call(arg):
            barrier.wait()
            return fn(arg)

        with ThreadPoolExecutor(max_workers=len(args)) as pool:
            return list(pool.map(call, args))


class ConcurrentRegistrationTests(ConcurrentDeskTestCase):
    def test_each_number_is_claimed_once(self) -> None:
        pool_size = 10
        desk = self._desk(RaffleSettings(pool_size=pool_size))

        callers = list(range(2 * pool_size))
        outcomes = self._run_all(
            lambda i: desk.register(
                f"Person Number{i}", _contact(i), (i % pool_size) + 1
            ),
            callers,
        )

        succeeded = [o.value for o in outcomes if o.ok]
        failed = [o.error for o in outcomes if not o.ok]
        self.assertEqual(len(succeeded), pool_size)
        self.assertEqual(
            sorted(p.number for p in succeeded), list(range(1, pool_size + 1))
        )
        self.assertTrue(all(isinstance(e, NumberTaken) for e in failed))
        self.assertEqual(desk.participant_count().unwrap(), pool_size)

    def test_same_contact_registers_once(self) -> None:
        desk = self._desk(RaffleSettings(pool_size=50))

        outcomes = self._run_all(
            lambda n: desk.register("Alice Souza", _contact(1), n), list(range(1, 9))
        )
        self.assertEqual(sum(1 for o in outcomes if o.ok), 1)
        self.assertEqual(len(desk.lookup_by_contact(_contact(1)).unwrap()), 1)


class ConcurrentApprovalTests(ConcurrentDeskTestCase):
    def test_overlapping_approvals_never_share_numbers(self) -> None:
        # Two direct tickets plus 2 x 5 extras fill the pool exactly.
        desk = self._desk(RaffleSettings(pool_size=12))
        request_ids = []
        for i in (1, 2):
            desk.register(f"Person Number{i}", _contact(i), i).unwrap()
            request = desk.submit_extra_request(
                f"Person Number{i}", _contact(i), 7, proof_ref=f"file:///p/{i}.jpg"
            ).unwrap()
            request_ids.append(request.id)

        outcomes = self._run_all(desk.approve, request_ids)

        self.assertTrue(all(o.ok for o in outcomes), [o.error for o in outcomes])
        granted = [p.number for o in outcomes for p in o.value]
        self.assertEqual(len(granted), 10)
        self.assertEqual(len(set(granted)), 10)
        self.assertEqual(desk.claimed_numbers().unwrap(), set(range(1, 13)))

    def test_same_request_is_approved_once(self) -> None:
        desk = self._desk(RaffleSettings(pool_size=100))
        desk.register("Alice Souza", _contact(1), 1).unwrap()
        request = desk.submit_extra_request(
            "Alice Souza", _contact(1), 7, proof_ref="file:///p/1.jpg"
        ).unwrap()

        outcomes = self._run_all(desk.approve, [request.id] * 4)
        self.assertEqual(sum(1 for o in outcomes if o.ok), 1)
        self.assertTrue(
            all(o.error.code == "invalid_state" for o in outcomes if not o.ok)
        )
        self.assertEqual(desk.participant_count().unwrap(), 6)


class ConcurrentDrawTests(ConcurrentDeskTestCase):
    def test_only_one_draw_succeeds(self) -> None:
        desk = self._desk(RaffleSettings(pool_size=100))
        for i in range(1, 6):
            desk.register(f"Person Number{i}", _contact(i), i).unwrap()

        outcomes = self._run_all(lambda _: desk.draw(), list(range(6)))

        winners = [o.value for o in outcomes if o.ok]
        self.assertEqual(len(winners), 1)
        self.assertTrue(
            all(isinstance(o.error, AlreadyDrawn) for o in outcomes if not o.ok)
        )
        self.assertEqual(desk.draw_status().unwrap().id, winners[0].id)


if __name__ == "__main__":
    unittest.main()
