from __future__ import annotations

import random
import unittest
from collections import Counter
from types import SimpleNamespace
from unittest.mock import patch

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from raffledesk.draw import DrawEngine, pick_winner
from raffledesk.errors import AlreadyDrawn, NoParticipants
from raffledesk.models import Base, DrawOutcome, Participant, RaffleCycle


class FixedIndexRandom(random.Random):
    """Random source whose ``randrange`` always lands on ``index``."""

    def __init__(self, index: int):
        super().__init__(0)
        self.index = index
        self.calls: list[tuple] = []

    def randrange(self, *args, **kwargs):  # type: ignore[override]
        self.calls.append(args)
        return self.index


class PickWinnerTests(unittest.TestCase):
    def test_empty_raises(self) -> None:
        with self.assertRaises(NoParticipants):
            pick_winner([], random.Random(0))

    def test_weight_is_proportional_to_tickets(self) -> None:
        # Contact "a" holds three tickets, "b" one: expected split 3:1.
        entries = [
            SimpleNamespace(contact="a", number=1),
            SimpleNamespace(contact="a", number=2),
            SimpleNamespace(contact="a", number=3),
            SimpleNamespace(contact="b", number=4),
        ]
        rng = random.Random(1234)
        trials = 40000
        wins = Counter(pick_winner(entries, rng).contact for _ in range(trials))
        self.assertAlmostEqual(wins["a"] / trials, 0.75, delta=0.01)
        self.assertAlmostEqual(wins["b"] / trials, 0.25, delta=0.01)


class DrawEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )

    def tearDown(self) -> None:
        self.engine.dispose()

    def _seed(self, session) -> list[Participant]:
        cycle = RaffleCycle.current(session)
        rows = [
            Participant(cycle_id=cycle.id, name="Ana Dias", contact="(11) 90000-0001", number=10),
            Participant(
                cycle_id=cycle.id,
                name="Ana Dias",
                contact="(11) 90000-0001",
                number=20,
                origin="extra",
            ),
            Participant(cycle_id=cycle.id, name="Rui Melo", contact="(11) 90000-0002", number=30),
        ]
        session.add_all(rows)
        session.flush()
        return rows

    def test_draw_uses_sampling_hook(self) -> None:
        with self.Session.begin() as session:
            rows = self._seed(session)
            rng = FixedIndexRandom(1)
            outcome = DrawEngine(session, rng=rng).draw()
            self.assertEqual(rng.calls, [(3,)])
            self.assertEqual(outcome.participant_id, rows[1].id)
            self.assertEqual(outcome.number, 20)
            self.assertEqual(outcome.winner_contact, "(11) 90000-0001")
            self.assertEqual(outcome.total_tickets, 3)

    def test_status_and_second_draw(self) -> None:
        with self.Session.begin() as session:
            self._seed(session)
            engine = DrawEngine(session, rng=random.Random(3))
            self.assertIsNone(engine.status())
            outcome = engine.draw()
            self.assertEqual(engine.status().id, outcome.id)
            with self.assertRaises(AlreadyDrawn) as ctx:
                engine.draw()
            self.assertEqual(ctx.exception.outcome.id, outcome.id)

    def test_no_participants(self) -> None:
        with self.Session() as session:
            with self.assertRaises(NoParticipants):
                DrawEngine(session).draw()

    def test_concurrent_insert_reported_as_already_drawn(self) -> None:
        with self.Session.begin() as session:
            self._seed(session)
            DrawEngine(session, rng=random.Random(3)).draw()

        session = self.Session()
        try:
            # Simulate the check losing a race: the unique constraint still fires.
            with patch.object(DrawOutcome, "get_for_cycle", return_value=None):
                with self.assertRaises(AlreadyDrawn) as ctx:
                    DrawEngine(session, rng=random.Random(4)).draw()
            self.assertIsInstance(ctx.exception.__cause__, IntegrityError)
            session.rollback()
        finally:
            session.close()


if __name__ == "__main__":
    unittest.main()
