import unittest
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import create_engine, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from raffledesk.models import (
    Base,
    DrawOutcome,
    ExtraNumberRequest,
    OperationLog,
    Participant,
    RaffleCycle,
)


class DBTestCase(unittest.TestCase):
    def setUp(self):
        # In-memory SQLite for isolation
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )

    def tearDown(self):
        self.engine.dispose()

    def _participant(self, cycle, number, contact="(11) 90000-0001", origin="direct"):
        return Participant(
            cycle_id=cycle.id,
            name="Ana Dias",
            contact=contact,
            number=number,
            origin=origin,
        )

    def test_current_cycle_is_created_once(self):
        with self.Session.begin() as session:
            first = RaffleCycle.current(session)
            self.assertTrue(first.is_open)
            self.assertEqual(RaffleCycle.current(session).id, first.id)
        with self.Session() as session:
            self.assertEqual(RaffleCycle.current(session, create=False).id, first.id)

    def test_current_without_create(self):
        with self.Session() as session:
            self.assertIsNone(RaffleCycle.current(session, create=False))

    def test_number_unique_per_cycle(self):
        with self.Session() as session:
            cycle = RaffleCycle.current(session)
            session.add(self._participant(cycle, 5))
            session.commit()

            session.add(self._participant(cycle, 5, contact="(11) 90000-0002"))
            with self.assertRaises(IntegrityError):
                session.commit()
            session.rollback()

            # The same number is free again in a new cycle.
            cycle.close()
            fresh = RaffleCycle()
            session.add(fresh)
            session.flush()
            session.add(self._participant(fresh, 5))
            session.commit()

    def test_direct_contact_unique_but_extras_allowed(self):
        with self.Session() as session:
            cycle = RaffleCycle.current(session)
            session.add(self._participant(cycle, 1))
            session.add(self._participant(cycle, 2, origin="extra"))
            session.add(self._participant(cycle, 3, origin="extra"))
            session.commit()
            self.assertEqual(
                [p.number for p in Participant.list_by_contact(session, cycle.id, "(11) 90000-0001")],
                [1, 2, 3],
            )
            self.assertEqual(Participant.count_contacts(session, cycle.id), 1)
            self.assertEqual(Participant.claimed_numbers(session, cycle.id), {1, 2, 3})

            session.add(self._participant(cycle, 4))
            with self.assertRaises(IntegrityError):
                session.commit()
            session.rollback()

    def test_number_and_origin_checks(self):
        with self.Session() as session:
            cycle = RaffleCycle.current(session)
            session.commit()
            session.add(self._participant(cycle, 0))
            with self.assertRaises(IntegrityError):
                session.commit()
            session.rollback()
            session.add(self._participant(cycle, 3, origin="gift"))
            with self.assertRaises(IntegrityError):
                session.commit()
            session.rollback()

    def test_request_status_and_completion_move_together(self):
        with self.Session() as session:
            cycle = RaffleCycle.current(session)
            request = ExtraNumberRequest(
                cycle_id=cycle.id,
                name="Ana Dias",
                contact="(11) 90000-0001",
                purchase_amount=Decimal("14.00"),
                extra_ticket_count=10,
                proof_ref="file:///p.jpg",
            )
            session.add(request)
            session.commit()
            self.assertTrue(request.is_pending)
            self.assertFalse(request.completed)
            self.assertEqual(
                ExtraNumberRequest.pending_for_contact(session, cycle.id, "(11) 90000-0001").id,
                request.id,
            )

            # "approved" without a completion timestamp is not representable.
            with self.assertRaises(IntegrityError):
                session.execute(
                    update(ExtraNumberRequest)
                    .where(ExtraNumberRequest.id == request.id)
                    .values(status="approved")
                )
            session.rollback()

            request.status = "approved"
            request.completed_at = datetime.now(timezone.utc)
            request.chosen_numbers = [4, 9]
            session.commit()
            payload = request.to_json()
            self.assertEqual(payload["purchase_amount"], "14.00")
            self.assertEqual(payload["chosen_numbers"], [4, 9])
            self.assertTrue(payload["completed"])
            self.assertIsNone(
                ExtraNumberRequest.pending_for_contact(session, cycle.id, "(11) 90000-0001")
            )

    def test_one_outcome_per_cycle(self):
        with self.Session() as session:
            cycle = RaffleCycle.current(session)
            winner = self._participant(cycle, 7)
            session.add(winner)
            session.flush()

            def outcome():
                return DrawOutcome(
                    cycle_id=cycle.id,
                    participant_id=winner.id,
                    number=winner.number,
                    winner_name=winner.name,
                    winner_contact=winner.contact,
                    total_tickets=1,
                )

            session.add(outcome())
            session.commit()
            self.assertEqual(DrawOutcome.get_for_cycle(session, cycle.id).number, 7)

            session.add(outcome())
            with self.assertRaises(IntegrityError):
                session.commit()
            session.rollback()

    def test_operation_log_details(self):
        with self.Session() as session:
            OperationLog.record(
                session,
                "extra_numbers_generated",
                "extra_number_requests",
                subject_id=3,
                details={"numbers": [1, 2]},
            )
            OperationLog.record(session, "raffle_reset", "raffle_cycles")
            session.commit()
            logs = OperationLog.list_by_action(session, "extra_numbers_generated")
            self.assertEqual(logs[0].details, {"numbers": [1, 2]})
            self.assertIsNone(OperationLog.list_by_action(session, "raffle_reset")[0].details)


if __name__ == "__main__":
    unittest.main()
