"""Engine performing the one-shot random draw of a raffle cycle."""

from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import AlreadyDrawn, NoParticipants
from ..models import DrawOutcome, Participant, RaffleCycle

logger = logging.getLogger(__name__)


def pick_winner(
    participants: Sequence[Participant], rng: random.Random
) -> Participant:
    """Select one participant uniformly at random.

    Every row is an independent entry, so a contact holding ``k`` tickets is
    ``k`` times as likely to win as a contact holding one.

    Raises
    ------
    NoParticipants
        If ``participants`` is empty.
    """

    if not participants:
        raise NoParticipants()
    return participants[rng.randrange(len(participants))]


class DrawEngine:
    """Engine that draws and persists the winner of the current cycle."""

    def __init__(
        self,
        session: Session,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Create a draw engine bound to a SQLAlchemy session.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session used for lookups and persistence. The
            caller owns the transaction.
        rng : Optional[random.Random], default: None
            Random source; :class:`random.SystemRandom` unless a seeded
            generator is supplied.
        """

        self._session = session
        self._rng = rng or random.SystemRandom()

    def status(self, cycle: Optional[RaffleCycle] = None) -> Optional[DrawOutcome]:
        """Return the outcome of ``cycle`` (default: current) if drawn."""

        cycle = cycle or RaffleCycle.current(self._session, create=False)
        if cycle is None:
            return None
        return DrawOutcome.get_for_cycle(self._session, cycle.id)

    def draw(self, cycle: Optional[RaffleCycle] = None) -> DrawOutcome:
        """Draw the winner of ``cycle`` and persist the outcome.

        Notes
        -----
        The existence check below gives a precise error in the common case.
        The guarantee against two concurrent draws comes from the
        ``UNIQUE(cycle_id)`` constraint on :class:`DrawOutcome`: the losing
        insert fails on flush and is reported as :class:`AlreadyDrawn`.

        Raises
        ------
        AlreadyDrawn
            If the cycle already has an outcome.
        NoParticipants
            If the cycle has no tickets.
        """

        session = self._session
        cycle = cycle or RaffleCycle.current(session)
        cycle_id = cycle.id

        existing = DrawOutcome.get_for_cycle(session, cycle_id)
        if existing is not None:
            raise AlreadyDrawn(existing)

        # Ordered by id so that a seeded rng reproduces the same winner.
        participants = Participant.list_for_cycle(session, cycle_id)
        winner = pick_winner(participants, self._rng)

        outcome = DrawOutcome(
            cycle_id=cycle_id,
            participant_id=winner.id,
            number=winner.number,
            winner_name=winner.name,
            winner_contact=winner.contact,
            total_tickets=len(participants),
            drawn_at=datetime.now(timezone.utc),
        )
        session.add(outcome)
        try:
            session.flush()
        except IntegrityError as exc:
            # Rows in the session are expired now; only use plain locals here.
            logger.info("Concurrent draw detected for cycle %s", cycle_id)
            raise AlreadyDrawn() from exc

        logger.info(
            "Cycle %s drawn: ticket %s out of %s",
            cycle_id,
            winner.number,
            len(participants),
        )
        return outcome


__all__ = ["DrawEngine", "pick_winner"]
