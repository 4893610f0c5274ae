"""Database model for the single draw outcome of a raffle cycle."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import ID_TYPE, Base
from ..db.utils import dt_iso

if TYPE_CHECKING:
    from .cycle import RaffleCycle
    from .participant import Participant


class DrawOutcome(Base):
    """The winning ticket of a cycle.

    ``UNIQUE(cycle_id)`` is what makes the draw a one-shot event: a second
    insert for the same cycle fails in the store even when two operators press
    the button at the same instant.
    """

    __tablename__ = "draw_outcomes"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    cycle_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("raffle_cycles.id", ondelete="CASCADE"), nullable=False
    )
    participant_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("participants.id", ondelete="RESTRICT"), nullable=False
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    """Winning ticket number."""

    winner_name: Mapped[str] = mapped_column(String(120), nullable=False)
    winner_contact: Mapped[str] = mapped_column(String(20), nullable=False)
    total_tickets: Mapped[int] = mapped_column(Integer, nullable=False)
    """Size of the participant set the winner was drawn from."""

    drawn_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    cycle: Mapped["RaffleCycle"] = relationship()
    participant: Mapped["Participant"] = relationship()

    __table_args__ = (UniqueConstraint("cycle_id", name="uq_draw_outcomes_cycle"),)

    def __repr__(self) -> str:
        return (
            f"<DrawOutcome(id={self.id}, cycle_id={self.cycle_id}, "
            f"number={self.number}, drawn_at='{self.drawn_at}')>"
        )

    @classmethod
    def get_for_cycle(cls, session: Session, cycle_id: int) -> Optional["DrawOutcome"]:
        """Return the outcome of ``cycle_id`` if it has been drawn."""

        return session.scalar(select(cls).where(cls.cycle_id == cycle_id))

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "participant_id": self.participant_id,
            "number": self.number,
            "winner_name": self.winner_name,
            "winner_contact": self.winner_contact,
            "total_tickets": self.total_tickets,
            "drawn_at": dt_iso(self.drawn_at),
        }
