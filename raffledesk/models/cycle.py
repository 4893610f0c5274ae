"""The raffle cycle: one run from first registration to reset."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import ID_TYPE, Base


class RaffleCycle(Base):
    """A versioned container for all mutable raffle state.

    Participants, extra-number requests and the draw outcome all point at the
    cycle they belong to. Resetting the raffle closes the current cycle and opens
    a fresh one, so "has this cycle been drawn" is a single lookup.
    """

    __tablename__ = "raffle_cycles"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<RaffleCycle(id={self.id}, started_at='{self.started_at}', "
            f"closed_at='{self.closed_at}')>"
        )

    @property
    def is_open(self) -> bool:
        return self.closed_at is None

    @classmethod
    def current(cls, session: Session, *, create: bool = True) -> Optional["RaffleCycle"]:
        """Return the open cycle, opening the first one when none exists.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        create : bool, default: True
            When ``False`` a missing cycle yields ``None`` instead of a new row.
        """

        stmt = (
            select(cls)
            .where(cls.closed_at.is_(None))
            .order_by(cls.id.desc())
            .limit(1)
        )
        cycle = session.scalar(stmt)
        if cycle is None and create:
            cycle = cls()
            session.add(cycle)
            session.flush()
        return cycle

    def close(self, when: Optional[datetime] = None) -> None:
        self.closed_at = when or datetime.now(timezone.utc)
