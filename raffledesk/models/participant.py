from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
    select,
    text,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import ID_TYPE, Base
from ..db.utils import dt_iso

if TYPE_CHECKING:
    from .extra_request import ExtraNumberRequest

ORIGIN_DIRECT = "direct"
ORIGIN_EXTRA = "extra"


class Participant(Base):
    """One ticket held by a contact.

    Every ticket is its own row: the free ticket claimed through direct
    registration has origin ``"direct"`` and each ticket granted by an approved
    extra-number request has origin ``"extra"``. Rows are never updated after
    creation.
    """

    def __init__(
        self,
        *,
        cycle_id: int,
        name: str,
        contact: str,
        number: int,
        origin: str = ORIGIN_DIRECT,
        extra_request_id: Optional[int] = None,
        registered_at: Optional[datetime] = None,
    ):
        self.cycle_id = cycle_id
        self.name = name
        self.contact = contact
        self.number = number
        self.origin = origin
        self.extra_request_id = extra_request_id
        if registered_at is not None:
            self.registered_at = registered_at

    __tablename__ = "participants"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    cycle_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("raffle_cycles.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    contact: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    origin: Mapped[str] = mapped_column(
        String(10), nullable=False, default=ORIGIN_DIRECT
    )
    extra_request_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE,
        ForeignKey("extra_number_requests.id", ondelete="SET NULL"),
        nullable=True,
    )
    registered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    extra_request: Mapped[Optional["ExtraNumberRequest"]] = relationship(
        back_populates="participants"
    )

    __table_args__ = (
        UniqueConstraint("cycle_id", "number", name="uq_participants_cycle_number"),
        # One direct registration per contact; extras share the contact freely.
        Index(
            "uq_participants_cycle_direct_contact",
            "cycle_id",
            "contact",
            unique=True,
            sqlite_where=text("origin = 'direct'"),
            postgresql_where=text("origin = 'direct'"),
        ),
        CheckConstraint("number >= 1", name="number_positive"),
        CheckConstraint("origin IN ('direct','extra')", name="origin_enum"),
    )

    def __repr__(self) -> str:
        return (
            f"<Participant(id={self.id}, number={self.number}, "
            f"contact='{self.contact}', origin='{self.origin}')>"
        )

    @property
    def is_extra(self) -> bool:
        return self.origin == ORIGIN_EXTRA

    @classmethod
    def get_by_number(
        cls, session: Session, cycle_id: int, number: int
    ) -> Optional["Participant"]:
        """Retrieve the holder of ``number`` in the given cycle."""

        return session.scalar(
            select(cls).where(cls.cycle_id == cycle_id, cls.number == number)
        )

    @classmethod
    def list_by_contact(
        cls, session: Session, cycle_id: int, contact: str
    ) -> list["Participant"]:
        """Every ticket held by ``contact`` in the cycle, lowest number first."""

        stmt = (
            select(cls)
            .where(cls.cycle_id == cycle_id, cls.contact == contact)
            .order_by(cls.number.asc())
        )
        return list(session.scalars(stmt).all())

    @classmethod
    def list_for_cycle(cls, session: Session, cycle_id: int) -> list["Participant"]:
        stmt = select(cls).where(cls.cycle_id == cycle_id).order_by(cls.id.asc())
        return list(session.scalars(stmt).all())

    @classmethod
    def claimed_numbers(cls, session: Session, cycle_id: int) -> set[int]:
        """Snapshot of every ticket number claimed in the cycle."""

        return set(session.scalars(select(cls.number).where(cls.cycle_id == cycle_id)))

    @classmethod
    def count_for_cycle(cls, session: Session, cycle_id: int) -> int:
        return session.scalar(
            select(func.count(cls.id)).where(cls.cycle_id == cycle_id)
        ) or 0

    @classmethod
    def count_contacts(cls, session: Session, cycle_id: int) -> int:
        """Number of distinct contacts holding at least one ticket."""

        return session.scalar(
            select(func.count(func.distinct(cls.contact))).where(
                cls.cycle_id == cycle_id
            )
        ) or 0

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "contact": self.contact,
            "number": self.number,
            "origin": self.origin,
            "extra_request_id": self.extra_request_id,
            "registered_at": dt_iso(self.registered_at),
        }
