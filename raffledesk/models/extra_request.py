"""Database model for extra-number purchase requests."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import ID_TYPE, Base
from ..db.utils import dt_iso

if TYPE_CHECKING:
    from .participant import Participant

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"


class ExtraNumberRequest(Base):
    """A purchase proof submitted in exchange for extra ticket numbers.

    A request is created ``pending`` and moves exactly once to ``approved`` or
    ``rejected``. Both terminal states set ``completed_at`` in the same write, so
    a request is never observed as decided but not completed.
    """

    __tablename__ = "extra_number_requests"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    cycle_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("raffle_cycles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    """Cycle the request was submitted in."""

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    """Requester full name; copied onto every ticket granted."""

    contact: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    """Requester contact identity in canonical phone format."""

    purchase_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    """Declared purchase amount."""

    extra_ticket_count: Mapped[int] = mapped_column(Integer, nullable=False)
    """Tickets owed on approval, computed at submission time."""

    proof_ref: Mapped[str] = mapped_column(Text, nullable=False)
    """Opaque URI of the stored proof of payment."""

    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default=STATUS_PENDING
    )
    """``"pending"``, ``"approved"`` or ``"rejected"``."""

    chosen_numbers: Mapped[list[int]] = mapped_column(
        JSON, nullable=False, default=list
    )
    """Ticket numbers granted on approval; empty otherwise."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """Set together with the terminal status."""

    participants: Mapped[list["Participant"]] = relationship(
        back_populates="extra_request"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','approved','rejected')", name="status_enum"
        ),
        CheckConstraint(
            "(status = 'pending' AND completed_at IS NULL) OR "
            "(status <> 'pending' AND completed_at IS NOT NULL)",
            name="completed_matches_status",
        ),
        CheckConstraint("extra_ticket_count >= 0", name="ticket_count_non_negative"),
    )

    def __init__(
        self,
        *,
        cycle_id: int,
        name: str,
        contact: str,
        purchase_amount: Decimal,
        extra_ticket_count: int,
        proof_ref: str,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.cycle_id = cycle_id
        self.name = name
        self.contact = contact
        self.purchase_amount = purchase_amount
        self.extra_ticket_count = extra_ticket_count
        self.proof_ref = proof_ref
        self.status = STATUS_PENDING
        self.chosen_numbers = []
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<ExtraNumberRequest(id={id}, contact={contact}, status={status})>".format(
            id=self.id,
            contact=self.contact,
            status=self.status,
        )

    @property
    def completed(self) -> bool:
        return self.completed_at is not None

    @property
    def is_pending(self) -> bool:
        return self.status == STATUS_PENDING

    @classmethod
    def pending_for_contact(
        cls, session: Session, cycle_id: int, contact: str
    ) -> Optional["ExtraNumberRequest"]:
        """Return the oldest pending request for ``contact`` if one exists."""

        stmt = (
            select(cls)
            .where(
                cls.cycle_id == cycle_id,
                cls.contact == contact,
                cls.status == STATUS_PENDING,
            )
            .order_by(cls.created_at.asc(), cls.id.asc())
            .limit(1)
        )
        return session.scalar(stmt)

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "contact": self.contact,
            "purchase_amount": str(self.purchase_amount),
            "extra_ticket_count": self.extra_ticket_count,
            "proof_ref": self.proof_ref,
            "status": self.status,
            "completed": self.completed,
            "chosen_numbers": list(self.chosen_numbers or []),
            "created_at": dt_iso(self.created_at),
            "completed_at": dt_iso(self.completed_at),
        }
