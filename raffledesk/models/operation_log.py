from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime, Integer, String, Text, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import ID_TYPE, Base


class OperationLog(Base):
    """Append-only record of operator actions.

    Rows are not tied to a cycle by foreign key so that the trail survives
    resets.
    """

    __tablename__ = "operation_logs"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    cycle_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    subject_table: Mapped[str] = mapped_column(String(50), nullable=False)
    subject_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    details_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @classmethod
    def record(
        cls,
        session: Session,
        action: str,
        subject_table: str,
        *,
        subject_id: Optional[int] = None,
        cycle_id: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> "OperationLog":
        """Add a log row to ``session``; it commits with the surrounding transaction."""

        entry = cls(
            cycle_id=cycle_id,
            action=action,
            subject_table=subject_table,
            subject_id=subject_id,
            details_json=(
                json.dumps(details, ensure_ascii=False, default=str)
                if details is not None
                else None
            ),
        )
        session.add(entry)
        return entry

    @classmethod
    def list_by_action(cls, session: Session, action: str) -> list["OperationLog"]:
        stmt = select(cls).where(cls.action == action).order_by(cls.id.asc())
        return list(session.scalars(stmt).all())

    @property
    def details(self) -> Optional[dict[str, Any]]:
        if self.details_json is None:
            return None
        return json.loads(self.details_json)
