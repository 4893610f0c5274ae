"""Public operation surface of the raffle subsystem."""

from __future__ import annotations

import logging
import os
import random
from dataclasses import dataclass
from typing import Any, BinaryIO, Callable, Generic, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from . import workflows
from .allocation import NumberPoolAllocator
from .config import RaffleSettings
from .db.engine import READ_ONLY_OPTION, get_sessionmaker, make_engine
from .draw import DrawEngine
from .errors import (
    ContactAlreadyRegistered,
    InvalidInput,
    PermissionDenied,
    RaffleError,
    StoreUnavailable,
)
from .models import DrawOutcome, ExtraNumberRequest, Participant
from .notify import LoggingNotifier, Notifier
from .storage import HttpProofStorage, LocalProofStorage, ProofStorage

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of one raffle operation: either ``value`` or a typed ``error``.

    Attributes
    ----------
    value : Optional[T]
        Operation result when it succeeded.
    error : Optional[RaffleError]
        Failure when it did not. Conflict errors carry the data a UI needs to
        offer a recovery path (e.g. the existing tickets of a contact).
    """

    value: Optional[T] = None
    error: Optional[RaffleError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def retryable(self) -> bool:
        return self.error is not None and self.error.retryable

    def unwrap(self) -> T:
        """Return ``value`` or raise ``error``."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


class RaffleDesk:
    """Entry point used by the web/UI layer.

    Every operation runs in its own ``Session.begin()`` transaction, so each one
    is atomic against the store. Expected failures come back as
    :class:`Outcome` errors instead of exceptions. Collaborator side effects
    (notifications, proof deletion) run after commit and cannot undo it.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        settings: Optional[RaffleSettings] = None,
        proof_storage: Optional[ProofStorage] = None,
        notifier: Optional[Notifier] = None,
        is_operator: Optional[Callable[[], bool]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Create the operation surface.

        Parameters
        ----------
        session_factory : sessionmaker
            Factory bound to the raffle database. Use
            :func:`raffledesk.db.engine.get_sessionmaker` so that returned rows
            stay readable after commit.
        settings : Optional[RaffleSettings], default: None
            Pool and pricing configuration.
        proof_storage : Optional[ProofStorage], default: None
            Collaborator keeping proof files. Required to upload proofs through
            :meth:`submit_extra_request`; optional when callers pass a
            ``proof_ref`` they stored themselves.
        notifier : Optional[Notifier], default: None
            Fire-and-forget UI signalling. Defaults to :class:`LoggingNotifier`.
        is_operator : Optional[Callable[[], bool]], default: None
            Predicate from the session provider. Operator-only operations are
            denied when it is missing or returns ``False``.
        rng : Optional[random.Random], default: None
            Random source shared by allocation and draw.
        """

        self._session_factory = session_factory
        self.settings = settings or RaffleSettings()
        self._proof_storage = proof_storage
        self._notifier = notifier or LoggingNotifier()
        self._is_operator = is_operator or (lambda: False)
        self._rng = rng or random.SystemRandom()

    @classmethod
    def from_env(cls, **kwargs: Any) -> "RaffleDesk":
        """Build a desk from environment configuration (see :class:`RaffleSettings`).

        Proofs go to :class:`HttpProofStorage` when ``PROOF_STORAGE_BASE_FQDN``
        is set and to a local directory otherwise.
        """

        settings = kwargs.pop("settings", None) or RaffleSettings.from_env()
        engine = make_engine(
            isolation_level=settings.db_isolation_level,
            timeout=settings.db_timeout,
        )
        if "proof_storage" not in kwargs:
            if os.getenv("PROOF_STORAGE_BASE_FQDN"):
                kwargs["proof_storage"] = HttpProofStorage()
            else:
                kwargs["proof_storage"] = LocalProofStorage(settings.proof_storage_dir)
        return cls(get_sessionmaker(engine), settings=settings, **kwargs)

    # -------- plumbing --------
    def _signal(self, event: str, payload: Optional[dict] = None) -> None:
        try:
            self._notifier.notify(event, payload or {})
        except Exception:
            logger.warning("Notifier failed for event %s", event, exc_info=True)

    def _fail(self, operation: str, error: RaffleError) -> Outcome:
        self._signal(
            f"{operation}_failed",
            {"code": error.code, "message": error.message, "retryable": error.retryable},
        )
        return Outcome(error=error)

    def _run(
        self,
        operation: str,
        fn: Callable[[Session], T],
        *,
        operator: bool = False,
        read_only: bool = False,
    ) -> Outcome[T]:
        if operator and not self._is_operator():
            return self._fail(operation, PermissionDenied(operation))
        try:
            with self._session_factory.begin() as session:
                if read_only:
                    session.connection(execution_options={READ_ONLY_OPTION: True})
                try:
                    value = fn(session)
                except RaffleError as exc:
                    self._detach(session, exc)
                    raise
        except RaffleError as exc:
            logger.info("%s rejected: %s", operation, exc.message)
            return self._fail(operation, exc)
        except PoolTimeoutError as exc:
            logger.warning("%s timed out waiting for a connection", operation)
            return self._fail(operation, StoreUnavailable(f"Store timeout: {exc}"))
        except DBAPIError as exc:
            if not isinstance(exc, OperationalError) and not exc.connection_invalidated:
                raise
            logger.warning("%s failed against the store: %s", operation, exc.orig)
            return self._fail(
                operation,
                StoreUnavailable(f"Store unavailable, outcome unknown: {exc.orig}"),
            )
        return Outcome(value=value)

    @staticmethod
    def _detach(session: Session, error: RaffleError) -> None:
        # Rollback expires every attached row; detached rows keep their loaded state.
        for record in error.records():
            if record in session:
                session.expunge(record)

    def _allocator(self) -> NumberPoolAllocator:
        return NumberPoolAllocator(self.settings.pool_size, rng=self._rng)

    # -------- participants --------
    def register(self, name: str, contact: str, number: int) -> Outcome[Participant]:
        outcome = self._run(
            "register",
            lambda s: workflows.register_participant(
                s, name, contact, number, settings=self.settings
            ),
        )
        if outcome.ok:
            self._signal("participant_registered", outcome.value.to_json())
        elif isinstance(outcome.error, ContactAlreadyRegistered) and not (
            outcome.error.participants
        ):
            # Detected by the unique index only; fetch the winning rows now.
            existing = self.lookup_by_contact(outcome.error.contact)
            if existing.ok:
                outcome.error.participants = existing.value
        return outcome

    def lookup_by_contact(self, contact: str) -> Outcome[list[Participant]]:
        return self._run(
            "lookup_by_contact",
            lambda s: workflows.lookup_participants(s, contact),
            read_only=True,
        )

    def list_participants(self) -> Outcome[list[Participant]]:
        return self._run(
            "list_participants",
            workflows.list_participants,
            operator=True,
            read_only=True,
        )

    def remove(self, participant_id: int) -> Outcome[Participant]:
        outcome = self._run(
            "remove",
            lambda s: workflows.remove_participant(s, participant_id),
            operator=True,
        )
        if outcome.ok:
            self._signal("participant_removed", {"id": participant_id})
        return outcome

    # -------- extra-number requests --------
    def submit_extra_request(
        self,
        name: str,
        contact: str,
        purchase_amount: Any,
        *,
        proof_ref: Optional[str] = None,
        proof: Optional[BinaryIO] = None,
        proof_filename: Optional[str] = None,
    ) -> Outcome[ExtraNumberRequest]:
        """Submit a request, uploading ``proof`` first when a file is given.

        A proof upload failure blocks the submission and comes back as a
        retryable :class:`~raffledesk.errors.ProofStorageError`; no request is
        stored. If the submission itself is rejected the freshly uploaded proof
        is deleted again.
        """

        uploaded: Optional[str] = None
        if proof is not None:
            if self._proof_storage is None:
                return self._fail(
                    "submit_extra_request",
                    InvalidInput("no proof storage is configured", field="proof"),
                )
            try:
                uploaded = self._proof_storage.store(proof, proof_filename or "proof")
            except RaffleError as exc:
                return self._fail("submit_extra_request", exc)
            proof_ref = uploaded

        outcome = self._run(
            "submit_extra_request",
            lambda s: workflows.submit_extra_request(
                s, name, contact, purchase_amount, proof_ref or "", settings=self.settings
            ),
        )
        if outcome.ok:
            self._signal("extra_request_submitted", outcome.value.to_json())
        elif uploaded is not None:
            self._delete_proofs([uploaded])
        return outcome

    def approve(self, request_id: int) -> Outcome[list[Participant]]:
        outcome = self._run(
            "approve",
            lambda s: workflows.approve_extra_request(
                s, request_id, settings=self.settings, allocator=self._allocator()
            ),
            operator=True,
        )
        if outcome.ok:
            self._signal(
                "extra_request_approved",
                {"id": request_id, "numbers": [p.number for p in outcome.value]},
            )
        return outcome

    def reject(self, request_id: int) -> Outcome[ExtraNumberRequest]:
        outcome = self._run(
            "reject",
            lambda s: workflows.reject_extra_request(s, request_id),
            operator=True,
        )
        if outcome.ok:
            self._signal("extra_request_rejected", {"id": request_id})
        return outcome

    def list_requests(
        self, status: Optional[str] = None
    ) -> Outcome[list[ExtraNumberRequest]]:
        return self._run(
            "list_requests",
            lambda s: workflows.list_extra_requests(s, status),
            operator=True,
            read_only=True,
        )

    # -------- draw --------
    def draw(self) -> Outcome[DrawOutcome]:
        outcome = self._run(
            "draw", lambda s: workflows.run_draw(s, rng=self._rng), operator=True
        )
        if outcome.ok:
            self._signal("draw_completed", outcome.value.to_json())
        return outcome

    def draw_status(self) -> Outcome[Optional[DrawOutcome]]:
        return self._run(
            "draw_status", lambda s: DrawEngine(s).status(), read_only=True
        )

    # -------- reset --------
    def reset(self) -> Outcome[None]:
        outcome = self._run("reset", workflows.reset_raffle, operator=True)
        if not outcome.ok:
            return outcome
        self._delete_proofs(outcome.value or [])
        self._signal("raffle_reset", {"proofs": len(outcome.value or [])})
        return Outcome(value=None)

    def _delete_proofs(self, refs: list[str]) -> None:
        if not refs:
            return
        if self._proof_storage is None:
            logger.warning("No proof storage configured; %s proofs left behind", len(refs))
            return
        for ref in refs:
            try:
                self._proof_storage.delete(ref)
            except RaffleError as exc:
                logger.warning("Could not delete proof %s: %s", ref, exc.message)

    # -------- read model --------
    def claimed_numbers(self) -> Outcome[set[int]]:
        return self._run("claimed_numbers", workflows.claimed_numbers, read_only=True)

    def participant_count(self) -> Outcome[int]:
        return self._run(
            "participant_count", workflows.participant_count, read_only=True
        )

    def stats(self) -> Outcome[dict[str, Any]]:
        return self._run(
            "stats", lambda s: workflows.raffle_stats(s, self.settings), read_only=True
        )


__all__ = ["Outcome", "RaffleDesk"]
