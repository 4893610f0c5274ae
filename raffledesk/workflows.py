"""Transactional raffle workflows.

Each function works inside the caller's SQLAlchemy transaction and only
flushes; committing (or rolling back on a raised :class:`RaffleError`) is the
caller's job. :class:`raffledesk.service.RaffleDesk` wraps every call in its own
``Session.begin()`` block so that each operation is one atomic unit.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .allocation import NumberPoolAllocator
from .config import RaffleSettings
from .draw import DrawEngine
from .errors import (
    BelowMinimumPurchase,
    ContactAlreadyRegistered,
    DuplicatePendingRequest,
    InvalidInput,
    InvalidState,
    NotFound,
    NumberTaken,
)
from .models import (
    ORIGIN_DIRECT,
    ORIGIN_EXTRA,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    DrawOutcome,
    ExtraNumberRequest,
    OperationLog,
    Participant,
    RaffleCycle,
)
from .validation import (
    canonical_contact,
    parse_amount,
    validate_contact,
    validate_name,
    validate_number,
)

logger = logging.getLogger(__name__)


def register_participant(
    session: Session,
    name: str,
    contact: str,
    number: int,
    *,
    settings: Optional[RaffleSettings] = None,
) -> Participant:
    """Claim ``number`` for a first-time contact.

    Checks run in this order, all before any write:

    1. ``number`` lies in ``1..pool_size``.
    2. ``number`` is not already claimed.
    3. ``contact`` holds no ticket yet in the current cycle.
    4. ``name`` has at least two words and ``contact`` is well formed.

    Parameters
    ----------
    session : Session
        Session whose transaction the registration runs in.
    name : str
        Full name of the participant.
    contact : str
        Phone contact; eleven digits in any layout are canonicalised.
    number : int
        Requested ticket number.
    settings : Optional[RaffleSettings], default: None
        Pool configuration; defaults to :class:`RaffleSettings` defaults.

    Returns
    -------
    Participant
        The new ``direct`` ticket with its primary key populated.

    Raises
    ------
    InvalidInput, NumberTaken, ContactAlreadyRegistered
        See the check order above. A concurrent claim that slips past the checks
        is caught by the store's unique constraints and reported the same way;
        a contact caught there carries no ``participants``.
    """

    settings = settings or RaffleSettings()
    validate_number(number, settings.pool_size)
    contact = canonical_contact(contact)

    cycle = RaffleCycle.current(session)

    holder = Participant.get_by_number(session, cycle.id, number)
    if holder is not None:
        raise NumberTaken(number, own_claim=holder.contact == contact)

    existing = Participant.list_by_contact(session, cycle.id, contact)
    if existing:
        raise ContactAlreadyRegistered(contact, existing)

    name = validate_name(name)
    validate_contact(contact)

    participant = Participant(
        cycle_id=cycle.id,
        name=name,
        contact=contact,
        number=number,
        origin=ORIGIN_DIRECT,
    )
    session.add(participant)
    try:
        session.flush()
    except IntegrityError as exc:
        # Lost a race against a concurrent writer; the transaction is unusable
        # now, so report which constraint fired without querying again.
        if "contact" in str(exc.orig).lower():
            raise ContactAlreadyRegistered(contact) from exc
        raise NumberTaken(number) from exc

    logger.info("Registered ticket %s for %s", number, contact)
    return participant


def lookup_participants(session: Session, contact: str) -> list[Participant]:
    """Return every ticket (direct and extra) held by ``contact``; may be empty."""

    contact = canonical_contact(contact)
    cycle = RaffleCycle.current(session, create=False)
    if cycle is None:
        return []
    return Participant.list_by_contact(session, cycle.id, contact)


def list_participants(session: Session) -> list[Participant]:
    """Every ticket of the current cycle, most recent registration first."""

    cycle = RaffleCycle.current(session, create=False)
    if cycle is None:
        return []
    stmt = (
        select(Participant)
        .where(Participant.cycle_id == cycle.id)
        .order_by(Participant.registered_at.desc(), Participant.id.desc())
    )
    return list(session.scalars(stmt).all())


def remove_participant(session: Session, participant_id: int) -> Participant:
    """Hard-delete one ticket; its number becomes available immediately.

    Raises
    ------
    NotFound
        If no participant has ``participant_id``.
    InvalidState
        If the participant is the drawn winner. Only a reset undoes a draw.
    """

    participant = session.get(Participant, participant_id)
    if participant is None:
        raise NotFound(f"Participant {participant_id} does not exist")

    outcome = DrawOutcome.get_for_cycle(session, participant.cycle_id)
    if outcome is not None and outcome.participant_id == participant.id:
        raise InvalidState("The drawn winner cannot be removed; reset the raffle instead")

    OperationLog.record(
        session,
        "participant_removed",
        Participant.__tablename__,
        subject_id=participant.id,
        cycle_id=participant.cycle_id,
        details={
            "number": participant.number,
            "contact": participant.contact,
            "origin": participant.origin,
        },
    )
    session.delete(participant)
    session.flush()
    logger.info("Removed ticket %s (participant %s)", participant.number, participant_id)
    return participant


def submit_extra_request(
    session: Session,
    name: str,
    contact: str,
    purchase_amount: Any,
    proof_ref: str,
    *,
    settings: Optional[RaffleSettings] = None,
) -> ExtraNumberRequest:
    """Record a pending request for extra tickets backed by a purchase proof.

    The extra ticket count is ``floor(amount / unit_price) * tickets_per_unit``.

    Raises
    ------
    InvalidInput
        Malformed name, contact, amount or an empty ``proof_ref``.
    BelowMinimumPurchase
        If ``purchase_amount`` is lower than ``settings.unit_price``.
    NotFound
        If registration is required and ``contact`` holds no ticket.
    DuplicatePendingRequest
        If ``contact`` already waits on a pending request. This guard is not
        airtight under concurrency; duplicates are approved independently.
    """

    settings = settings or RaffleSettings()
    name = validate_name(name)
    contact = validate_contact(canonical_contact(contact))
    amount = parse_amount(purchase_amount)
    if amount < settings.unit_price:
        raise BelowMinimumPurchase(amount, settings.unit_price)
    if not isinstance(proof_ref, str) or not proof_ref.strip():
        raise InvalidInput("a proof of payment is required", field="proof_ref")

    cycle = RaffleCycle.current(session)

    if settings.require_registration_for_extras:
        if not Participant.list_by_contact(session, cycle.id, contact):
            raise NotFound(f"Contact {contact} has no registration in this raffle")

    pending = ExtraNumberRequest.pending_for_contact(session, cycle.id, contact)
    if pending is not None:
        raise DuplicatePendingRequest(pending)

    request = ExtraNumberRequest(
        cycle_id=cycle.id,
        name=name,
        contact=contact,
        purchase_amount=amount,
        extra_ticket_count=settings.extra_ticket_count(amount),
        proof_ref=proof_ref.strip(),
    )
    session.add(request)
    session.flush()
    logger.info(
        "Extra-number request %s submitted by %s for %s tickets",
        request.id,
        contact,
        request.extra_ticket_count,
    )
    return request


def _get_request(session: Session, request_id: int) -> ExtraNumberRequest:
    request = session.get(ExtraNumberRequest, request_id)
    if request is None:
        raise NotFound(f"Extra-number request {request_id} does not exist")
    return request


def _claim_pending(session: Session, request_id: int, **values: Any) -> None:
    """Conditionally move a pending request to a terminal state.

    The ``WHERE status = 'pending'`` guard makes the transition happen at most
    once even if two operators act on the same request concurrently.
    """

    result = session.execute(
        update(ExtraNumberRequest)
        .where(
            ExtraNumberRequest.id == request_id,
            ExtraNumberRequest.status == STATUS_PENDING,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidState(f"Extra-number request {request_id} is no longer pending")


def approve_extra_request(
    session: Session,
    request_id: int,
    *,
    settings: Optional[RaffleSettings] = None,
    allocator: Optional[NumberPoolAllocator] = None,
) -> list[Participant]:
    """Grant the tickets owed by a pending request.

    The claimed-number snapshot, the allocation, the status transition and the
    ticket inserts all happen in the caller's transaction; nothing is visible
    until it commits.

    Parameters
    ----------
    session : Session
        Session whose transaction the approval runs in.
    request_id : int
        Primary key of the request.
    settings : Optional[RaffleSettings], default: None
        Pool configuration.
    allocator : Optional[NumberPoolAllocator], default: None
        Allocator to use; built from ``settings`` when omitted.

    Returns
    -------
    list[Participant]
        One ``extra`` ticket per allocated number.

    Raises
    ------
    NotFound
        If the request does not exist.
    InvalidState
        If the request is not pending.
    InsufficientPool
        If the pool cannot cover the request. The request stays pending.
    NumberTaken
        If a concurrent writer claimed one of the picked numbers. The
        transaction must be rolled back; the request stays pending.
    """

    settings = settings or RaffleSettings()
    allocator = allocator or NumberPoolAllocator(settings.pool_size)

    request = _get_request(session, request_id)
    if not request.is_pending:
        raise InvalidState(
            f"Extra-number request {request_id} is already {request.status}"
        )

    claimed = Participant.claimed_numbers(session, request.cycle_id)
    numbers = allocator.allocate(claimed, request.extra_ticket_count)

    now = datetime.now(timezone.utc)
    _claim_pending(
        session,
        request.id,
        status=STATUS_APPROVED,
        completed_at=now,
        chosen_numbers=numbers,
    )

    participants = [
        Participant(
            cycle_id=request.cycle_id,
            name=request.name,
            contact=request.contact,
            number=number,
            origin=ORIGIN_EXTRA,
            extra_request_id=request.id,
            registered_at=now,
        )
        for number in numbers
    ]
    session.add_all(participants)
    OperationLog.record(
        session,
        "extra_numbers_generated",
        ExtraNumberRequest.__tablename__,
        subject_id=request.id,
        cycle_id=request.cycle_id,
        details={"numbers": numbers},
    )
    try:
        session.flush()
    except IntegrityError as exc:
        # The failed flush rolled the transaction back; loaded rows are expired.
        logger.warning(
            "Allocation for request %s collided with a concurrent claim", request_id
        )
        raise NumberTaken() from exc

    session.refresh(request)
    logger.info(
        "Approved request %s: %s tickets for %s",
        request.id,
        len(numbers),
        request.contact,
    )
    return participants


def reject_extra_request(session: Session, request_id: int) -> ExtraNumberRequest:
    """Close a pending request without granting tickets.

    Raises
    ------
    NotFound
        If the request does not exist.
    InvalidState
        If the request is not pending.
    """

    request = _get_request(session, request_id)
    if not request.is_pending:
        raise InvalidState(
            f"Extra-number request {request_id} is already {request.status}"
        )

    _claim_pending(
        session,
        request.id,
        status=STATUS_REJECTED,
        completed_at=datetime.now(timezone.utc),
    )
    OperationLog.record(
        session,
        "extra_request_rejected",
        ExtraNumberRequest.__tablename__,
        subject_id=request.id,
        cycle_id=request.cycle_id,
    )
    session.flush()
    session.refresh(request)
    logger.info("Rejected request %s", request.id)
    return request


def list_extra_requests(
    session: Session, status: Optional[str] = None
) -> list[ExtraNumberRequest]:
    """Requests of the current cycle, newest first, optionally by status."""

    if status is not None and status not in (
        STATUS_PENDING,
        STATUS_APPROVED,
        STATUS_REJECTED,
    ):
        raise InvalidInput(f"unknown request status '{status}'", field="status")

    cycle = RaffleCycle.current(session, create=False)
    if cycle is None:
        return []
    stmt = select(ExtraNumberRequest).where(ExtraNumberRequest.cycle_id == cycle.id)
    if status is not None:
        stmt = stmt.where(ExtraNumberRequest.status == status)
    stmt = stmt.order_by(
        ExtraNumberRequest.created_at.desc(), ExtraNumberRequest.id.desc()
    )
    return list(session.scalars(stmt).all())


def run_draw(session: Session, *, rng=None) -> DrawOutcome:
    """Draw the winner of the current cycle; see :meth:`DrawEngine.draw`."""

    outcome = DrawEngine(session, rng=rng).draw()
    OperationLog.record(
        session,
        "draw_completed",
        DrawOutcome.__tablename__,
        subject_id=outcome.id,
        cycle_id=outcome.cycle_id,
        details={"number": outcome.number, "total_tickets": outcome.total_tickets},
    )
    session.flush()
    return outcome


def reset_raffle(session: Session) -> list[str]:
    """Wipe participants, requests and draw outcomes and open a new cycle.

    Every row is deleted regardless of cycle, so re-running a reset that was
    interrupted before commit finishes the job. The proof references of the
    deleted requests are returned so the caller can delete the stored files
    once the transaction has committed.
    """

    previous = RaffleCycle.current(session)
    proof_refs = [
        ref
        for ref in session.scalars(select(ExtraNumberRequest.proof_ref)).all()
        if ref
    ]

    # Children first: outcomes reference participants, which reference requests.
    outcomes = session.execute(delete(DrawOutcome)).rowcount
    participants = session.execute(delete(Participant)).rowcount
    requests = session.execute(delete(ExtraNumberRequest)).rowcount

    previous.close()
    fresh = RaffleCycle()
    session.add(fresh)
    session.flush()

    OperationLog.record(
        session,
        "raffle_reset",
        RaffleCycle.__tablename__,
        subject_id=previous.id,
        cycle_id=fresh.id,
        details={
            "participants": participants,
            "requests": requests,
            "draw_outcomes": outcomes,
            "proofs": len(proof_refs),
        },
    )
    session.flush()
    logger.info(
        "Raffle reset: cycle %s closed (%s tickets, %s requests), cycle %s opened",
        previous.id,
        participants,
        requests,
        fresh.id,
    )
    return proof_refs


def claimed_numbers(session: Session) -> set[int]:
    cycle = RaffleCycle.current(session, create=False)
    if cycle is None:
        return set()
    return Participant.claimed_numbers(session, cycle.id)


def participant_count(session: Session) -> int:
    cycle = RaffleCycle.current(session, create=False)
    if cycle is None:
        return 0
    return Participant.count_for_cycle(session, cycle.id)


def raffle_stats(
    session: Session, settings: Optional[RaffleSettings] = None
) -> dict[str, Any]:
    """Availability and progress figures for dashboards."""

    settings = settings or RaffleSettings()
    cycle = RaffleCycle.current(session, create=False)
    reserved = contacts = 0
    outcome = None
    if cycle is not None:
        reserved = Participant.count_for_cycle(session, cycle.id)
        contacts = Participant.count_contacts(session, cycle.id)
        outcome = DrawOutcome.get_for_cycle(session, cycle.id)
    return {
        "cycle_id": cycle.id if cycle is not None else None,
        "total_participants": contacts,
        "reserved_numbers": reserved,
        "available_numbers": settings.pool_size - reserved,
        "reservation_rate": round(reserved / settings.pool_size * 100, 2),
        "is_draw_complete": outcome is not None,
        "winner": outcome.to_json() if outcome is not None else None,
    }
