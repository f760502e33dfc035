# Overview: Document number allocation for work orders and delivery orders.

"""
Document Numbering

Numbers are human-readable, scoped to a period, assigned once at creation
and never regenerated:

    Work orders      WO-YYYYMMDD-NNNN      period = calendar day
    Delivery orders  NNN/SJ/<MONTH>/YYYY   period = month + year (roman month)

Allocation uses an atomic per-(document type, period) counter row
(document_sequences) incremented with a single UPDATE. The first time a
period is seen the counter is seeded from the numbers already issued in
that period, trashed documents included, so sequences continue where a
count-based scheme would have left off.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DeliveryOrder, DocumentSequence, WorkOrder
from backoffice.time_utils import roman_month, utcnow


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


@dataclass(frozen=True)
class NumberFormat:
    document_type: str
    model: type
    period_key: Callable[[datetime], str]
    render: Callable[[int, datetime], str]
    period_pattern: Callable[[datetime], str]  # SQL LIKE pattern for existing numbers


WORK_ORDER_FORMAT = NumberFormat(
    document_type="WORK_ORDER",
    model=WorkOrder,
    period_key=lambda now: now.strftime("%Y%m%d"),
    render=lambda seq, now: f"WO-{now:%Y%m%d}-{seq:04d}",
    period_pattern=lambda now: f"WO-{now:%Y%m%d}-%",
)

DELIVERY_ORDER_FORMAT = NumberFormat(
    document_type="DELIVERY_ORDER",
    model=DeliveryOrder,
    period_key=lambda now: now.strftime("%Y-%m"),
    render=lambda seq, now: f"{seq:03d}/SJ/{roman_month(now.month)}/{now.year}",
    period_pattern=lambda now: f"%/SJ/{roman_month(now.month)}/{now.year}",
)


def _existing_count(fmt: NumberFormat, now: datetime) -> int:
    # Query the model unfiltered: trashed documents keep their numbers
    return (
        db.session.query(fmt.model)
        .filter(fmt.model.number.like(fmt.period_pattern(now)))
        .count()
    )


def allocate(document_type: str, period: str, *, seed: Callable[[], int] = lambda: 0) -> int:
    """
    Atomically allocate the next sequence number for (document_type, period).

    seed() is consulted only when the period has no counter yet and returns
    how many numbers were already issued. Does not commit; the allocation
    becomes durable with the caller's transaction.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")
    if not period:
        raise DocumentSequenceError("period is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    def _bumped() -> int:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type, period=period)
            .scalar()
        )
        return current - 1

    result = db.session.execute(stmt)
    if result.rowcount:
        return _bumped()

    first = seed() + 1
    try:
        with db.session.begin_nested():
            db.session.add(DocumentSequence(
                document_type=document_type,
                period=period,
                next_number=first + 1,
            ))
        return first
    except IntegrityError:
        # Another transaction created the counter first
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise DocumentSequenceError(f"Could not allocate {document_type} number for {period}")
        return _bumped()


def next_number(fmt: NumberFormat, now: datetime | None = None) -> str:
    now = now or utcnow()
    seq = allocate(
        fmt.document_type,
        fmt.period_key(now),
        seed=lambda: _existing_count(fmt, now),
    )
    return fmt.render(seq, now)


def next_work_order_number(now: datetime | None = None) -> str:
    return next_number(WORK_ORDER_FORMAT, now)


def next_delivery_order_number(now: datetime | None = None) -> str:
    return next_number(DELIVERY_ORDER_FORMAT, now)
