"""
Ticket lifecycle rules.

    open -> in_progress -> under_review -> resolved   (terminal, archivable)
    any non-terminal -> closed                        (terminal, reopenable for 30 days)

Pure functions; elapsed time is measured from the last status change.
"""

from datetime import datetime, timedelta
from typing import Dict, FrozenSet

from licitadesk.core.exceptions import InvalidTransitionError
from licitadesk.db.enums import TicketStatus as T

NON_TERMINAL: FrozenSet[T] = frozenset({T.OPEN, T.IN_PROGRESS, T.UNDER_REVIEW})
TERMINAL: FrozenSet[T] = frozenset({T.RESOLVED, T.CLOSED})

FORWARD: Dict[T, FrozenSet[T]] = {
    T.OPEN: frozenset({T.IN_PROGRESS, T.UNDER_REVIEW, T.RESOLVED, T.CLOSED}),
    T.IN_PROGRESS: frozenset({T.UNDER_REVIEW, T.RESOLVED, T.CLOSED}),
    T.UNDER_REVIEW: frozenset({T.RESOLVED, T.CLOSED}),
    T.RESOLVED: frozenset(),
    T.CLOSED: frozenset(),
}


def check_forward(current: T, target: T) -> None:
    if target not in FORWARD[current]:
        raise InvalidTransitionError(
            f"Cannot move a ticket from {current.value} to {target.value}",
            current=current.value,
            requested=target.value,
        )


def can_reopen(current: T, status_changed_at: datetime, now: datetime, max_days: int = 30) -> bool:
    if current in NON_TERMINAL:
        return True
    if current == T.CLOSED:
        return now - status_changed_at <= timedelta(days=max_days)
    return False


def check_reopen(current: T, status_changed_at: datetime, now: datetime, max_days: int = 30) -> None:
    if current == T.RESOLVED:
        raise InvalidTransitionError(
            "Resolved tickets cannot be reopened",
            current=current.value,
            requested=T.OPEN.value,
        )
    if not can_reopen(current, status_changed_at, now, max_days):
        raise InvalidTransitionError(
            f"Closed tickets can only be reopened within {max_days} days",
            current=current.value,
            requested=T.OPEN.value,
        )


def can_delete(current: T, status_changed_at: datetime, now: datetime, min_days: int = 5) -> bool:
    return current == T.CLOSED and now - status_changed_at >= timedelta(days=min_days)


def check_delete(current: T, status_changed_at: datetime, now: datetime, min_days: int = 5) -> None:
    if current != T.CLOSED:
        raise InvalidTransitionError(
            "Only closed tickets can be deleted",
            current=current.value,
            requested="deleted",
        )
    if not can_delete(current, status_changed_at, now, min_days):
        raise InvalidTransitionError(
            f"Closed tickets can only be deleted after {min_days} days",
            current=current.value,
            requested="deleted",
        )


def check_archive(current: T) -> None:
    if current != T.RESOLVED:
        raise InvalidTransitionError(
            "Only resolved tickets can be archived",
            current=current.value,
            requested="archived",
        )
