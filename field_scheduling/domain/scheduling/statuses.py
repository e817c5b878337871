"""Booking status vocabulary and transition rules"""

from enum import Enum
from typing import Optional


class BookingStatus(str, Enum):
    DRAFT = "draft"
    TENTATIVE = "tentative"
    PENDING_CONFIRM = "pending_confirm"
    CONFIRMED = "confirmed"
    COMPLETE = "complete"


class ConfirmationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    EXPIRED = "expired"


# Full cycle order; wraps from the last status back to the first
STATUS_ORDER: tuple[BookingStatus, ...] = (
    BookingStatus.DRAFT,
    BookingStatus.TENTATIVE,
    BookingStatus.PENDING_CONFIRM,
    BookingStatus.CONFIRMED,
    BookingStatus.COMPLETE,
)

# Only reachable through a customer confirmation request
PROTOCOL_ONLY_STATUSES = frozenset({BookingStatus.PENDING_CONFIRM})

# Statuses an operator may set by hand (cycle, manual set, bulk set)
MANUAL_STATUSES = tuple(s for s in STATUS_ORDER if s not in PROTOCOL_ONLY_STATUSES)

# Every assignment status holds the engineer's time; there is no declined assignment status
CONFLICT_ELIGIBLE_STATUSES = frozenset(STATUS_ORDER)

# Statuses engineers can see on their own schedule
ENGINEER_VISIBLE_STATUSES = frozenset(s for s in STATUS_ORDER if s != BookingStatus.DRAFT)

STATUS_LABELS = {
    BookingStatus.DRAFT: "Draft",
    BookingStatus.TENTATIVE: "Tentative",
    BookingStatus.PENDING_CONFIRM: "Pending Confirmation",
    BookingStatus.CONFIRMED: "Confirmed",
    BookingStatus.COMPLETE: "Complete",
}

# History notes written by the system
NOTE_INITIAL_ASSIGNMENT = "Initial assignment"
NOTE_STATUS_CYCLED = "Status cycled"
NOTE_CUSTOMER_CONFIRMED = "Customer confirmed via portal"
NOTE_REQUEST_CANCELLED = "Confirmation request cancelled"


def parse_status(value) -> BookingStatus:
    """Coerce a raw value to BookingStatus, raising ValueError for unknown statuses"""
    if isinstance(value, BookingStatus):
        return value
    try:
        return BookingStatus(value)
    except ValueError as e:
        raise ValueError(f"Invalid booking status: {value}") from e


def next_cycle_status(current) -> BookingStatus:
    """
    Next status when an operator clicks through the cycle.

    Protocol-only statuses are skipped, so a tentative assignment advances
    straight to confirmed and a pending_confirm one moves on to confirmed.
    Unknown values restart the cycle at draft.
    """
    try:
        index = STATUS_ORDER.index(parse_status(current))
    except ValueError:
        return BookingStatus.DRAFT

    for step in range(1, len(STATUS_ORDER) + 1):
        candidate = STATUS_ORDER[(index + step) % len(STATUS_ORDER)]
        if candidate not in PROTOCOL_ONLY_STATUSES:
            return candidate
    return BookingStatus.DRAFT


def is_manual_status(status) -> bool:
    try:
        return parse_status(status) not in PROTOCOL_ONLY_STATUSES
    except ValueError:
        return False


def is_visible_to_engineers(status: Optional[str], is_elevated: bool) -> bool:
    """Drafts are working notes for operators; everyone else sees committed work only"""
    if is_elevated:
        return True
    if status is None:
        return False
    try:
        return parse_status(status) in ENGINEER_VISIBLE_STATUSES
    except ValueError:
        return False


def decline_note(reason: Optional[str]) -> str:
    return f"Customer declined: {reason or 'No reason provided'}"


def sent_note(recipient_email: str) -> str:
    return f"Sent confirmation request to {recipient_email}"
