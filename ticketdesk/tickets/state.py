from __future__ import annotations

from enum import Enum


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    DRAFT = "DRAFT"
    REVIEW = "REVIEW"
    PENDING = "PENDING"
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class TicketSeverity(str, Enum):
    """Urgency classification, declared from lowest to highest."""

    EASY = "EASY"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANKS[self]


_SEVERITY_RANKS: dict[TicketSeverity, int] = {
    severity: index for index, severity in enumerate(TicketSeverity)
}


class TicketStateMachine:
    """Workflow rules for the severity-review lifecycle.

    DRAFT tickets wait for a manager review. A review that raises severity
    sends the ticket back to REVIEW for the creator; anything else approves it
    into PENDING. The creator answers a REVIEW by revising details, which
    resets the ticket to DRAFT. OPEN and CLOSED are only set by external
    systems through the CSV import.
    """

    _TERMINAL: frozenset[TicketStatus] = frozenset({TicketStatus.OPEN, TicketStatus.CLOSED})

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return TicketStatus.DRAFT

    @classmethod
    def status_after_review(cls, current: TicketSeverity, new: TicketSeverity) -> TicketStatus:
        if new.rank > current.rank:
            return TicketStatus.REVIEW
        return TicketStatus.PENDING

    @classmethod
    def is_reviewable(cls, status: TicketStatus) -> bool:
        return status == TicketStatus.DRAFT

    @classmethod
    def is_revisable(cls, status: TicketStatus) -> bool:
        return status == TicketStatus.REVIEW

    @classmethod
    def is_terminal(cls, status: TicketStatus) -> bool:
        return status in cls._TERMINAL
