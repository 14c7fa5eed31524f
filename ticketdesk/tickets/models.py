from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .state import TicketSeverity, TicketStateMachine, TicketStatus

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_TICKET_NUMBER_RE = re.compile(r"^TKT-\d{4}-\d{6,}$")
_SEQUENCE_PREFIX_RE = re.compile(r"\s*(\d+)")
TICKET_NUMBER_PREFIX = "TKT"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> str:
    return str(uuid.uuid4())


def is_valid_uuid(value: object) -> bool:
    """Return whether ``value`` is a canonical RFC 4122 UUID string."""

    return isinstance(value, str) and _UUID_RE.match(value) is not None


def parse_ticket_sequence(ticket_number: str) -> int:
    """Return the sequence that follows ``ticket_number``.

    Ticket numbers are advisory, so a suffix that does not parse resets the
    sequence to 1 instead of failing.
    """

    parts = ticket_number.split("-")
    suffix = parts[2] if len(parts) > 2 else "0"
    match = _SEQUENCE_PREFIX_RE.match(suffix)
    if match is None:
        return 1
    return int(match.group(1)) + 1


@dataclass(slots=True)
class Ticket:
    """Aggregate representing a support ticket."""

    ticket_number: str
    workspace_uuid: str
    created_by_uuid: str
    title: str
    description: str
    severity: TicketSeverity
    status: TicketStatus
    due_date: datetime
    severity_change_reason: str | None = None
    uuid: str = field(default_factory=new_uuid)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    deleted_at: datetime | None = None
    active: bool = True

    @staticmethod
    def generate_ticket_number(year: int, sequence: int) -> str:
        return f"{TICKET_NUMBER_PREFIX}-{year}-{sequence:06d}"

    def can_be_reviewed_by(self, user_uuid: str) -> bool:
        return self.created_by_uuid != user_uuid and TicketStateMachine.is_reviewable(self.status)

    def update_severity(
        self,
        new_severity: TicketSeverity,
        reason: str,
        current_severity: TicketSeverity,
    ) -> TicketStatus:
        """Apply a reviewed severity and return the status the ticket should move to.

        The status itself is left untouched; callers assign it.
        """

        self.severity_change_reason = reason
        self.severity = new_severity
        return TicketStateMachine.status_after_review(current_severity, new_severity)

    def mark_updated(self) -> None:
        self.updated_at = utcnow()

    def delete(self) -> None:
        self.active = False
        self.deleted_at = utcnow()
        self.mark_updated()


@dataclass(frozen=True, slots=True)
class TicketHistory:
    """Immutable before/after snapshot of one ticket mutation."""

    ticket_uuid: str
    user_uuid: str
    previous_status: TicketStatus
    new_status: TicketStatus
    previous_severity: TicketSeverity | None = None
    new_severity: TicketSeverity | None = None
    change_reason: str | None = None
    previous_title: str | None = None
    new_title: str | None = None
    previous_description: str | None = None
    new_description: str | None = None
    uuid: str = field(default_factory=new_uuid)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    deleted_at: datetime | None = None
    active: bool = True


def _check_uuid(violations: list[str], name: str, value: object) -> None:
    if not is_valid_uuid(value):
        violations.append(f"{name} must be a UUID")


def _check_datetime(violations: list[str], name: str, value: object, *, optional: bool = False) -> None:
    if value is None and optional:
        return
    if not isinstance(value, datetime):
        violations.append(f"{name} must be a datetime")


def validate_ticket(ticket: Ticket) -> list[str]:
    """Return the field-level violations of ``ticket``; empty when valid."""

    violations: list[str] = []
    _check_uuid(violations, "uuid", ticket.uuid)
    _check_uuid(violations, "workspace_uuid", ticket.workspace_uuid)
    _check_uuid(violations, "created_by_uuid", ticket.created_by_uuid)
    if not isinstance(ticket.ticket_number, str) or not _TICKET_NUMBER_RE.match(ticket.ticket_number):
        violations.append("ticket_number must match TKT-<year>-<sequence>")
    if not isinstance(ticket.title, str) or not ticket.title.strip():
        violations.append("title must be a non-empty string")
    if not isinstance(ticket.description, str):
        violations.append("description must be a string")
    if not isinstance(ticket.severity, TicketSeverity):
        violations.append("severity must be a TicketSeverity")
    if not isinstance(ticket.status, TicketStatus):
        violations.append("status must be a TicketStatus")
    if ticket.severity_change_reason is not None and not isinstance(ticket.severity_change_reason, str):
        violations.append("severity_change_reason must be a string")
    _check_datetime(violations, "due_date", ticket.due_date)
    _check_datetime(violations, "created_at", ticket.created_at)
    _check_datetime(violations, "updated_at", ticket.updated_at)
    _check_datetime(violations, "deleted_at", ticket.deleted_at, optional=True)
    if not isinstance(ticket.active, bool):
        violations.append("active must be a boolean")
    return violations


def validate_ticket_history(entry: TicketHistory) -> list[str]:
    violations: list[str] = []
    _check_uuid(violations, "uuid", entry.uuid)
    _check_uuid(violations, "ticket_uuid", entry.ticket_uuid)
    _check_uuid(violations, "user_uuid", entry.user_uuid)
    if not isinstance(entry.previous_status, TicketStatus):
        violations.append("previous_status must be a TicketStatus")
    if not isinstance(entry.new_status, TicketStatus):
        violations.append("new_status must be a TicketStatus")
    for name in ("previous_severity", "new_severity"):
        value = getattr(entry, name)
        if value is not None and not isinstance(value, TicketSeverity):
            violations.append(f"{name} must be a TicketSeverity")
    for name in ("change_reason", "previous_title", "new_title", "previous_description", "new_description"):
        value = getattr(entry, name)
        if value is not None and not isinstance(value, str):
            violations.append(f"{name} must be a string")
    _check_datetime(violations, "created_at", entry.created_at)
    return violations
