"""CSV codec for the pending-ticket export and the status import."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from ticketdesk.core.errors import BadRequestError

from .models import Ticket

EXPORT_COLUMNS: tuple[str, ...] = (
    "uuid",
    "ticketNumber",
    "workspaceUuid",
    "createdByUuid",
    "title",
    "description",
    "severity",
    "status",
    "dueDate",
    "createdAt",
)
REQUIRED_IMPORT_COLUMNS: tuple[str, ...] = ("uuid", "status")


@dataclass(frozen=True, slots=True)
class StatusRow:
    """One data row of a status import, values trimmed but not yet validated."""

    line: int
    uuid: str
    status: str


def to_iso8601(value: datetime) -> str:
    """Format ``value`` as a UTC ISO-8601 timestamp with millisecond precision."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _ticket_to_row(ticket: Ticket) -> list[str]:
    return [
        ticket.uuid,
        ticket.ticket_number,
        ticket.workspace_uuid,
        ticket.created_by_uuid,
        ticket.title,
        ticket.description,
        ticket.severity.value,
        ticket.status.value,
        to_iso8601(ticket.due_date),
        to_iso8601(ticket.created_at),
    ]


def export_tickets_csv(tickets: Iterable[Ticket]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=",", quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow(EXPORT_COLUMNS)
    for ticket in tickets:
        writer.writerow(_ticket_to_row(ticket))
    return buffer.getvalue().rstrip("\r\n")


def parse_status_csv(content: str | None) -> list[StatusRow]:
    """Parse a status import file.

    Raises ``BadRequestError`` for structural problems: empty content,
    malformed rows, no data rows or missing required columns. Row values are
    returned as-is for the caller to validate.
    """

    if content is None or not content.strip():
        raise BadRequestError("CSV content cannot be empty")

    reader = csv.reader(io.StringIO(content.removeprefix("\ufeff")), delimiter=",", strict=True)
    header: list[str] | None = None
    records: list[tuple[int, list[str]]] = []
    errors: list[str] = []
    try:
        for row in reader:
            if not any(cell.strip() for cell in row):
                continue
            if header is None:
                header = [cell.strip() for cell in row]
                continue
            if len(row) != len(header):
                errors.append(
                    f"Row {reader.line_num}: expected {len(header)} fields but parsed {len(row)}"
                )
                continue
            records.append((reader.line_num, row))
    except csv.Error as exc:
        raise BadRequestError(f"CSV parsing errors: {exc}") from exc

    if errors:
        raise BadRequestError(f"CSV parsing errors: {', '.join(errors)}")
    if header is None or not records:
        raise BadRequestError("CSV must contain at least one data row")
    missing = [column for column in REQUIRED_IMPORT_COLUMNS if column not in header]
    if missing:
        raise BadRequestError("CSV must contain uuid and status columns")

    uuid_index = header.index("uuid")
    status_index = header.index("status")
    return [
        StatusRow(line=line, uuid=row[uuid_index].strip(), status=row[status_index].strip())
        for line, row in records
    ]
