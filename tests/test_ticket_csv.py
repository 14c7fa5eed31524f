from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from ticketdesk.core.errors import BadRequestError
from ticketdesk.tickets.csv_io import EXPORT_COLUMNS, export_tickets_csv, parse_status_csv, to_iso8601


def test_to_iso8601_uses_utc_milliseconds():
    value = datetime(2025, 3, 14, 11, 30, 5, 123456, tzinfo=timezone(timedelta(hours=2)))
    assert to_iso8601(value) == "2025-03-14T09:30:05.123Z"
    assert to_iso8601(datetime(2025, 1, 1)) == "2025-01-01T00:00:00.000Z"


def test_export_writes_header_and_quotes_only_when_needed(make_ticket):
    ticket = make_ticket(title='Printer "Ada", floor 3', description="Line one\nLine two")

    content = export_tickets_csv([ticket])

    header, _, body = content.partition("\r\n")
    assert header == ",".join(EXPORT_COLUMNS)
    assert body.startswith(f"{ticket.uuid},{ticket.ticket_number},")
    assert '"Printer ""Ada"", floor 3"' in body
    assert '"Line one\nLine two"' in body
    assert body.endswith(f",MEDIUM,DRAFT,2025-07-01T12:00:00.000Z,{to_iso8601(ticket.created_at)}")
    assert not content.endswith("\r\n")


def test_export_of_nothing_is_header_only():
    assert export_tickets_csv([]) == ",".join(EXPORT_COLUMNS)


def test_export_round_trips_through_import(make_ticket):
    tickets = [make_ticket(sequence=1), make_ticket(sequence=2, title="Comma, inside")]

    rows = parse_status_csv(export_tickets_csv(tickets))

    assert [(row.uuid, row.status) for row in rows] == [(ticket.uuid, "DRAFT") for ticket in tickets]


def test_parse_trims_headers_and_values_and_skips_blank_lines():
    rows = parse_status_csv(" uuid , status ,comment\n\n a , OPEN ,x\n\n,,\nb,CLOSED,y\n")

    assert [(row.uuid, row.status) for row in rows] == [("a", "OPEN"), ("b", "CLOSED")]
    assert rows[0].line == 3


def test_parse_accepts_byte_order_mark_before_header():
    rows = parse_status_csv("\ufeffuuid,status\r\n0b0c6a5e-0f47-4d1f-9d3c-6c5c2a1b9e01,OPEN")

    assert [(row.uuid, row.status) for row in rows] == [("0b0c6a5e-0f47-4d1f-9d3c-6c5c2a1b9e01", "OPEN")]


@pytest.mark.parametrize(
    "content,message",
    [
        (None, "CSV content cannot be empty"),
        ("   \n ", "CSV content cannot be empty"),
        ("uuid,status", "CSV must contain at least one data row"),
        ("uuid,state\na,OPEN", "CSV must contain uuid and status columns"),
        ("uuid,status\na", "expected 2 fields but parsed 1"),
        ('uuid,status\n"a,OPEN', "CSV parsing errors"),
    ],
)
def test_parse_rejects_structural_problems(content, message):
    with pytest.raises(BadRequestError, match=message):
        parse_status_csv(content)
