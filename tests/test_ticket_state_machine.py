from itertools import product

import pytest

from ticketdesk.tickets.state import TicketSeverity, TicketStateMachine, TicketStatus


def test_initial_state_is_draft():
    assert TicketStateMachine.initial_state() == TicketStatus.DRAFT


def test_severity_ranks_follow_declaration_order():
    assert [severity.rank for severity in TicketSeverity] == [0, 1, 2, 3, 4]
    assert TicketSeverity.VERY_HIGH.rank > TicketSeverity.EASY.rank


@pytest.mark.parametrize("current,new", list(product(TicketSeverity, repeat=2)))
def test_status_after_review_covers_every_pair(current, new):
    expected = TicketStatus.REVIEW if new.rank > current.rank else TicketStatus.PENDING
    assert TicketStateMachine.status_after_review(current, new) == expected


@pytest.mark.parametrize(
    "status,reviewable,revisable,terminal",
    [
        (TicketStatus.DRAFT, True, False, False),
        (TicketStatus.REVIEW, False, True, False),
        (TicketStatus.PENDING, False, False, False),
        (TicketStatus.OPEN, False, False, True),
        (TicketStatus.CLOSED, False, False, True),
    ],
)
def test_status_predicates(status, reviewable, revisable, terminal):
    assert TicketStateMachine.is_reviewable(status) is reviewable
    assert TicketStateMachine.is_revisable(status) is revisable
    assert TicketStateMachine.is_terminal(status) is terminal


def test_enum_values_are_wire_literals():
    assert TicketStatus("PENDING") is TicketStatus.PENDING
    with pytest.raises(ValueError):
        TicketStatus("pending")
