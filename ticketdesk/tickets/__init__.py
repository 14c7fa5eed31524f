"""Ticket domain models and services."""

from .history import TicketHistoryRequest, TicketHistoryService
from .models import Ticket, TicketHistory
from .service import TicketRequest, TicketService, TicketUpdate
from .state import TicketSeverity, TicketStateMachine, TicketStatus

__all__ = [
    "Ticket",
    "TicketHistory",
    "TicketHistoryRequest",
    "TicketHistoryService",
    "TicketRequest",
    "TicketService",
    "TicketSeverity",
    "TicketStateMachine",
    "TicketStatus",
    "TicketUpdate",
]
