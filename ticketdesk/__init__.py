"""Ticketdesk: ticket review workflow with an audit trail."""
