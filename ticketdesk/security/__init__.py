"""Security utilities for the Ticketdesk application."""

from .policy import ROLE_HIERARCHY, Role, role_satisfies

__all__ = ["ROLE_HIERARCHY", "Role", "role_satisfies"]
