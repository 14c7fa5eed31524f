"""Role hierarchy used by the HTTP authorization dependencies."""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Supported roles, from least to most privileged."""

    ASSOCIATE = "ASSOCIATE"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


ROLE_HIERARCHY: dict[Role, int] = {
    Role.ASSOCIATE: 0,
    Role.MANAGER: 1,
    Role.ADMIN: 2,
}


def role_satisfies(actual: Role, required: Role) -> bool:
    """Return True when ``actual`` is at least as privileged as ``required``."""

    return ROLE_HIERARCHY[actual] >= ROLE_HIERARCHY[required]
