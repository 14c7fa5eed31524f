from collections.abc import Callable, Mapping
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ticketdesk.core.config import get_settings
from ticketdesk.security.policy import Role, role_satisfies


class User:
    """Authenticated caller: a user UUID and its role."""

    def __init__(self, uuid: str, role: Role):
        self.uuid = uuid
        self.role = role

    def has_role(self, role: Role) -> bool:
        return role_satisfies(self.role, role)


bearer_scheme = HTTPBearer(auto_error=False)


def resolve_user_from_token(token: str | None, token_map: Mapping[str, tuple[str, str]]) -> User:
    """Return the user associated with the provided bearer token."""

    if token is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    if token not in token_map:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")

    uuid, role = token_map[token]
    try:
        return User(uuid=uuid, role=Role(role.upper()))
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials") from exc


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    request: Request,
) -> User:
    """Bearer-token stub backed by ``Settings.auth_tokens``.

    Tokens are mapped statically to a user UUID and role; a real deployment
    would verify a signed token instead.
    """

    cached = getattr(request.state, "user", None)
    if isinstance(cached, User):
        return cached

    token = credentials.credentials if credentials is not None else None
    user = resolve_user_from_token(token, get_settings().auth_tokens)
    request.state.user = user
    return user


def role_required(role: Role) -> Callable[[User], User]:
    """Dependency factory ensuring the current user holds at least ``role``."""

    async def dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if not user.has_role(role):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency


CurrentUser = Annotated[User, Depends(get_current_user)]
