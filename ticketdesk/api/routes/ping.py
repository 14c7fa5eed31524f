from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ticketdesk.dependencies.auth import CurrentUser, role_required
from ticketdesk.security.policy import Role

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Health probe including a database round trip")
async def ping(request: Request) -> JSONResponse:
    engine = getattr(request.app.state, "db_engine", None)
    if engine is None:
        return JSONResponse(status_code=503, content={"status": "degraded", "database": "unavailable"})

    try:
        async with engine.connect() as connection:
            await connection.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        return JSONResponse(
            status_code=503,
            content={"status": "degraded", "database": "error", "detail": str(exc)},
        )
    return JSONResponse(status_code=200, content={"status": "ok", "database": "ok"})


@router.get(
    "/secure",
    summary="RBAC protected endpoint",
    dependencies=[Depends(role_required(Role.MANAGER))],
)
async def secure_ping(user: CurrentUser) -> dict[str, str]:
    return {"status": "ok", "user": user.uuid, "role": user.role.value}
