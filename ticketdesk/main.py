from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from ticketdesk.api.routes import ping, tickets
from ticketdesk.core.config import get_settings
from ticketdesk.core.logging import configure_logging, init_tracer, shutdown_tracer
from ticketdesk.services.severity import GeminiSeverityOracle
from ticketdesk.tickets.history import TicketHistoryService
from ticketdesk.tickets.repository import TicketHistoryRepository, TicketRepository
from ticketdesk.tickets.service import TicketService


def _to_asyncpg_dsn(dsn: str) -> str:
    """Ensure the SQLAlchemy DSN uses the asyncpg driver."""

    if dsn.startswith("postgresql+asyncpg://"):
        return dsn
    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    return dsn


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider
    app.state.db_engine = None
    app.state.ticket_service = None
    app.state.history_service = None

    db_engine = None
    oracle = GeminiSeverityOracle.from_settings(settings)
    try:
        db_engine = create_async_engine(_to_asyncpg_dsn(settings.postgres_dsn), echo=settings.sql_echo, future=True)
        session_factory = async_sessionmaker(db_engine, expire_on_commit=False)
        ticket_repository = TicketRepository(session_factory, engine=db_engine)
        history_repository = TicketHistoryRepository(session_factory, engine=db_engine)
        await ticket_repository.ensure_schema()

        history_service = TicketHistoryService(history_repository, ticket_repository)
        app.state.history_service = history_service
        app.state.ticket_service = TicketService(ticket_repository, history_service, oracle)
        app.state.db_engine = db_engine
    except Exception:  # pragma: no cover - service initialisation best effort
        logger.exception("Ticket services could not be initialised")
        app.state.ticket_service = None
        app.state.history_service = None
        if db_engine is not None:
            await db_engine.dispose()
            db_engine = None
    try:
        yield
    finally:
        if db_engine is not None:
            await db_engine.dispose()
        await oracle.aclose()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(ping.router)
    app.include_router(tickets.router)
    return app


app = create_app()
