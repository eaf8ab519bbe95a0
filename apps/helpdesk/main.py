from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from apps.helpdesk.api.routes import metrics, notifications, ping, tickets
from apps.helpdesk.core.config import get_settings
from apps.helpdesk.core.logging import configure_logging, init_tracer, shutdown_tracer
from apps.helpdesk.lifecycle import SideEffectDispatcher, TicketLifecycleService
from apps.helpdesk.metrics import metrics_registry
from apps.helpdesk.repositories import (
    NotificationRepository,
    TicketRepository,
    TimelineRepository,
    UserRepository,
)


def to_async_dsn(dsn: str) -> str:
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
    app.state.metrics_registry = metrics_registry
    app.state.lifecycle_service = None
    app.state.user_repository = None

    db_engine = create_async_engine(to_async_dsn(settings.database_dsn), echo=settings.database_echo, future=True)
    service: TicketLifecycleService | None = None
    try:
        session_factory = async_sessionmaker(db_engine, expire_on_commit=False)
        ticket_repository = TicketRepository(session_factory, engine=db_engine)
        await ticket_repository.ensure_schema()
        timeline_repository = TimelineRepository(session_factory)
        notification_repository = NotificationRepository(session_factory)
        user_repository = UserRepository(session_factory)
        dispatcher = SideEffectDispatcher(
            timeline_repository,
            notification_repository,
            directory=user_repository,
            metrics=metrics_registry,
            run_in_background=settings.side_effects_in_background,
        )
        service = TicketLifecycleService(
            ticket_repository,
            timeline_repository,
            notification_repository,
            dispatcher=dispatcher,
            metrics=metrics_registry,
        )
        app.state.lifecycle_service = service
        app.state.user_repository = user_repository
    except Exception:
        logger.exception("Lifecycle service initialisation failed; ticket routes will answer 503")

    try:
        yield
    finally:
        if service is not None:
            await service.drain()
        await db_engine.dispose()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(ping.router)
    app.include_router(tickets.router)
    app.include_router(notifications.router)
    app.include_router(metrics.router)
    return app


app = create_app()
