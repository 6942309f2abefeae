import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import sessionmaker
from hms_realtime.config import Settings, get_settings
from hms_realtime.database import Base, SessionLocal, engine as default_engine
from hms_realtime.models import appointment, doctor, health_tip, notification  # noqa: F401 (register tables)
from hms_realtime.routers import appointments, health_tips, notifications, realtime
from hms_realtime.core.health_tip_generator import HealthTipGenerator
from hms_realtime.core.health_tips import HealthTipScheduler
from hms_realtime.core.notifications import NotificationService
from hms_realtime.core.reminders import ReminderScheduler
from hms_realtime.core.scheduler import start_scheduler, stop_scheduler
from hms_realtime.core.storage import Storage

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )


def create_app(settings: Settings = None, db_engine=None, generator: HealthTipGenerator = None) -> FastAPI:
    settings = settings or get_settings()
    session_factory = SessionLocal
    if db_engine is None:
        db_engine = default_engine
    else:
        session_factory = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    configure_logging(settings)

    # Create database tables
    Base.metadata.create_all(bind=db_engine)

    app = FastAPI(title=settings.app_name, version=settings.app_version)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # One service per application, shared by routers and schedulers
    storage = Storage(session_factory)
    service = NotificationService(storage)
    app.state.settings = settings
    app.state.storage = storage
    app.state.notification_service = service
    app.state.reminder_scheduler = ReminderScheduler(service)
    app.state.health_tip_scheduler = HealthTipScheduler(
        service,
        generator or HealthTipGenerator(settings),
        timezone=settings.health_tip_timezone
    )
    app.state.scheduler = None

    # Include routers
    app.include_router(appointments.router)
    app.include_router(notifications.router)
    app.include_router(health_tips.router)
    app.include_router(realtime.router)
    app.add_api_websocket_route(settings.websocket_path, realtime.notifications_socket)

    # Start the schedulers
    @app.on_event("startup")
    async def startup_event():
        if settings.scheduler_enabled:
            app.state.scheduler = start_scheduler(
                settings,
                app.state.reminder_scheduler,
                app.state.health_tip_scheduler
            )
        logger.info(f"WebSocket notification service listening on {settings.websocket_path}")

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.scheduler is not None:
            stop_scheduler(app.state.scheduler)
            app.state.scheduler = None

    @app.get("/")
    async def root():
        return {"message": f"Welcome to {settings.app_name}"}

    return app


app = create_app()
