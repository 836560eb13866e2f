import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .config import settings
from .db import Base, engine, SessionLocal
from .logging import setup_logging, RequestIdMiddleware, structlog
from .auth.router import router as auth_router
from .routes.clients import router as clients_router
from .routes.quotes import router as quotes_router
from .routes.projects import router as projects_router
from .routes.public import router as public_router
from .routes.notifications import router as notifications_router
from .routes.integrations import router as integrations_router
from .routes.dashboard import router as dashboard_router
from .services.account import ensure_settings, ensure_single_user


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Routers
    app.include_router(auth_router)
    app.include_router(dashboard_router)
    app.include_router(clients_router)
    app.include_router(quotes_router)
    app.include_router(projects_router)
    app.include_router(notifications_router)
    app.include_router(integrations_router)
    app.include_router(public_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        log = structlog.get_logger("startup")
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        os.makedirs(settings.quotes_dir, exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
        db = SessionLocal()
        try:
            user = ensure_single_user(db)
            ensure_settings(db, user.id)
            log.info("startup_complete", account=user.email)
        finally:
            db.close()

    return app


app = create_app()
