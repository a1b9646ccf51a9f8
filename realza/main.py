# Application entrypoint: configures logging, middleware, schema bootstrap and API routers.
import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .db import Base, engine, is_sqlite
from .routes.auth import router as auth_router
from .routes.dashboards import router as dashboards_router
from .routes.listings import router as listings_router
from .routes.showings import router as showings_router

logging.getLogger("realza").setLevel(os.getenv("LOG_LEVEL", "INFO").upper())


# Parse CORS origins from a comma-separated env var.
# '*' cannot be combined with allow_credentials=True, so it maps to the dev origins.
def _parse_cors_origins(env_value: str | None) -> list[str]:
    default_dev_origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    if not env_value:
        return default_dev_origins

    origins = [o.strip() for o in env_value.split(",") if o.strip()]
    if "*" in origins:
        return default_dev_origins

    return origins


app = FastAPI(title="Realza Showings API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_parse_cors_origins(os.getenv("CORS_ORIGINS")),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    # Local SQLite gets its tables created on boot; server databases rely on Alembic migrations.
    if is_sqlite():
        Base.metadata.create_all(bind=engine)


# Liveness endpoint for container orchestrators and uptime checks
@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


app.include_router(auth_router, prefix="", tags=["auth"])
app.include_router(listings_router, prefix="/api/v1", tags=["listings"])
app.include_router(showings_router, prefix="/api/v1", tags=["showings"])
app.include_router(dashboards_router, prefix="/api/v1", tags=["dashboards"])
