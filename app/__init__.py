"""Application wiring for the repair ledger API.

Importing this package creates the FastAPI app, makes sure the ledger table
exists (running additive migrations for older databases) and mounts every
API router plus the error handlers that turn ledger errors into JSON.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.errors import (
    LedgerError,
    http_exception_handler,
    ledger_exception_handler,
    validation_exception_handler,
)
from .db.migrate import run_migrations
from .db.session import Base, engine
from .middlewares import RequestIdMiddleware

# Registers the ledger table with the metadata before create_all.
from .models import collection as _collection  # noqa: F401

app = FastAPI(title=settings.APP_NAME)

# ---------- DB init/migrations ----------
Base.metadata.create_all(bind=engine)
run_migrations(engine)

app.add_middleware(RequestIdMiddleware)

# ---------- Routers ----------
from .routers import api_data as api_data_router  # noqa: E402
from .routers import api_hard_disks as api_hard_disks_router  # noqa: E402
from .routers import api_inward as api_inward_router  # noqa: E402
from .routers import api_jobs as api_jobs_router  # noqa: E402
from .routers import api_outward as api_outward_router  # noqa: E402
from .routers import api_reports as api_reports_router  # noqa: E402

app.include_router(api_inward_router.router)
app.include_router(api_outward_router.router)
app.include_router(api_hard_disks_router.router)
app.include_router(api_jobs_router.router)
app.include_router(api_reports_router.router)
app.include_router(api_data_router.router)

# ---------- Exception handling ----------
app.add_exception_handler(LedgerError, ledger_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)


__all__ = ["app"]
