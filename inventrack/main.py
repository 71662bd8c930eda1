"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from inventrack.config import settings
from inventrack.database import create_db_and_tables, engine
from inventrack.services.errors import AuthError
from inventrack.utils.logging import setup_logging
from inventrack.api import auth, two_factor, system


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    setup_logging()
    await create_db_and_tables()

    yield

    await engine.dispose()


app = FastAPI(
    title="InvenTrack Auth",
    description="Authentication, session rotation and TOTP two-factor for the InvenTrack dashboard",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Mount routers
app.include_router(auth.router)
app.include_router(two_factor.router)
app.include_router(system.router)
