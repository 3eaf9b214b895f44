from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from guiapet.core.config import get_settings
from guiapet.core.logging import RequestLoggingMiddleware, get_logger, setup_logging
from guiapet.core.session_gate import SessionGateMiddleware
from guiapet.routers import auth, health, pages, pets


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    if not settings.supabase_configured:
        get_logger("guiapet").warning(
            "supabase_not_configured",
            hint="Set SUPABASE_URL and SUPABASE_ANON_KEY",
        )
    yield


app = FastAPI(
    title="GuiaPet",
    description="Pet profiles, vaccination schedules and vaccine reminders.",
    version="0.1.0",
    lifespan=lifespan,
)

# Starlette runs the last added middleware first: logging wraps the gate.
app.add_middleware(SessionGateMiddleware)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(health.router)
app.include_router(pages.router)
app.include_router(auth.router)
app.include_router(pets.router)
