from importlib.metadata import PackageNotFoundError, version

import httpx
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from guiapet.core.config import Settings, get_settings

router = APIRouter()


def _get_version() -> str:
    try:
        return version("guiapet")
    except PackageNotFoundError:
        pass

    try:
        import tomllib

        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return data["project"]["version"]
    except Exception:
        return "unknown"


class HealthResponse(BaseModel):
    status: str
    version: str
    supabase_configured: bool
    supabase_reachable: bool


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    supabase_reachable = False
    if settings.supabase_configured:
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                resp = await client.get(
                    f"{settings.SUPABASE_URL}/auth/v1/health",
                    headers={"apikey": settings.SUPABASE_ANON_KEY},
                )
                supabase_reachable = resp.status_code < 500
        except Exception:
            supabase_reachable = False

    return HealthResponse(
        status="ok",
        version=_get_version(),
        supabase_configured=settings.supabase_configured,
        supabase_reachable=supabase_reachable,
    )
