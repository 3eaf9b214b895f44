from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, RedirectResponse

from guiapet.core.config import Settings, get_settings
from guiapet.core.dependencies import get_session_context
from guiapet.core.session_gate import clear_session_cookies, set_session_cookies
from guiapet.models.auth import Navigation, OAuthRequest, SignInRequest, SignUpRequest
from guiapet.models.errors import ErrorResponse
from guiapet.services.auth_flow import AuthFlow
from guiapet.services.session import SessionContext

router = APIRouter(tags=["auth"])


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    payload = ErrorResponse(error=error, message=message, request_id=f"req_{uuid.uuid4().hex[:12]}")
    return JSONResponse(status_code=status_code, content=payload.model_dump())


def _navigation_response(flow: AuthFlow, navigation: Navigation | None, settings: Settings) -> JSONResponse:
    if navigation is None:
        return _error_response(400, "AUTH_ERROR", flow.error)

    response = JSONResponse(status_code=200, content=navigation.model_dump())
    if flow.context.session is not None:
        set_session_cookies(response, flow.context.session, settings)
    return response


@router.post("/auth/sign-in", operation_id="sign_in")
async def sign_in(
    payload: SignInRequest,
    context: Annotated[SessionContext, Depends(get_session_context)],
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    flow = AuthFlow(context)
    navigation = await flow.sign_in(payload.email, payload.password)
    return _navigation_response(flow, navigation, settings)


@router.post("/auth/sign-up", operation_id="sign_up")
async def sign_up(
    payload: SignUpRequest,
    context: Annotated[SessionContext, Depends(get_session_context)],
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    flow = AuthFlow(context)
    navigation = await flow.sign_up(payload.full_name, payload.email, payload.password)
    return _navigation_response(flow, navigation, settings)


@router.post("/auth/oauth", operation_id="sign_in_with_oauth")
async def sign_in_with_oauth(
    payload: OAuthRequest,
    context: Annotated[SessionContext, Depends(get_session_context)],
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    flow = AuthFlow(context)
    navigation = await flow.sign_in_with_oauth(payload.provider, f"{settings.APP_PUBLIC_URL}/")
    if navigation is None:
        return _error_response(400, "AUTH_ERROR", flow.error)
    return JSONResponse(status_code=200, content=navigation.model_dump())


@router.post("/logout", operation_id="sign_out")
async def sign_out(context: Annotated[SessionContext, Depends(get_session_context)]) -> RedirectResponse:
    await context.sign_out()
    response = RedirectResponse(url="/login", status_code=303)
    clear_session_cookies(response)
    return response
