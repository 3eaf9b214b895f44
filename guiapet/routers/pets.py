from __future__ import annotations

import uuid
from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from guiapet.core.dependencies import get_session_context
from guiapet.models.errors import ErrorResponse
from guiapet.models.pets import CreatePetRequest, PetView, PetWithVaccines, RosterResponse, VaccineView
from guiapet.services.reminders import days_until_due, has_pending_reminder, is_upcoming
from guiapet.services.roster import PetDashboard
from guiapet.services.session import SessionContext
from guiapet.services.supabase import SupabaseError

router = APIRouter(prefix="/api", tags=["pets"])


def _error_response(status_code: int, error: str, message: str, extra: dict[str, Any] | None = None) -> JSONResponse:
    payload: dict[str, Any] = ErrorResponse(
        error=error,
        message=message,
        request_id=f"req_{uuid.uuid4().hex[:12]}",
    ).model_dump()
    if extra:
        payload.update(extra)
    return JSONResponse(status_code=status_code, content=payload)


def _unauthorized(redirect_to: str) -> JSONResponse:
    return _error_response(401, "UNAUTHORIZED", "Sign in to continue.", extra={"redirect_to": redirect_to})


def to_pet_view(pet: PetWithVaccines, today: date) -> PetView:
    vaccines = [
        VaccineView(
            **vaccine.model_dump(),
            days_until_due=days_until_due(vaccine.next_date, today),
            upcoming=is_upcoming(vaccine, today),
        )
        for vaccine in pet.vaccines
    ]
    return PetView(
        **pet.model_dump(exclude={"vaccines"}),
        vaccines=vaccines,
        has_pending_reminder=has_pending_reminder(pet, today),
    )


def to_roster_response(dashboard: PetDashboard, today: date | None = None) -> RosterResponse:
    today = today or date.today()
    selected = dashboard.selected_pet
    return RosterResponse(
        pets=[to_pet_view(pet, today) for pet in dashboard.pets],
        selected_pet_id=selected.id if selected else None,
        onboarding=dashboard.show_onboarding,
        has_pending_reminder=has_pending_reminder(selected, today),
    )


@router.get(
    "/pets",
    operation_id="list_pets",
    response_model=RosterResponse,
    description="Load the signed-in user's pets with their vaccines and reminder flags.",
)
async def list_pets(
    context: Annotated[SessionContext, Depends(get_session_context)],
    selected: str | None = Query(default=None, description="Pet id to select instead of the newest pet."),
) -> Any:
    dashboard = PetDashboard(context)
    await dashboard.mount()
    try:
        if dashboard.redirect_to:
            return _unauthorized(dashboard.redirect_to)
        if selected:
            dashboard.select_pet(selected)
        return to_roster_response(dashboard)
    finally:
        dashboard.unmount()


@router.post(
    "/pets",
    operation_id="create_pet",
    response_model=RosterResponse,
    status_code=201,
    description="Create a pet with the default V10 and rabies vaccines, then return the refreshed roster.",
)
async def create_pet(
    payload: CreatePetRequest,
    context: Annotated[SessionContext, Depends(get_session_context)],
) -> Any:
    dashboard = PetDashboard(context)
    try:
        user = await dashboard.resolve_user()
    except SupabaseError as exc:
        return JSONResponse(status_code=exc.status_code, content=exc.payload)
    if user is None:
        return _unauthorized("/login")

    dashboard.form = payload.to_form()
    pet = await dashboard.add_pet()
    if pet is None:
        return _error_response(502, "PET_CREATE_FAILED", dashboard.error)
    dashboard.complete_onboarding()
    return to_roster_response(dashboard)
