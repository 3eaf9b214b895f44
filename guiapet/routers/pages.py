from datetime import date
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from guiapet.core.dependencies import get_session_context
from guiapet.services.reminders import REMINDER_WINDOW_DAYS, days_until_due, has_pending_reminder, is_upcoming
from guiapet.services.roster import PetDashboard
from guiapet.services.session import SessionContext

_TEMPLATES_DIR = Path(__file__).parent.parent / "templates"
templates = Jinja2Templates(directory=str(_TEMPLATES_DIR))

router = APIRouter(tags=["pages"])


@router.get("/login", response_class=HTMLResponse, include_in_schema=False)
async def login_page(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "login.html")


@router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def dashboard_page(
    request: Request,
    context: Annotated[SessionContext, Depends(get_session_context)],
    selected: str | None = None,
) -> Response:
    dashboard = PetDashboard(context)
    await dashboard.mount()
    try:
        if dashboard.redirect_to:
            return RedirectResponse(url=dashboard.redirect_to, status_code=303)
        if selected:
            dashboard.select_pet(selected)
        today = date.today()
        return templates.TemplateResponse(
            request,
            "dashboard.html",
            {
                "dashboard": dashboard,
                "today": today,
                "window_days": REMINDER_WINDOW_DAYS,
                "pending_reminder": has_pending_reminder(dashboard.selected_pet, today),
                "days_until_due": days_until_due,
                "is_upcoming": is_upcoming,
            },
        )
    finally:
        dashboard.unmount()
