from __future__ import annotations

from guiapet.core.logging import get_logger
from guiapet.models.auth import MIN_PASSWORD_LENGTH, Navigation
from guiapet.services.session import SessionContext
from guiapet.services.supabase import SupabaseError

SIGN_IN_FAILED = "Erro ao fazer login"
SIGN_UP_FAILED = "Erro ao criar conta"
OAUTH_FAILED = "Erro ao fazer login com Google"
PASSWORD_TOO_SHORT = f"A senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres"
SIGN_UP_SUCCESS = "Conta criada com sucesso! Redirecionando..."
SIGN_UP_REDIRECT_DELAY_MS = 500

log = get_logger(__name__)


class AuthFlow:
    """State behind the login screen.

    ``loading`` is shared by every submit action: while one is in flight the
    others refuse to start. ``error`` is the single error slot, replaced on
    each attempt.
    """

    def __init__(self, context: SessionContext):
        self.context = context
        self.loading = False
        self.error = ""
        self.message = ""

    def _begin(self) -> bool:
        if self.loading:
            return False
        self.loading = True
        self.error = ""
        self.message = ""
        return True

    async def sign_in(self, email: str, password: str) -> Navigation | None:
        if not self._begin():
            return None
        try:
            session = await self.context.client().sign_in_with_password(email, password)
            await self.context.reload(session)
            return Navigation(redirect_to="/", reload=True)
        except SupabaseError as exc:
            self.error = exc.message or SIGN_IN_FAILED
            return None
        finally:
            self.loading = False

    async def sign_up(self, full_name: str, email: str, password: str) -> Navigation | None:
        if len(password) < MIN_PASSWORD_LENGTH:
            self.error = PASSWORD_TOO_SHORT
            return None
        if not self._begin():
            return None
        try:
            client = self.context.client()
            user = await client.sign_up(email, password, {"full_name": full_name})

            try:
                await client.insert(
                    "profiles",
                    {"id": user.id, "email": user.email, "full_name": full_name},
                )
            except SupabaseError as exc:
                log.warning("profile_insert_failed", user_id=user.id, message=exc.message)

            session = await client.sign_in_with_password(email, password)
            await self.context.reload(session)

            self.message = SIGN_UP_SUCCESS
            return Navigation(
                redirect_to="/",
                delay_ms=SIGN_UP_REDIRECT_DELAY_MS,
                reload=True,
                message=self.message,
            )
        except SupabaseError as exc:
            self.error = exc.message or SIGN_UP_FAILED
            return None
        finally:
            self.loading = False

    async def sign_in_with_oauth(self, provider: str, redirect_to: str) -> Navigation | None:
        if not self._begin():
            return None
        try:
            url = self.context.client().sign_in_with_oauth(provider, redirect_to)
        except SupabaseError as exc:
            self.error = exc.message or OAUTH_FAILED
            self.loading = False
            return None
        # The browser leaves for the provider; loading stays set until then.
        return Navigation(redirect_to=url, external=True)
