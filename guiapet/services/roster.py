from __future__ import annotations

import asyncio
from datetime import date, timedelta
from typing import Any

from pydantic import ValidationError

from guiapet.core.logging import get_logger
from guiapet.models.auth import Session, User
from guiapet.models.pets import DEFAULT_HEALTH_STATUS, Pet, PetForm, PetWithVaccines, Vaccine
from guiapet.services.session import SIGNED_IN, SIGNED_OUT, SessionContext, Subscription
from guiapet.services.supabase import SupabaseClient, SupabaseError

DEFAULT_VACCINES = ("V10", "Antirrábica")
VACCINE_INTERVAL = timedelta(days=365)
ADD_PET_FAILED = "Erro ao adicionar pet. Tente novamente."

log = get_logger(__name__)


class PetCreationError(Exception):
    def __init__(self, message: str, pet: Pet | None = None):
        self.pet = pet
        super().__init__(message)


async def _load_vaccines(client: SupabaseClient, pet_id: str) -> list[Vaccine]:
    try:
        rows = await client.select("vaccines", eq={"pet_id": pet_id}, order="next_date", ascending=True)
        vaccines = [Vaccine.model_validate(row) for row in rows]
    except (SupabaseError, ValidationError) as exc:
        log.warning("vaccines_load_failed", pet_id=pet_id, error=str(exc))
        return []
    # The store already orders by next_date; keep the guarantee locally too.
    return sorted(vaccines, key=lambda v: v.next_date)


async def load_roster(client: SupabaseClient, user_id: str) -> list[PetWithVaccines]:
    """Fetch the user's pets (newest first) with their vaccines (soonest due first).

    Raises SupabaseError if the pets themselves cannot be loaded. A failing
    vaccine fetch only empties that pet's vaccine list.
    """
    rows = await client.select("pets", eq={"user_id": user_id}, order="created_at", ascending=False)
    pets = [Pet.model_validate(row) for row in rows]
    vaccine_lists = await asyncio.gather(*(_load_vaccines(client, pet.id) for pet in pets))
    return [
        PetWithVaccines(**pet.model_dump(), vaccines=vaccines)
        for pet, vaccines in zip(pets, vaccine_lists)
    ]


def default_vaccine_rows(pet_id: str, today: date) -> list[dict[str, Any]]:
    next_date = today + VACCINE_INTERVAL
    return [
        {
            "pet_id": pet_id,
            "name": name,
            "date": today.isoformat(),
            "next_date": next_date.isoformat(),
        }
        for name in DEFAULT_VACCINES
    ]


async def create_pet_with_default_vaccines(
    client: SupabaseClient,
    user_id: str,
    form: PetForm,
    today: date | None = None,
) -> Pet:
    """Insert a pet and its two default vaccines.

    There is no rollback: if the vaccine insert fails the pet stays in the
    store and PetCreationError carries it.
    """
    today = today or date.today()
    try:
        rows = await client.insert(
            "pets",
            {
                "user_id": user_id,
                "name": form.name.strip(),
                "breed": form.breed.strip(),
                "age": form.age,
                "weight": form.weight,
                "photo_url": form.photo_url,
                "health_status": DEFAULT_HEALTH_STATUS,
            },
        )
        if not rows:
            raise PetCreationError("Pet insert returned no row")
        pet = Pet.model_validate(rows[0])
    except (SupabaseError, ValidationError) as exc:
        raise PetCreationError(str(exc)) from exc

    try:
        await client.insert("vaccines", default_vaccine_rows(pet.id, today))
    except SupabaseError as exc:
        log.error("default_vaccines_insert_failed", pet_id=pet.id, error=exc.message)
        raise PetCreationError(exc.message, pet=pet) from exc

    log.info("pet_created", pet_id=pet.id, user_id=user_id)
    return pet


class PetDashboard:
    """State behind the main "Meu Pet" view."""

    def __init__(self, context: SessionContext):
        self.context = context
        self.user: User | None = None
        self.pets: list[PetWithVaccines] = []
        self.selected_pet: PetWithVaccines | None = None
        self.show_onboarding = False
        self.show_add_pet = False
        self.loading = True
        self.adding = False
        self.form = PetForm()
        self.error = ""
        self.redirect_to: str | None = None
        self._subscription: Subscription | None = None

    # --- lifecycle ---

    async def mount(self) -> None:
        self._subscription = self.context.on_session_change(self._on_session_change)
        await self.check_user()

    def unmount(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def _on_session_change(self, event: str, session: Session | None) -> None:
        if event == SIGNED_IN and session is not None:
            self.reset()
            self.user = session.user
            if self.user is not None:
                await self.load_pets(self.user.id)
        elif event == SIGNED_OUT:
            self.redirect_to = "/login"

    def reset(self) -> None:
        self.user = None
        self.pets = []
        self.selected_pet = None
        self.show_onboarding = False
        self.show_add_pet = False
        self.form = PetForm()
        self.error = ""
        self.redirect_to = None

    # --- loading ---

    async def resolve_user(self) -> User | None:
        self.user = await self.context.client().get_user()
        return self.user

    async def check_user(self) -> None:
        try:
            user = await self.resolve_user()
            if user is None:
                self.redirect_to = "/login"
                return

            await self.load_pets(user.id)
            if not self.pets:
                self.show_onboarding = True
        except SupabaseError as exc:
            log.error("check_user_failed", error=exc.message)
            self.redirect_to = "/login"
        finally:
            self.loading = False

    async def load_pets(self, user_id: str | None) -> None:
        if not user_id:
            return
        try:
            pets = await load_roster(self.context.client(), user_id)
        except (SupabaseError, ValidationError) as exc:
            log.error("pets_load_failed", user_id=user_id, error=str(exc))
            return

        if pets:
            self.pets = pets
            self.selected_pet = pets[0]

    def select_pet(self, pet_id: str) -> PetWithVaccines | None:
        for pet in self.pets:
            if pet.id == pet_id:
                self.selected_pet = pet
                return pet
        return None

    def complete_onboarding(self) -> None:
        self.show_onboarding = False

    # --- mutations ---

    async def add_pet(self, today: date | None = None) -> Pet | None:
        if not self.form.is_complete or self.user is None or self.adding:
            return None

        self.adding = True
        self.error = ""
        try:
            pet = await create_pet_with_default_vaccines(
                self.context.client(), self.user.id, self.form, today=today
            )
        except PetCreationError as exc:
            log.error("add_pet_failed", user_id=self.user.id, error=str(exc))
            self.error = ADD_PET_FAILED
            return None
        finally:
            self.adding = False

        await self.load_pets(self.user.id)
        self.form = PetForm()
        self.show_add_pet = False
        return pet

    async def sign_out(self) -> None:
        await self.context.sign_out()
        self.redirect_to = "/login"
