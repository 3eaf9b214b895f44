import datetime as dt

from pydantic import BaseModel, Field, field_validator

DEFAULT_HEALTH_STATUS = "Saudável"


class Vaccine(BaseModel):
    id: str
    pet_id: str
    name: str
    date: dt.date = Field(description="Date of the last administered dose (YYYY-MM-DD).")
    next_date: dt.date = Field(description="Date the next dose is due (YYYY-MM-DD).")
    notes: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class Pet(BaseModel):
    id: str
    user_id: str
    name: str
    breed: str
    age: str | None = None
    weight: str | None = None
    photo_url: str | None = None
    health_status: str = DEFAULT_HEALTH_STATUS
    created_at: str | None = None
    updated_at: str | None = None


class PetWithVaccines(Pet):
    vaccines: list[Vaccine] = Field(default_factory=list)


class PetForm(BaseModel):
    """Add-pet form state. Blank values are allowed here; add_pet checks them."""

    name: str = ""
    breed: str = ""
    age: str = ""
    weight: str = ""
    photo_url: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.name.strip() and self.breed.strip())


class CreatePetRequest(BaseModel):
    name: str = Field(min_length=1, description="Pet's name.")
    breed: str = Field(min_length=1, description="Pet's breed.")
    age: str = Field(default="", description="Free-text age, e.g. '2 anos'.")
    weight: str = Field(default="", description="Free-text weight, e.g. '12 kg'.")
    photo_url: str = Field(default="", description="URL of the pet's photo.")

    @field_validator("name", "breed")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    def to_form(self) -> PetForm:
        return PetForm(**self.model_dump())


class VaccineView(Vaccine):
    days_until_due: int
    upcoming: bool


class PetView(Pet):
    vaccines: list[VaccineView]
    has_pending_reminder: bool


class RosterResponse(BaseModel):
    pets: list[PetView]
    selected_pet_id: str | None = None
    onboarding: bool = False
    has_pending_reminder: bool = Field(
        default=False,
        description="True when the selected pet has a vaccine due within the reminder window.",
    )
