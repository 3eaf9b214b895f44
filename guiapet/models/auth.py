from typing import Any

from pydantic import BaseModel, Field

MIN_PASSWORD_LENGTH = 6


class User(BaseModel):
    id: str
    email: str | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)


class Session(BaseModel):
    access_token: str
    refresh_token: str
    expires_at: int | None = Field(default=None, description="Unix timestamp at which the access token expires.")
    user: User | None = None


class SignInRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class SignUpRequest(BaseModel):
    full_name: str = ""
    email: str = Field(min_length=1)
    # Length is checked by AuthFlow so the error lands in the form's error slot.
    password: str


class OAuthRequest(BaseModel):
    provider: str = Field(default="google", min_length=1, description="Identity provider, e.g. 'google'.")


class Navigation(BaseModel):
    """Where the UI should go after an auth action succeeds."""

    redirect_to: str
    delay_ms: int = 0
    reload: bool = False
    external: bool = False
    message: str | None = None
