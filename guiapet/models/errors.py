from pydantic import BaseModel, Field


class ErrorField(BaseModel):
    name: str
    reason: str


class ErrorResponse(BaseModel):
    error: str
    message: str
    fields: list[ErrorField] = Field(default_factory=list)
    request_id: str
