from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from datetime import datetime


# --- Requests ---

class IdentifierRequest(BaseModel):
    # Older clients post {"userIp": "..."}
    identifier: str | None = Field(
        default=None,
        min_length=1,
        validation_alias=AliasChoices("identifier", "userIp"),
    )

    # Strip before the length check so blank identifiers are rejected like empty ones
    model_config = ConfigDict(str_strip_whitespace=True)


# --- Responses ---

class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str


class VisitorRecordResponse(BaseModel):
    id: str
    identifier: str
    entry_count: int = 1
    has_logged_in: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StatsResponse(BaseModel):
    total_entered: int
    total_logged_in: int
    total_not_logged_in: int

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
