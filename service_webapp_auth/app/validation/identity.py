"""
Telegram user extraction from verified initData.
"""

import json
from typing import Any, Dict, Mapping

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError, field_validator

from shared.errors import MalformedUserJson, MissingUserField

USER_FIELD = "user"


class TelegramIdentity(BaseModel):
    """Telegram user as carried in the ``user`` field of initData."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    external_id: StrictInt = Field(alias="id")
    first_name: StrictStr = Field(min_length=1)
    last_name: StrictStr = ""
    username: StrictStr = ""
    photo_url: StrictStr = ""

    @field_validator("last_name", "username", "photo_url", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def display_name(self) -> str:
        if self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name

    def display_claims(self) -> Dict[str, Any]:
        """Non-sensitive claims attached to the issued token."""
        return {
            "telegramId": self.external_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "username": self.username,
            "photo_url": self.photo_url,
        }


def extract_identity(fields: Mapping[str, str]) -> TelegramIdentity:
    """Build a TelegramIdentity from verified initData fields."""
    raw_user = fields.get(USER_FIELD)
    if not raw_user:
        raise MissingUserField()

    try:
        user = json.loads(raw_user)
    except ValueError as e:
        raise MalformedUserJson("initData user field is not valid JSON") from e

    if not isinstance(user, dict):
        raise MalformedUserJson("initData user field is not a JSON object")

    try:
        return TelegramIdentity.model_validate(user)
    except ValidationError as e:
        # Report which fields failed, never their values
        invalid = sorted({str(error["loc"][0]) for error in e.errors() if error.get("loc")})
        raise MalformedUserJson(details={"fields": invalid}) from e
