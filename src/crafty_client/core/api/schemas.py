"""Wire models for the Crafty `/api/v2` response envelope."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Envelope(BaseModel):
    """Shared response envelope: {status, data?, error?, error_data?}."""

    model_config = ConfigDict(extra="allow")

    status: str = Field(description='"ok" on success, "error" otherwise.')
    data: Any = None
    error: Any = None
    error_data: Any = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def error_message(self) -> str | None:
        """Prefer error_data, then error. None when neither is usable text."""
        for value in (self.error_data, self.error):
            if value is None:
                continue
            text = str(value).strip()
            if text:
                return text
        return None


class LoginRequest(BaseModel):
    username: str
    password: str
    totp: str | None = Field(default=None, pattern=r"^\d{6}$", description="MFA code, 6 digits.")


class LoginData(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    token: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    warning: str | None = None


class StdinRequest(BaseModel):
    command: str = Field(min_length=1)
