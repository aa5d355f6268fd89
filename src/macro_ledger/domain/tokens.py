"""Models for identity provider token grants."""

from pydantic import AliasChoices, BaseModel, Field, field_validator

DEFAULT_EXPIRES_IN_SECONDS = 3600


class TokenGrant(BaseModel):
    """Bearer token issued by the identity provider.

    Password sign-in answers in camelCase and the refresh grant in
    snake_case; both spellings are accepted.
    """

    id_token: str = Field(validation_alias=AliasChoices("idToken", "id_token"))
    refresh_token: str = Field(
        validation_alias=AliasChoices("refreshToken", "refresh_token")
    )
    expires_in: int = Field(
        default=DEFAULT_EXPIRES_IN_SECONDS,
        validation_alias=AliasChoices("expiresIn", "expires_in"),
    )
    user_id: str | None = Field(
        default=None, validation_alias=AliasChoices("localId", "user_id")
    )

    @field_validator("expires_in", mode="before")
    @classmethod
    def _coerce_expires_in(cls, value: object) -> int:
        if isinstance(value, bool):
            return DEFAULT_EXPIRES_IN_SECONDS
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            try:
                return int(value)
            except ValueError:
                return DEFAULT_EXPIRES_IN_SECONDS
        return DEFAULT_EXPIRES_IN_SECONDS
