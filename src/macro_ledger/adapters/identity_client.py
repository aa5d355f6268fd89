"""Identity provider client for password sign-in and token refresh."""

from dataclasses import dataclass
from typing import Protocol

import httpx
from pydantic import ValidationError

from macro_ledger.domain.tokens import TokenGrant
from macro_ledger.errors import AuthenticationError


class IdentityClient(Protocol):
    """Interface for exchanging credentials for bearer tokens."""

    async def sign_in_with_password(self, email: str, password: str) -> TokenGrant:
        """Exchange an email and password for a token grant."""

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """Exchange a refresh token for a new token grant."""


@dataclass
class HttpxIdentityClient(IdentityClient):
    """Identity client implemented with httpx."""

    api_key: str
    http_client: httpx.AsyncClient
    identity_base_url: str = "https://identitytoolkit.googleapis.com/v1"
    secure_token_base_url: str = "https://securetoken.googleapis.com/v1"
    ios_bundle_id: str | None = None
    timeout: float = 15.0

    @classmethod
    def create(  # noqa: PLR0913
        cls,
        api_key: str,
        identity_base_url: str,
        secure_token_base_url: str,
        ios_bundle_id: str | None = None,
        timeout: float = 15.0,
    ) -> "HttpxIdentityClient":
        """Create an identity client with a managed httpx session."""
        return cls(
            api_key=api_key,
            http_client=httpx.AsyncClient(),
            identity_base_url=identity_base_url,
            secure_token_base_url=secure_token_base_url,
            ios_bundle_id=ios_bundle_id,
            timeout=timeout,
        )

    async def sign_in_with_password(self, email: str, password: str) -> TokenGrant:
        """Sign in through ``accounts:signInWithPassword``."""
        url = f"{self.identity_base_url}/accounts:signInWithPassword"
        payload = {"email": email, "password": password, "returnSecureToken": True}
        try:
            response = await self.http_client.post(
                url,
                params={"key": self.api_key},
                headers=self._headers(),
                json=payload,
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise AuthenticationError(f"Sign-in failed: {exc}") from exc
        return _parse_grant(response, action="Sign-in")

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """Exchange a refresh token through the secure token endpoint."""
        url = f"{self.secure_token_base_url}/token"
        try:
            response = await self.http_client.post(
                url,
                params={"key": self.api_key},
                headers=self._headers(),
                data={"grant_type": "refresh_token", "refresh_token": refresh_token},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise AuthenticationError(f"Token refresh failed: {exc}") from exc
        return _parse_grant(response, action="Token refresh")

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    def _headers(self) -> dict[str, str]:
        if not self.ios_bundle_id:
            return {}
        return {"X-Ios-Bundle-Identifier": self.ios_bundle_id}


def _parse_grant(response: httpx.Response, *, action: str) -> TokenGrant:
    if not response.is_success:
        raise AuthenticationError(
            f"{action} failed: {response.status_code} - {response.text}"
        )
    try:
        return TokenGrant.model_validate(response.json())
    except (ValueError, ValidationError) as exc:
        raise AuthenticationError(f"{action} returned an invalid grant") from exc
