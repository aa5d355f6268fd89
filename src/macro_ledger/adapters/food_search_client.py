"""Search index client for food lookups."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import httpx


class FoodSearchClient(Protocol):
    """Interface for keyword search across food collections."""

    async def multi_search(
        self, query: str, collections: Sequence[str], per_page: int = 10
    ) -> list[list[dict[str, object]]]:
        """Return the hit documents of each collection, in request order."""


@dataclass
class HttpxFoodSearchClient(FoodSearchClient):
    """Search client for a Typesense-style ``multi_search`` endpoint."""

    base_url: str
    api_key: str
    http_client: httpx.AsyncClient
    query_by: str = "foodDesc,brandName"
    timeout: float = 15.0

    @classmethod
    def create(
        cls, base_url: str, api_key: str, timeout: float = 15.0
    ) -> "HttpxFoodSearchClient":
        """Create a search client with a managed httpx session."""
        return cls(
            base_url=base_url,
            api_key=api_key,
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def multi_search(
        self, query: str, collections: Sequence[str], per_page: int = 10
    ) -> list[list[dict[str, object]]]:
        """Search every collection in one request."""
        searches = [
            {
                "collection": collection,
                "q": query,
                "query_by": self.query_by,
                "per_page": per_page,
            }
            for collection in collections
        ]
        response = await self.http_client.post(
            f"{self.base_url.rstrip('/')}/multi_search",
            headers={"X-TYPESENSE-API-KEY": self.api_key},
            json={"searches": searches},
            timeout=self.timeout,
        )
        response.raise_for_status()
        results = response.json().get("results", [])
        return [
            [hit.get("document") or {} for hit in result.get("hits", [])]
            for result in results
        ]

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
