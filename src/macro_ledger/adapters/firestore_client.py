"""Document store REST client."""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from macro_ledger.domain.documents import (
    CollectionIdsPage,
    Document,
    ListDocumentsPage,
    QueryResultRow,
)
from macro_ledger.errors import DecodeError, NotFoundError, TransportError

_SIMPLE_FIELD_PATH = re.compile(r"^[A-Za-z_][A-Za-z_0-9]*$")
_HTTP_NOT_FOUND = 404

ModelT = TypeVar("ModelT", bound=BaseModel)

_logger = logging.getLogger(__name__)


class TokenSource(Protocol):
    """Anything that can hand out a bearer token."""

    async def get_token(self) -> str:
        """Return a currently valid bearer token."""


class FirestoreGateway(Protocol):
    """Interface for path-addressed document operations."""

    async def get_document(self, path: str) -> Document:
        """Fetch a single document, raising ``NotFoundError`` on 404."""

    async def list_documents(
        self,
        collection_path: str,
        page_size: int | None = None,
        page_token: str | None = None,
    ) -> tuple[list[Document], str | None]:
        """Return one page of documents and the next page token."""

    async def list_collection_ids(self, parent_path: str | None = None) -> list[str]:
        """Return every sub-collection id under a document."""

    async def run_query(
        self, parent_path: str | None, structured_query: dict[str, object]
    ) -> list[Document]:
        """Run a structured query and return matching documents."""

    async def patch_document(
        self,
        path: str,
        fields: dict[str, dict[str, object]],
        field_paths: Sequence[str],
    ) -> Document:
        """Write the masked field paths of a document, creating it if needed."""


def quote_field_path(segment: str) -> str:
    """Backtick-quote a field path segment unless it is a plain identifier.

    Segments starting with a digit (entry ids, ``MMDD`` keys) are rejected by
    the store's path grammar when left bare.
    """
    if _SIMPLE_FIELD_PATH.match(segment):
        return segment
    escaped = segment.replace("\\", "\\\\").replace("`", "\\`")
    return f"`{escaped}`"


@dataclass
class HttpxFirestoreClient(FirestoreGateway):
    """Document store client implemented with httpx."""

    project_id: str
    tokens: TokenSource
    http_client: httpx.AsyncClient
    base_url: str = "https://firestore.googleapis.com/v1"
    timeout: float = 15.0

    @classmethod
    def create(
        cls,
        project_id: str,
        tokens: TokenSource,
        base_url: str,
        timeout: float = 15.0,
    ) -> "HttpxFirestoreClient":
        """Create a store client with a managed httpx session."""
        return cls(
            project_id=project_id,
            tokens=tokens,
            http_client=httpx.AsyncClient(),
            base_url=base_url,
            timeout=timeout,
        )

    @property
    def documents_base(self) -> str:
        """Root URL for document paths."""
        return (
            f"{self.base_url}/projects/{self.project_id}"
            "/databases/(default)/documents"
        )

    async def get_document(self, path: str) -> Document:
        """Fetch a single document."""
        response = await self._send("GET", self._url(path), action=f"GET {path}")
        if response.status_code == _HTTP_NOT_FOUND:
            raise NotFoundError(path, response.text)
        _raise_for_status(response, action=f"GET {path}")
        return _parse(Document, response, action=f"GET {path}")

    async def list_documents(
        self,
        collection_path: str,
        page_size: int | None = None,
        page_token: str | None = None,
    ) -> tuple[list[Document], str | None]:
        """Return a single page of documents in a collection."""
        params: dict[str, str] = {}
        if page_size is not None:
            params["pageSize"] = str(page_size)
        if page_token:
            params["pageToken"] = page_token
        action = f"LIST {collection_path}"
        response = await self._send(
            "GET", self._url(collection_path), action=action, params=params
        )
        _raise_for_status(response, action=action)
        page = _parse(ListDocumentsPage, response, action=action)
        return page.documents, page.next_page_token or None

    async def list_collection_ids(self, parent_path: str | None = None) -> list[str]:
        """Return all collection ids, following page tokens."""
        url = f"{self._url(parent_path)}:listCollectionIds"
        collection_ids: list[str] = []
        page_token: str | None = None
        while True:
            body: dict[str, object] = {}
            if page_token:
                body["pageToken"] = page_token
            response = await self._send(
                "POST", url, action="listCollectionIds", json=body
            )
            _raise_for_status(response, action="listCollectionIds")
            page = _parse(CollectionIdsPage, response, action="listCollectionIds")
            collection_ids.extend(page.collection_ids)
            if not page.next_page_token:
                return collection_ids
            page_token = page.next_page_token

    async def run_query(
        self, parent_path: str | None, structured_query: dict[str, object]
    ) -> list[Document]:
        """Run a structured query under a parent document."""
        url = f"{self._url(parent_path)}:runQuery"
        response = await self._send(
            "POST",
            url,
            action="runQuery",
            json={"structuredQuery": structured_query},
        )
        _raise_for_status(response, action="runQuery")
        payload = _json(response, action="runQuery")
        if not isinstance(payload, list):
            raise DecodeError("runQuery returned a non-list body")
        try:
            rows = [QueryResultRow.model_validate(row) for row in payload]
        except ValidationError as exc:
            raise DecodeError(f"runQuery returned malformed rows: {exc}") from exc
        return [row.document for row in rows if row.document is not None]

    async def patch_document(
        self,
        path: str,
        fields: dict[str, dict[str, object]],
        field_paths: Sequence[str],
    ) -> Document:
        """Patch a document; only the masked field paths are touched.

        A path named in ``field_paths`` but absent from ``fields`` is deleted
        from the stored document.
        """
        params = [("updateMask.fieldPaths", field_path) for field_path in field_paths]
        action = f"PATCH {path}"
        response = await self._send(
            "PATCH",
            self._url(path),
            action=action,
            params=params,
            json={"fields": fields},
        )
        _raise_for_status(response, action=action)
        _logger.debug("Patched %s mask=%s", path, list(field_paths))
        return _parse(Document, response, action=action)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    def _url(self, path: str | None) -> str:
        if not path:
            return self.documents_base
        return f"{self.documents_base}/{path.strip('/')}"

    async def _send(
        self, method: str, url: str, *, action: str, **kwargs: object
    ) -> httpx.Response:
        token = await self.tokens.get_token()
        try:
            return await self.http_client.request(
                method,
                url,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
                **kwargs,
            )
        except httpx.HTTPError as exc:
            raise TransportError(None, str(exc), action=action) from exc


def _raise_for_status(response: httpx.Response, *, action: str) -> None:
    if not response.is_success:
        raise TransportError(response.status_code, response.text, action=action)


def _json(response: httpx.Response, *, action: str) -> object:
    try:
        return response.json()
    except ValueError as exc:
        raise DecodeError(f"{action} returned a non-JSON body") from exc


def _parse(
    model: type[ModelT], response: httpx.Response, *, action: str
) -> ModelT:
    payload = _json(response, action=action)
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise DecodeError(f"{action} returned a malformed body: {exc}") from exc
