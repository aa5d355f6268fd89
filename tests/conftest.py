"""Shared test fixtures."""

import base64
import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from macro_ledger.adapters.firestore_client import FirestoreGateway
from macro_ledger.adapters.food_search_client import FoodSearchClient
from macro_ledger.adapters.identity_client import IdentityClient
from macro_ledger.config import Settings
from macro_ledger.domain.documents import Document
from macro_ledger.domain.tokens import TokenGrant
from macro_ledger.errors import AuthenticationError, NotFoundError
from macro_ledger.services.journal import JournalService
from macro_ledger.services.micros import MicroSyncService

DOCUMENT_ROOT = "projects/test-project/databases/(default)/documents"


def make_jwt(claims: dict[str, object]) -> str:
    """Build an unsigned JWT carrying ``claims``."""

    def segment(payload: dict[str, object]) -> str:
        raw = base64.urlsafe_b64encode(json.dumps(payload).encode())
        return raw.decode().rstrip("=")

    return f"{segment({'alg': 'none'})}.{segment(claims)}.signature"


def unquote_field_path(field_path: str) -> str:
    if field_path.startswith("`") and field_path.endswith("`"):
        inner = field_path[1:-1]
        return inner.replace("\\`", "`").replace("\\\\", "\\")
    return field_path


@dataclass
class InMemoryFirestoreGateway(FirestoreGateway):
    """In-memory document store honouring update-mask semantics."""

    documents: dict[str, dict[str, dict[str, object]]] = field(default_factory=dict)
    collections: dict[str, list[str]] = field(default_factory=dict)
    patches: list[tuple[str, dict[str, object], list[str]]] = field(
        default_factory=list
    )
    reads: list[str] = field(default_factory=list)
    failures: dict[str, Exception] = field(default_factory=dict)

    async def get_document(self, path: str) -> Document:
        self.reads.append(path)
        if path in self.failures:
            raise self.failures[path]
        if path not in self.documents:
            raise NotFoundError(path, "not found")
        return self._document(path)

    async def list_documents(
        self,
        collection_path: str,
        page_size: int | None = None,
        page_token: str | None = None,
    ) -> tuple[list[Document], str | None]:
        prefix = f"{collection_path}/"
        paths = sorted(
            path
            for path in self.documents
            if path.startswith(prefix) and "/" not in path[len(prefix) :]
        )
        if page_size is not None:
            paths = paths[:page_size]
        return [self._document(path) for path in paths], None

    async def list_collection_ids(self, parent_path: str | None = None) -> list[str]:
        return list(self.collections.get(parent_path or "", []))

    async def run_query(
        self, parent_path: str | None, structured_query: dict[str, object]
    ) -> list[Document]:
        return []

    async def patch_document(
        self,
        path: str,
        fields: dict[str, dict[str, object]],
        field_paths: Sequence[str],
    ) -> Document:
        self.patches.append((path, fields, list(field_paths)))
        stored = self.documents.setdefault(path, {})
        for field_path in field_paths:
            key = unquote_field_path(field_path)
            if key in fields:
                stored[key] = fields[key]
            else:
                stored.pop(key, None)
        return self._document(path)

    def _document(self, path: str) -> Document:
        return Document(
            name=f"{DOCUMENT_ROOT}/{path}",
            fields=dict(self.documents[path]),
            createTime="2024-01-01T00:00:00Z",
            updateTime="2024-01-01T00:00:00Z",
        )


@dataclass
class FakeIdentityClient(IdentityClient):
    """Identity client that issues numbered tokens."""

    user_id: str = "user-1"
    expires_in: int = 3600
    refresh_calls: list[str] = field(default_factory=list)
    fail: bool = False

    async def sign_in_with_password(self, email: str, password: str) -> TokenGrant:
        if self.fail:
            raise AuthenticationError("Sign-in failed: 400 - INVALID_PASSWORD")
        return self._grant("refresh-0")

    async def refresh(self, refresh_token: str) -> TokenGrant:
        self.refresh_calls.append(refresh_token)
        if self.fail:
            raise AuthenticationError("Token refresh failed: 400 - TOKEN_EXPIRED")
        return self._grant(f"refresh-{len(self.refresh_calls)}")

    def _grant(self, refresh_token: str) -> TokenGrant:
        token = make_jwt({"user_id": self.user_id, "n": len(self.refresh_calls)})
        return TokenGrant.model_validate(
            {
                "id_token": token,
                "refresh_token": refresh_token,
                "expires_in": str(self.expires_in),
            }
        )


@dataclass
class StaticIdentity:
    """User id source with a fixed id."""

    uid: str = "user-1"

    async def user_id(self) -> str:
        return self.uid


@dataclass
class FakeFoodSearchClient(FoodSearchClient):
    """Search client returning canned hit lists."""

    hits: list[list[dict[str, object]]] = field(
        default_factory=lambda: [
            [
                {
                    "id": "c-1",
                    "foodDesc": "Chicken breast, roasted",
                    "208": 165,
                    "203": "31.0",
                    "205": 0,
                    "204": 3.6,
                    "291": 0,
                    "307": "74",
                    "weights": [
                        {"m": "breast", "q": 1, "w": 172},
                        {"m": "oz", "q": "1", "w": "28.35"},
                    ],
                    "dfSrv": 0,
                    "imageId": "img-1",
                    "source": "usda",
                }
            ],
            [
                {
                    "id": 77,
                    "foodDesc": "Protein bar",
                    "brandName": "Acme",
                    "208": 380,
                    "203": 30,
                    "205": 40,
                    "204": 12,
                    "weights": [{"m": "bar", "q": 1, "w": 60}],
                    "dfSrv": "bar",
                }
            ],
        ]
    )
    calls: int = 0

    async def multi_search(
        self, query: str, collections: Sequence[str], per_page: int = 10
    ) -> list[list[dict[str, object]]]:
        self.calls += 1
        return self.hits


class MutableClock:
    """Clock that tests can move forward."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        firebase_api_key="api-key",
        firebase_project_id="test-project",
        refresh_token="refresh-0",
    )


@pytest.fixture
def gateway() -> InMemoryFirestoreGateway:
    return InMemoryFirestoreGateway()


@pytest.fixture
def journal(gateway: InMemoryFirestoreGateway) -> JournalService:
    return JournalService(
        gateway=gateway,
        identity=StaticIdentity(),
        micro_sync=MicroSyncService(gateway),
    )
