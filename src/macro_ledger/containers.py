"""Dependency container wiring."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from macro_ledger.adapters.firestore_client import HttpxFirestoreClient
from macro_ledger.adapters.food_search_client import HttpxFoodSearchClient
from macro_ledger.adapters.identity_client import HttpxIdentityClient
from macro_ledger.app_logging import configure_logging
from macro_ledger.config import Settings
from macro_ledger.domain.tokens import TokenGrant
from macro_ledger.errors import AuthenticationError
from macro_ledger.services.auth import TokenCache
from macro_ledger.services.cache import InMemoryCache
from macro_ledger.services.food_search import FoodSearchService
from macro_ledger.services.journal import JournalService
from macro_ledger.services.micros import MicroSyncService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    token_cache: TokenCache
    firestore_client: HttpxFirestoreClient
    journal_service: JournalService
    micro_sync_service: MicroSyncService
    food_search_service: FoodSearchService | None
    close_resources: Callable[[], Awaitable[None]]


def build_container(
    settings: Settings | None = None, grant: TokenGrant | None = None
) -> AppContainer:
    """Create the default container from a refresh token or an issued grant."""
    configure_logging()
    resolved_settings = settings or Settings()
    if grant is None and not resolved_settings.refresh_token:
        raise AuthenticationError("No refresh token configured; sign in first")
    identity_client = _identity_client(resolved_settings)
    if grant is not None:
        token_cache = TokenCache.from_grant(identity_client, grant)
    else:
        token_cache = TokenCache(identity_client, resolved_settings.refresh_token)

    firestore_client = HttpxFirestoreClient.create(
        project_id=resolved_settings.firebase_project_id,
        tokens=token_cache,
        base_url=resolved_settings.firestore_base_url,
        timeout=resolved_settings.request_timeout_seconds,
    )
    micro_sync_service = MicroSyncService(firestore_client)
    journal_service = JournalService(
        gateway=firestore_client,
        identity=token_cache,
        micro_sync=micro_sync_service,
    )

    search_client: HttpxFoodSearchClient | None = None
    food_search_service: FoodSearchService | None = None
    if resolved_settings.search_base_url and resolved_settings.search_api_key:
        search_client = HttpxFoodSearchClient.create(
            base_url=resolved_settings.search_base_url,
            api_key=resolved_settings.search_api_key,
            timeout=resolved_settings.request_timeout_seconds,
        )
        food_search_service = FoodSearchService(
            client=search_client,
            cache=InMemoryCache(),
            common_collection=resolved_settings.search_common_collection,
            branded_collection=resolved_settings.search_branded_collection,
        )

    async def close_resources() -> None:
        await identity_client.close()
        await firestore_client.close()
        if search_client is not None:
            await search_client.close()

    return AppContainer(
        settings=resolved_settings,
        token_cache=token_cache,
        firestore_client=firestore_client,
        journal_service=journal_service,
        micro_sync_service=micro_sync_service,
        food_search_service=food_search_service,
        close_resources=close_resources,
    )


async def login(settings: Settings | None = None) -> AppContainer:
    """Sign in with the configured email and password, then build the container."""
    resolved_settings = settings or Settings()
    if not resolved_settings.has_credentials():
        raise AuthenticationError("No refresh token or email/password configured")
    if resolved_settings.refresh_token:
        return build_container(resolved_settings)
    identity_client = _identity_client(resolved_settings)
    try:
        grant = await identity_client.sign_in_with_password(
            resolved_settings.email, resolved_settings.password
        )
    finally:
        await identity_client.close()
    return build_container(resolved_settings, grant=grant)


def _identity_client(settings: Settings) -> HttpxIdentityClient:
    return HttpxIdentityClient.create(
        api_key=settings.firebase_api_key,
        identity_base_url=settings.identity_base_url,
        secure_token_base_url=settings.secure_token_base_url,
        ios_bundle_id=settings.ios_bundle_id,
        timeout=settings.request_timeout_seconds,
    )
