"""
Google Contacts adapter exposed to the host integration platform.

Orchestrates authorization, directory calls and the contact cache for each
inbound operation:

    get_contacts        cached read, refreshed in the background
    create_contact      synchronous create, then cache patch
    update_contact      synchronous update, then cache patch
    delete_contact      synchronous delete, then cache patch
    get_oauth_redirect_url / handle_oauth_callback
                        OAuth2 handshake producing the API key
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

from google.auth.exceptions import RefreshError
from google.auth.exceptions import TransportError as GoogleTransportError

from gcontact_bridge.api.people_api import (
    DEFAULT_PAGE_SIZE,
    PeopleDirectory,
    TransientError,
)
from gcontact_bridge.auth.google_auth import GoogleAuth
from gcontact_bridge.config.settings import Settings
from gcontact_bridge.storage.cache import (
    CacheStore,
    MemoryCacheStore,
    SQLiteCacheStore,
    SyncCache,
)
from gcontact_bridge.sync.contact import Contact, ContactTemplate, ContactUpdate
from gcontact_bridge.sync.mapper import PersonMapper
from gcontact_bridge.utils.anonymize import anonymize_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BridgeConfig:
    """
    Per-user configuration handed over by the host platform.

    Attributes:
        api_key: Encoded access/refresh token pair
        api_url: Directory URL (unused for Google, kept for the host format)
    """

    api_key: str
    api_url: str = ""


class GoogleContactsAdapter:
    """
    Facade over authorization, the People API directory and the cache.

    Every operation authorizes its own client; nothing is shared between
    calls except the injected cache.

    Usage:
        adapter = GoogleContactsAdapter.from_settings(load_settings())

        url = adapter.get_oauth_redirect_url()
        config = adapter.handle_oauth_callback(code)

        contacts = adapter.get_contacts(config)
        contact = adapter.create_contact(config, ContactTemplate(first_name="Ada"))
    """

    def __init__(
        self,
        auth: GoogleAuth,
        cache: SyncCache,
        mapper: Optional[PersonMapper] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.auth = auth
        self.cache = cache
        self.mapper = mapper or PersonMapper()
        self.page_size = page_size

    @classmethod
    def from_settings(cls, settings: Settings) -> "GoogleContactsAdapter":
        """
        Build an adapter and its cache from resolved settings.

        Args:
            settings: Loaded bridge settings

        Returns:
            Ready to use adapter
        """
        store: CacheStore
        if settings.cache_backend == "sqlite" and settings.cache_db is not None:
            settings.cache_db.parent.mkdir(parents=True, exist_ok=True)
            sqlite_store = SQLiteCacheStore(str(settings.cache_db))
            sqlite_store.initialize()
            store = sqlite_store
            logger.info(f"Initialized SQLite cache at {settings.cache_db}")
        else:
            store = MemoryCacheStore()
            logger.info("Initialized in-memory cache")

        return cls(
            auth=GoogleAuth(
                settings.client_id, settings.client_secret, settings.redirect_url
            ),
            cache=SyncCache(
                store, ttl=settings.cache_ttl, max_workers=settings.cache_workers
            ),
            mapper=PersonMapper(settings.mapping_policy()),
            page_size=settings.page_size,
        )

    def _directory(self, config: BridgeConfig) -> PeopleDirectory:
        """Authorize a fresh client and wrap it in a directory."""
        try:
            client = self.auth.authorize(config.api_key)
        except GoogleTransportError as e:
            raise TransientError(f"Token endpoint unreachable: {e}") from e
        except RefreshError as e:
            # authorize() only lets retryable refresh failures through
            raise TransientError(f"Token endpoint unavailable: {e}") from e
        return PeopleDirectory(client, self.mapper, page_size=self.page_size)

    def _patch_cache(
        self, description: str, patch: Callable[..., None], *args: Any
    ) -> None:
        """Apply a cache patch. Failures are logged, never raised."""
        try:
            patch(*args)
        except Exception as e:
            logger.warning(f"Cache {description} failed: {e}")

    # =========================================================================
    # Contact operations
    # =========================================================================

    def get_contacts(self, config: BridgeConfig) -> list[Contact]:
        """
        Return the cached contacts and trigger a background refresh.

        Never waits for the directory. The first call for a key returns an
        empty list until the background fetch has filled the cache.

        Raises:
            ValidationError: If the API key is malformed
            AuthError: If the credentials are rejected
            TransientError: If the token endpoint is unreachable or unavailable
        """
        directory = self._directory(config)
        contacts = self.cache.get(config.api_key)
        self.cache.populate(config.api_key, directory)

        if contacts is None:
            logger.info(
                f"No cached contacts for key {anonymize_key(config.api_key)}, "
                f"population started"
            )
            return []
        return contacts

    def refresh_contacts(self, config: BridgeConfig) -> list[Contact]:
        """
        Fetch all contacts synchronously and overwrite the cache entry.

        Raises:
            ValidationError, AuthError, TransientError, PeopleAPIError
        """
        contacts = self._directory(config).fetch_all()
        self._patch_cache("set", self.cache.set, config.api_key, contacts)
        return contacts

    def create_contact(
        self, config: BridgeConfig, template: ContactTemplate
    ) -> Contact:
        """
        Create a contact and append it to the cached list.

        Raises:
            ValidationError, AuthError, TransientError, PeopleAPIError,
            MappingError
        """
        contact = self._directory(config).create(template)
        self._patch_cache("create", self.cache.apply_create, config.api_key, contact)
        return contact

    def update_contact(
        self, config: BridgeConfig, contact_id: str, patch: ContactUpdate
    ) -> Contact:
        """
        Update a contact and replace it in the cached list.

        Raises:
            ValidationError, AuthError, NotFoundError, TransientError,
            PeopleAPIError, MappingError
        """
        contact = self._directory(config).update(contact_id, patch)
        self._patch_cache(
            "update", self.cache.apply_update, config.api_key, contact_id, contact
        )
        return contact

    def delete_contact(self, config: BridgeConfig, contact_id: str) -> None:
        """
        Delete a contact and remove it from the cached list.

        Raises:
            ValidationError, AuthError, TransientError, PeopleAPIError
        """
        self._directory(config).delete(contact_id)
        self._patch_cache("delete", self.cache.apply_delete, config.api_key, contact_id)

    def invalidate_contacts(self, config: BridgeConfig) -> None:
        """Drop the cache entry for a key."""
        self.cache.invalidate(config.api_key)

    # =========================================================================
    # OAuth2 handshake
    # =========================================================================

    def get_oauth_redirect_url(self) -> str:
        return self.auth.get_authorization_url()

    def handle_oauth_callback(self, code: str) -> BridgeConfig:
        """
        Exchange the callback code for a host configuration.

        Raises:
            AuthError: If the exchange fails
        """
        return BridgeConfig(api_key=self.auth.exchange_code(code), api_url="")

    def close(self) -> None:
        """Wait for background population and release the thread pool."""
        self.cache.close()
