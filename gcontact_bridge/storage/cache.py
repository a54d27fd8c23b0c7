"""
Contact cache keyed by API key.

Provides a TTL-bounded performance layer over the People API:
- Read-through population in a background thread pool
- Incremental write-through patches after create/update/delete
- Pluggable key/value stores (in-memory, SQLite)

The cache may be empty or stale at any time. It is never the source of
truth. Entries are not locked: concurrent writers on the same key race
and the last write wins.
"""

import json
import logging
import sqlite3
import threading
import time
from collections.abc import Callable, Generator
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from typing import Optional, Protocol

from gcontact_bridge.sync.contact import Contact
from gcontact_bridge.utils.anonymize import anonymize_key

# Time-to-live of a cache entry in seconds (30 days)
DEFAULT_CACHE_TTL = 60 * 60 * 24 * 30

# Background population threads
DEFAULT_MAX_WORKERS = 4

SCHEMA = """
CREATE TABLE IF NOT EXISTS contact_cache (
    cache_key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    expires_at REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_contact_cache_expires ON contact_cache(expires_at);
"""

logger = logging.getLogger(__name__)


class CacheStore(Protocol):
    """Key/value storage with per-entry expiry."""

    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if absent or expired."""
        ...

    def set(self, key: str, value: str, ttl: float) -> None:
        """Store a value that expires ttl seconds from now."""
        ...

    def delete(self, key: str) -> None:
        """Remove a value if present."""
        ...


class ContactFetcher(Protocol):
    """Anything that can produce the full contact list for a key."""

    def fetch_all(self) -> list[Contact]: ...


class MemoryCacheStore:
    """In-process store. Entries are lost on restart."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: str, ttl: float) -> None:
        self._entries[key] = (value, self._clock() + ttl)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)


class SQLiteCacheStore:
    """
    SQLite-backed store that survives restarts.

    Usage:
        store = SQLiteCacheStore('/path/to/cache.db')
        store.initialize()

        # Or use in-memory for testing:
        store = SQLiteCacheStore(':memory:')
        store.initialize()
    """

    def __init__(self, db_path: str, clock: Callable[[], float] = time.time):
        self.db_path = db_path
        self._clock = clock
        self._shared_connection: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a database connection.

        In-memory databases share one connection so the schema persists.
        Population runs on worker threads, so thread checks are disabled.
        """
        if self.db_path == ":memory:":
            if self._shared_connection is None:
                self._shared_connection = sqlite3.connect(
                    ":memory:", check_same_thread=False
                )
            return self._shared_connection
        return sqlite3.connect(self.db_path)

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager committing on success and rolling back on error."""
        conn = self._get_connection()
        is_shared = self.db_path == ":memory:"
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if not is_shared:
                conn.close()

    def initialize(self) -> None:
        """Create the cache table if it doesn't exist and drop expired rows."""
        with self.connection() as conn:
            conn.executescript(SCHEMA)

        purged = self.purge_expired()
        if purged:
            logger.info(f"Purged {purged} expired cache entries from {self.db_path}")

    def get(self, key: str) -> Optional[str]:
        now = self._clock()
        with self.connection() as conn:
            row = conn.execute(
                "SELECT value, expires_at FROM contact_cache WHERE cache_key = ?",
                (key,),
            ).fetchone()
            if row is None:
                return None
            if row[1] <= now:
                conn.execute("DELETE FROM contact_cache WHERE cache_key = ?", (key,))
                return None
            return str(row[0])

    def set(self, key: str, value: str, ttl: float) -> None:
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO contact_cache (cache_key, value, expires_at)
                VALUES (?, ?, ?)
                ON CONFLICT(cache_key) DO UPDATE SET
                    value = excluded.value,
                    expires_at = excluded.expires_at
                """,
                (key, value, self._clock() + ttl),
            )

    def delete(self, key: str) -> None:
        with self.connection() as conn:
            conn.execute("DELETE FROM contact_cache WHERE cache_key = ?", (key,))

    def purge_expired(self) -> int:
        """
        Remove all expired entries.

        Returns:
            Number of entries removed
        """
        with self.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM contact_cache WHERE expires_at <= ?", (self._clock(),)
            )
            return cursor.rowcount


class SyncCache:
    """
    Contact lists per API key with read-through and write-through support.

    Per key an entry is Absent, Populating (a background fetch is in flight,
    readers still see the previous state), Populated or Expired. Patches
    only apply to Populated entries and renew their expiry.

    Attributes:
        store: Underlying CacheStore
        ttl: Entry lifetime in seconds

    Usage:
        cache = SyncCache(MemoryCacheStore())

        contacts = cache.get(api_key)          # None if absent or expired
        cache.populate(api_key, directory)     # background refresh
        cache.apply_create(api_key, contact)   # patch after a mutation
    """

    def __init__(
        self,
        store: CacheStore,
        ttl: float = DEFAULT_CACHE_TTL,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        self.store = store
        self.ttl = ttl
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="contact-cache"
        )
        self._populating: dict[str, Future[None]] = {}
        self._populating_lock = threading.Lock()

    def get(self, key: str) -> Optional[list[Contact]]:
        """
        Get the cached contacts for a key.

        Returns:
            List of contacts, or None if absent, expired or unreadable
        """
        value = self.store.get(key)
        if value is None:
            logger.debug(f"Found no match for key {anonymize_key(key)} in cache")
            return None

        try:
            return [Contact.from_dict(entry) for entry in json.loads(value)]
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Discarding unreadable cache entry {anonymize_key(key)}: {e}")
            self.store.delete(key)
            return None

    def set(self, key: str, contacts: list[Contact]) -> None:
        """Overwrite the entry for a key and reset its expiry."""
        value = json.dumps([contact.to_dict() for contact in contacts])
        logger.debug(f"Saving {len(contacts)} contacts for key {anonymize_key(key)}")
        self.store.set(key, value, self.ttl)

    def invalidate(self, key: str) -> None:
        """Remove the entry for a key."""
        logger.debug(f"Removing contacts for key {anonymize_key(key)} from cache")
        self.store.delete(key)

    def populate(self, key: str, fetcher: ContactFetcher) -> "Future[None]":
        """
        Refresh the entry for a key in the background.

        At most one refresh per key is in flight. While one is running,
        further calls return its future instead of queueing another fetch.
        Failures are logged and never propagated.

        Args:
            key: Cache key
            fetcher: Object whose fetch_all() returns the full contact list

        Returns:
            Future completing when the refresh has finished (or failed)
        """
        with self._populating_lock:
            running = self._populating.get(key)
            if running is not None and not running.done():
                logger.debug(f"Population already running for key {anonymize_key(key)}")
                return running
            future = self._executor.submit(self._populate, key, fetcher)
            self._populating[key] = future

        # Registered outside the lock, the callback runs inline if already done
        future.add_done_callback(lambda done: self._forget(key, done))
        return future

    def _forget(self, key: str, future: "Future[None]") -> None:
        with self._populating_lock:
            if self._populating.get(key) is future:
                del self._populating[key]

    def _populate(self, key: str, fetcher: ContactFetcher) -> None:
        try:
            contacts = fetcher.fetch_all()
            self.set(key, contacts)
            logger.info(
                f"Populated cache for key {anonymize_key(key)} "
                f"with {len(contacts)} contacts"
            )
        except Exception as e:
            logger.warning(
                f"Background population failed for key {anonymize_key(key)}: {e}"
            )

    def apply_create(self, key: str, contact: Contact) -> None:
        """Append a created contact to an existing entry."""
        contacts = self.get(key)
        if contacts is None:
            return
        contacts.append(contact)
        self.set(key, contacts)

    def apply_update(self, key: str, contact_id: str, contact: Contact) -> None:
        """Replace a contact by id in an existing entry (append if missing)."""
        contacts = self.get(key)
        if contacts is None:
            return

        replaced = False
        for index, entry in enumerate(contacts):
            if entry.id == contact_id:
                contacts[index] = contact
                replaced = True
        if not replaced:
            contacts.append(contact)
        self.set(key, contacts)

    def apply_delete(self, key: str, contact_id: str) -> None:
        """Remove a contact by id from an existing entry."""
        contacts = self.get(key)
        if contacts is None:
            return
        self.set(key, [entry for entry in contacts if entry.id != contact_id])

    def close(self, wait: bool = True) -> None:
        """Shut down the background population pool."""
        self._executor.shutdown(wait=wait)
