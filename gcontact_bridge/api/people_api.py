"""
Google People API wrapper for the contact directory.

Provides a per-call directory client on top of the People API for:
- Fetching all contacts with cursor-based pagination
- Creating, updating, and deleting single contacts
- Retrying mutating calls exactly once
- Translating HTTP and transport failures into the bridge error taxonomy
"""

import logging
from collections.abc import Callable
from typing import Any, Optional, TypeVar

import httplib2
from google.auth.exceptions import TransportError as GoogleTransportError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from gcontact_bridge.auth.google_auth import AuthError, AuthorizedClient
from gcontact_bridge.sync.contact import Contact, ContactTemplate, ContactUpdate
from gcontact_bridge.sync.mapper import MappingError, PersonMapper

# Person fields to request from the API
PERSON_FIELDS = ",".join(
    [
        "names",
        "emailAddresses",
        "phoneNumbers",
        "organizations",
        "photos",
        "metadata",
    ]
)

# Field groups replaced on update
UPDATE_PERSON_FIELDS = ",".join(
    [
        "names",
        "emailAddresses",
        "phoneNumbers",
        "organizations",
    ]
)

# Resource name of the authenticated user's own connections
OWN_RESOURCE_NAME = "people/me"

# Number of contacts per page when listing
DEFAULT_PAGE_SIZE = 100

# Extra attempts granted to create and update
DEFAULT_MUTATION_RETRIES = 1

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PeopleAPIError(Exception):
    """Raised when a People API operation fails."""

    pass


class NotFoundError(PeopleAPIError):
    """Raised when the target contact does not exist (anymore)."""

    pass


class TransientError(PeopleAPIError):
    """Raised on network failures, rate limiting and 5xx responses."""

    pass


def _is_transient_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class PeopleDirectory:
    """
    People API directory client for a single inbound operation.

    Built around an AuthorizedClient that is never shared across calls.

    Attributes:
        client: Authorized credentials for this operation
        mapper: PersonMapper used to (de)serialize records
        page_size: Number of contacts per page when listing

    Usage:
        directory = PeopleDirectory(client, mapper)

        contacts = directory.fetch_all()
        created = directory.create(template)
        updated = directory.update("c12345", patch)
        directory.delete("c12345")
    """

    def __init__(
        self,
        client: AuthorizedClient,
        mapper: PersonMapper,
        page_size: int = DEFAULT_PAGE_SIZE,
        retries: int = DEFAULT_MUTATION_RETRIES,
    ):
        self.client = client
        self.mapper = mapper
        self.page_size = min(page_size, 1000)  # API max is 1000
        self.retries = retries
        self._service = None

    @property
    def service(self) -> Any:
        """
        Get or create the Google API service object.

        Raises:
            PeopleAPIError: If service cannot be created
        """
        if self._service is None:
            try:
                self._service = build(
                    "people",
                    "v1",
                    credentials=self.client.credentials,
                    cache_discovery=False,
                )
                logger.debug("Created People API service")
            except Exception as e:
                logger.error(f"Failed to create People API service: {e}")
                raise PeopleAPIError(f"Failed to create API service: {e}") from e
        return self._service

    def _execute(self, request: Any, operation_name: str) -> Any:
        """
        Execute a prepared API request and translate its failures.

        Raises:
            AuthError: On 401 responses
            NotFoundError: On 404 responses
            TransientError: On 429/5xx responses and transport failures
            PeopleAPIError: On any other error status
        """
        try:
            return request.execute()

        except HttpError as e:
            status_code = e.resp.status

            if status_code == 401:
                raise AuthError(f"{operation_name} unauthorized: {e}") from e
            if status_code == 404:
                raise NotFoundError(f"{operation_name}: contact not found") from e
            if _is_transient_status(status_code):
                raise TransientError(
                    f"{operation_name} failed with status {status_code}: {e}"
                ) from e

            logger.error(f"{operation_name} failed with status {status_code}: {e}")
            raise PeopleAPIError(f"{operation_name} failed: {e}") from e

        except (httplib2.HttpLib2Error, GoogleTransportError, OSError) as e:
            raise TransientError(f"{operation_name} transport error: {e}") from e

    def _retry_once(
        self,
        operation: Callable[[], T],
        operation_name: str,
        retries: Optional[int] = None,
    ) -> T:
        """
        Execute an operation, retrying it on failure.

        Args:
            operation: Callable to execute
            operation_name: Name for logging purposes
            retries: Extra attempts (default: instance retries, i.e. one)

        Returns:
            Result of the operation

        Raises:
            The error of the last attempt. AuthError is raised immediately.
        """
        budget = self.retries if retries is None else retries

        for attempt in range(budget + 1):
            try:
                return operation()
            except AuthError:
                raise
            except (PeopleAPIError, MappingError) as e:
                if attempt < budget:
                    logger.warning(
                        f"{operation_name} failed, retrying "
                        f"(attempt {attempt + 1}/{budget + 1}): {e}"
                    )
                    continue
                logger.error(f"{operation_name} failed after {attempt + 1} attempts")
                raise

        # Only reachable with a negative budget
        raise PeopleAPIError(f"{operation_name} was not attempted")

    def fetch_all(self) -> list[Contact]:
        """
        Fetch all contacts of the authorized user.

        Pages through the connections list until the service stops returning
        a page token or the number of received records reaches the reported
        total. Records that cannot be mapped are dropped.

        Returns:
            List of Contact objects

        Raises:
            AuthError, TransientError, PeopleAPIError: On request failure
        """
        contacts: list[Contact] = []
        received = 0
        page_token: Optional[str] = None
        pages = 0

        while True:
            params: dict[str, Any] = {
                "resourceName": OWN_RESOURCE_NAME,
                "personFields": PERSON_FIELDS,
                "pageSize": self.page_size,
            }
            if page_token:
                params["pageToken"] = page_token

            request = self.service.people().connections().list(**params)
            response = self._execute(request, "fetch_all") or {}
            pages += 1

            connections = response.get("connections", [])
            received += len(connections)

            for person in connections:
                contact = self.mapper.to_contact(person)
                if contact is None:
                    logger.warning(
                        f"Skipping unmappable record {person.get('resourceName')!r}"
                    )
                    continue
                if (
                    not contact.phone_numbers
                    and not self.mapper.policy.include_contacts_without_phone_numbers
                ):
                    logger.debug(f"Skipping contact without phone numbers: {contact.id}")
                    continue
                contacts.append(contact)

            page_token = response.get("nextPageToken")
            total = response.get("totalItems", response.get("totalPeople"))

            if not page_token:
                break
            if total is not None and received >= total:
                logger.debug(
                    f"Received {received} of {total} records, ignoring next page token"
                )
                break

        logger.info(f"Fetched {len(contacts)} contacts in {pages} page(s)")
        return contacts

    def get_etag(self, contact_id: str) -> str:
        """
        Fetch the current concurrency token of a contact.

        Raises:
            NotFoundError: If no contact exists for contact_id
        """
        resource_name = self.mapper.resource_name(contact_id)
        request = self.service.people().get(
            resourceName=resource_name, personFields="metadata"
        )
        response = self._execute(request, f"get_contact({resource_name})")

        etag = (response or {}).get("etag")
        if not etag:
            raise NotFoundError(f"Contact not found: {resource_name}")
        return str(etag)

    def create(self, template: ContactTemplate) -> Contact:
        """
        Create a new contact.

        Args:
            template: Contact data to create

        Returns:
            Created Contact

        Raises:
            TransientError, PeopleAPIError: If both attempts fail upstream
            MappingError: If the created record cannot be mapped back
        """
        body = self.mapper.to_person(template)

        def execute_create() -> Contact:
            request = self.service.people().createContact(
                body=body, personFields=PERSON_FIELDS
            )
            response = self._execute(request, "create_contact")
            return self.mapper.to_contact_or_raise(response)

        created = self._retry_once(execute_create, "create_contact")
        logger.info(f"Created contact: {created.id}")
        return created

    def update(self, contact_id: str, patch: ContactUpdate) -> Contact:
        """
        Replace an existing contact.

        The field groups in UPDATE_PERSON_FIELDS are replaced wholesale by
        the mapping of the patch, they are not merged with stored values.

        Args:
            contact_id: Id of the contact to update
            patch: New contact data

        Returns:
            Updated Contact

        Raises:
            NotFoundError: If the contact does not exist
            TransientError, PeopleAPIError: If both attempts fail upstream
            MappingError: If the updated record cannot be mapped back
        """
        resource_name = self.mapper.resource_name(contact_id)
        etag = self.get_etag(contact_id)

        body = self.mapper.to_person(patch)
        body["etag"] = etag

        def execute_update() -> Contact:
            request = self.service.people().updateContact(
                resourceName=resource_name,
                body=body,
                updatePersonFields=UPDATE_PERSON_FIELDS,
                personFields=PERSON_FIELDS,
            )
            response = self._execute(request, f"update_contact({resource_name})")
            return self.mapper.to_contact_or_raise(response)

        updated = self._retry_once(execute_update, f"update_contact({resource_name})")
        logger.info(f"Updated contact: {resource_name}")
        return updated

    def delete(self, contact_id: str) -> None:
        """
        Delete a contact.

        A contact that is already gone counts as deleted.

        Raises:
            PeopleAPIError: If deletion fails for any other reason
        """
        resource_name = self.mapper.resource_name(contact_id)
        request = self.service.people().deleteContact(resourceName=resource_name)

        try:
            self._execute(request, f"delete_contact({resource_name})")
            logger.info(f"Deleted contact: {resource_name}")
        except NotFoundError:
            logger.debug(f"Contact already deleted: {resource_name}")
