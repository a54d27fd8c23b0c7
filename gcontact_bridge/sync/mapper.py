"""
Bidirectional mapping between Google People API records and Contacts.

Provides a stateless PersonMapper driven by an immutable MappingPolicy:
- Resolving the contact id from the Person's resource name
- Picking name, email and photo entries with a configurable
  disambiguation strategy
- Filtering or passing through phone number types (strict/permissive)
- Building People API payloads for create and update requests

Example People API record::

    {
        'resourceName': 'people/c12345',
        'etag': '%EgUBAi43PRoEAQIFByIMUjlZSXhQd3F5NDg9',
        'metadata': {'sources': [{'type': 'CONTACT', 'id': '3a9fd1c40b2e7d11'}]},
        'names': [{'givenName': 'Ada', 'familyName': 'Lovelace',
                   'metadata': {'primary': True, 'source': {'type': 'CONTACT'}}}],
        'emailAddresses': [{'value': 'ada@example.com', 'metadata': {...}}],
        'phoneNumbers': [{'value': '+49 30 123', 'type': 'work', 'metadata': {...}}],
        'organizations': [{'name': 'Analytical Engines'}],
        'photos': [{'url': 'https://lh3.googleusercontent.com/...'}]
    }
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from gcontact_bridge.sync.contact import (
    Contact,
    ContactTemplate,
    PhoneNumber,
    PhoneNumberLabel,
    label_value,
)

# Source type Google uses for entries owned by the user's own contact
CONTACT_SOURCE_TYPE = "CONTACT"

# Web UI link for a contact, formatted with the CONTACT source id
CONTACT_URL_TEMPLATE = "https://contacts.google.com/contact/{}"

# Phone types kept in strict mode unless configured otherwise
DEFAULT_ALLOWED_PHONE_TYPES = (
    PhoneNumberLabel.HOME.value,
    PhoneNumberLabel.WORK.value,
    PhoneNumberLabel.MOBILE.value,
)

logger = logging.getLogger(__name__)


class MappingError(Exception):
    """Raised when a People API record cannot be converted to a Contact."""

    pass


class PhoneMode(str, Enum):
    """Controls how phone number types are mapped."""

    STRICT = "strict"  # Only types from the allow-list, others are dropped
    PERMISSIVE = "permissive"  # Every type, unknown labels passed through raw


class PrimaryStrategy(str, Enum):
    """Upstream signal used to pick the primary email and photo."""

    CONTACT_SOURCE = "contact_source"  # metadata.source.type == "CONTACT"
    PRIMARY_FLAG = "primary_flag"  # metadata.primary == True


VALID_PHONE_MODES = {mode.value for mode in PhoneMode}
VALID_PRIMARY_STRATEGIES = {strategy.value for strategy in PrimaryStrategy}


@dataclass(frozen=True)
class MappingPolicy:
    """
    Disambiguation and filtering rules for the PersonMapper.

    Attributes:
        phone_mode: Strict allow-list filtering or permissive pass-through
        allowed_phone_types: Phone types kept in strict mode
        primary_strategy: Signal used to choose the email and photo entry
        include_contacts_without_phone_numbers: Whether records that end up
            with no phone number are part of bulk fetch results
    """

    phone_mode: PhoneMode = PhoneMode.STRICT
    allowed_phone_types: tuple[str, ...] = DEFAULT_ALLOWED_PHONE_TYPES
    primary_strategy: PrimaryStrategy = PrimaryStrategy.CONTACT_SOURCE
    include_contacts_without_phone_numbers: bool = True

    @property
    def permissive(self) -> bool:
        return self.phone_mode == PhoneMode.PERMISSIVE

    def allows_phone_type(self, phone_type: Optional[str]) -> bool:
        """Check whether a phone type survives mapping under this policy."""
        if self.permissive:
            return True
        return phone_type in self.allowed_phone_types


def _source_type(metadata: Optional[dict[str, Any]]) -> Optional[str]:
    if not metadata:
        return None
    source = metadata.get("source") or {}
    return source.get("type")


def _is_contact_field(metadata: Optional[dict[str, Any]]) -> bool:
    return _source_type(metadata) == CONTACT_SOURCE_TYPE


def _is_primary_field(metadata: Optional[dict[str, Any]]) -> bool:
    return bool(metadata and metadata.get("primary"))


def _is_foreign_field(metadata: Optional[dict[str, Any]]) -> bool:
    """True for entries explicitly sourced from something other than the contact."""
    source_type = _source_type(metadata)
    return source_type is not None and source_type != CONTACT_SOURCE_TYPE


class PersonMapper:
    """
    Stateless converter between People API records and Contacts.

    Attributes:
        policy: MappingPolicy applied to every conversion

    Usage:
        mapper = PersonMapper(MappingPolicy(phone_mode=PhoneMode.PERMISSIVE))

        contact = mapper.to_contact(person)   # None if no id resolves
        body = mapper.to_person(template)     # payload for create/update
    """

    def __init__(self, policy: Optional[MappingPolicy] = None):
        self.policy = policy or MappingPolicy()

    # =========================================================================
    # People API -> Contact
    # =========================================================================

    def to_contact(self, person: dict[str, Any]) -> Optional[Contact]:
        """
        Convert a People API record into a Contact.

        Args:
            person: Person dictionary from the People API

        Returns:
            Contact instance, or None if the record has no resolvable id.
            Callers doing bulk work drop None results.
        """
        contact_id = self.resource_id(person.get("resourceName"))
        if not contact_id:
            return None

        first_name, last_name = self._name(person)
        source_id = self._contact_source_id(person)

        return Contact(
            id=contact_id,
            first_name=first_name,
            last_name=last_name,
            email=self._value(person.get("emailAddresses"), "value"),
            organization=self._organization(person),
            contact_url=CONTACT_URL_TEMPLATE.format(source_id) if source_id else None,
            avatar_url=self._value(person.get("photos"), "url"),
            phone_numbers=self._phone_numbers(person),
        )

    def to_contact_or_raise(self, person: dict[str, Any]) -> Contact:
        """
        Convert a single People API record, failing if it cannot be mapped.

        Raises:
            MappingError: If the record has no resolvable id
        """
        contact = self.to_contact(person or {})
        if contact is None:
            raise MappingError(
                f"Cannot map People API record without a resource id "
                f"(resourceName={(person or {}).get('resourceName')!r})"
            )
        return contact

    @staticmethod
    def resource_id(resource_name: Optional[str]) -> Optional[str]:
        """
        Extract the id token from a resource name.

        Args:
            resource_name: Path-style name, e.g. "people/c12345"

        Returns:
            The id ("c12345"), or None if it cannot be resolved
        """
        if not resource_name:
            return None
        parts = resource_name.split("/")
        if len(parts) < 2 or not parts[1]:
            return None
        return parts[1]

    @staticmethod
    def resource_name(contact_id: str) -> str:
        """Build the People API resource name for a contact id."""
        return f"people/{contact_id}"

    def _select(
        self, entries: Optional[list[dict[str, Any]]], use_strategy: bool = True
    ) -> Optional[dict[str, Any]]:
        """
        Pick one entry from a multi-valued field.

        An entry carrying the disambiguation signal wins. Without one, a
        single entry that is not sourced elsewhere is used. Several
        unsignalled candidates yield None.
        """
        if not entries:
            return None

        if use_strategy and self.policy.primary_strategy == PrimaryStrategy.PRIMARY_FLAG:
            signalled = [e for e in entries if _is_primary_field(e.get("metadata"))]
        else:
            signalled = [e for e in entries if _is_contact_field(e.get("metadata"))]

        if signalled:
            return signalled[0]

        candidates = [e for e in entries if not _is_foreign_field(e.get("metadata"))]
        if len(candidates) == 1:
            return candidates[0]

        if len(candidates) > 1:
            logger.debug(
                f"Ambiguous field with {len(candidates)} untagged entries, skipping"
            )
        return None

    def _name(self, person: dict[str, Any]) -> tuple[Optional[str], Optional[str]]:
        # Names always use the contact-source tag
        name = self._select(person.get("names"), use_strategy=False)
        if not name:
            return None, None
        return name.get("givenName") or None, name.get("familyName") or None

    def _value(
        self, entries: Optional[list[dict[str, Any]]], key: str
    ) -> Optional[str]:
        entry = self._select(entries)
        if not entry:
            return None
        return entry.get(key) or None

    @staticmethod
    def _organization(person: dict[str, Any]) -> Optional[str]:
        organizations = person.get("organizations") or []
        if not organizations:
            return None
        return organizations[0].get("name") or None

    @staticmethod
    def _contact_source_id(person: dict[str, Any]) -> Optional[str]:
        sources = (person.get("metadata") or {}).get("sources") or []
        for source in sources:
            if source.get("type") == CONTACT_SOURCE_TYPE:
                return source.get("id") or None
        return None

    def _phone_numbers(self, person: dict[str, Any]) -> list[PhoneNumber]:
        phone_numbers: list[PhoneNumber] = []
        for entry in person.get("phoneNumbers") or []:
            value = entry.get("value")
            if not value or not value.strip():
                continue
            if _is_foreign_field(entry.get("metadata")):
                continue

            phone_type = entry.get("type")
            if not self.policy.allows_phone_type(phone_type):
                logger.debug(f"Skipping phone number with type {phone_type!r}")
                continue

            label = PhoneNumberLabel.parse(phone_type) or PhoneNumberLabel.OTHER
            phone_numbers.append(PhoneNumber(label=label, phone_number=value))
        return phone_numbers

    # =========================================================================
    # Contact -> People API
    # =========================================================================

    def to_person(self, template: ContactTemplate) -> dict[str, Any]:
        """
        Convert a template or update into a People API payload.

        Returns:
            Dictionary in People API format

        Note:
            - Does not include resourceName or etag
            - Only includes non-empty field groups
        """
        person: dict[str, Any] = {}

        name: dict[str, str] = {}
        if template.first_name:
            name["givenName"] = template.first_name
        if template.last_name:
            name["familyName"] = template.last_name
        if name:
            person["names"] = [name]

        if template.email:
            person["emailAddresses"] = [{"value": template.email}]

        if template.organization:
            person["organizations"] = [{"name": template.organization}]

        phone_numbers: list[dict[str, str]] = []
        for entry in template.phone_numbers:
            phone_type = label_value(entry.label)
            if not self.policy.allows_phone_type(phone_type):
                logger.debug(f"Dropping phone number with label {phone_type!r}")
                continue
            phone_number = {"value": entry.phone_number}
            if phone_type:
                phone_number["type"] = phone_type
            phone_numbers.append(phone_number)
        if phone_numbers:
            person["phoneNumbers"] = phone_numbers

        return person
