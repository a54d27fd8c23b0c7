"""
Contact data model for the Google Contacts bridge.

Provides the canonical, directory-agnostic contact representation with
methods for:
- Converting to/from the host platform's dictionary format
- Carrying phone numbers with a known or pass-through label

The same dictionary format is used as the cache value format.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class PhoneNumberLabel(str, Enum):
    """Known phone number labels (shared with the People API type vocabulary)."""

    HOME = "home"
    WORK = "work"
    MOBILE = "mobile"
    HOME_FAX = "homeFax"
    WORK_FAX = "workFax"
    WORK_MOBILE = "workMobile"
    WORK_PAGER = "workPager"
    MAIN = "main"
    GOOGLE_VOICE = "googleVoice"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Optional[str]) -> Union[PhoneNumberLabel, str, None]:
        """
        Resolve a raw label to a known label where possible.

        Args:
            value: Raw label string

        Returns:
            Matching PhoneNumberLabel, the raw string if it is not part of the
            known vocabulary, or None for an empty value
        """
        if not value:
            return None
        try:
            return cls(value)
        except ValueError:
            return value


# A label is either a known vocabulary member or a raw pass-through string
Label = Union[PhoneNumberLabel, str]


def label_value(label: Optional[Label]) -> Optional[str]:
    """Return the plain string form of a label."""
    if isinstance(label, PhoneNumberLabel):
        return label.value
    return label


@dataclass
class PhoneNumber:
    """
    A single phone number of a contact.

    Attributes:
        label: Known label or raw pass-through label string
        phone_number: The number itself (required, non-empty)
    """

    label: Optional[Label]
    phone_number: str

    def __post_init__(self) -> None:
        if not self.phone_number or not self.phone_number.strip():
            raise ValueError("phone_number must be a non-empty string")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PhoneNumber:
        return cls(
            label=PhoneNumberLabel.parse(data.get("label")),
            phone_number=data.get("phoneNumber", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"label": label_value(self.label), "phoneNumber": self.phone_number}


@dataclass
class ContactTemplate:
    """
    Writer-side contact data used to create a contact.

    All fields are optional; absent fields are simply not sent upstream.
    """

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    organization: Optional[str] = None
    phone_numbers: list[PhoneNumber] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContactTemplate:
        """
        Create a template from the host platform's dictionary format.

        Args:
            data: Dictionary with camelCase keys (firstName, lastName, ...)

        Returns:
            Template instance of the called class
        """
        return cls(
            first_name=data.get("firstName"),
            last_name=data.get("lastName"),
            email=data.get("email"),
            organization=data.get("organization"),
            phone_numbers=[
                PhoneNumber.from_dict(entry) for entry in data.get("phoneNumbers") or []
            ],
        )


@dataclass
class ContactUpdate(ContactTemplate):
    """
    Writer-side contact data used to replace an existing contact.

    The contact id is supplied separately. Field groups absent here are
    cleared upstream, they are not merged with the stored record.
    """


@dataclass
class Contact:
    """
    Canonical contact representation exposed to the host platform.

    Attributes:
        id: Stable resource id from the directory (e.g., "c12345")
        first_name: Given name
        last_name: Family name
        email: Selected email address
        organization: Name of the first organization
        contact_url: Link to the contact in the Google Contacts web UI
        avatar_url: URL of the selected photo
        phone_numbers: Ordered list of phone numbers

    Usage:
        contact = Contact.from_dict(cached_entry)
        payload = contact.to_dict()
    """

    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    organization: Optional[str] = None
    contact_url: Optional[str] = None
    avatar_url: Optional[str] = None
    phone_numbers: list[PhoneNumber] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Contact:
        """
        Create a Contact from the host platform's dictionary format.

        Args:
            data: Dictionary with camelCase keys, e.g.::

                {
                    'id': 'c12345',
                    'firstName': 'Ada',
                    'lastName': 'Lovelace',
                    'email': 'ada@example.com',
                    'organization': 'Analytical Engines',
                    'contactUrl': 'https://contacts.google.com/contact/123',
                    'avatarUrl': None,
                    'phoneNumbers': [{'label': 'work', 'phoneNumber': '+4930123'}]
                }

        Returns:
            Contact instance

        Raises:
            ValueError: If the id is missing
        """
        contact_id = data.get("id")
        if not contact_id:
            raise ValueError("Contact id is required")

        return cls(
            id=contact_id,
            first_name=data.get("firstName"),
            last_name=data.get("lastName"),
            email=data.get("email"),
            organization=data.get("organization"),
            contact_url=data.get("contactUrl"),
            avatar_url=data.get("avatarUrl"),
            phone_numbers=[
                PhoneNumber.from_dict(entry) for entry in data.get("phoneNumbers") or []
            ],
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the host platform's dictionary format."""
        return {
            "id": self.id,
            "name": None,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "organization": self.organization,
            "contactUrl": self.contact_url,
            "avatarUrl": self.avatar_url,
            "phoneNumbers": [entry.to_dict() for entry in self.phone_numbers],
        }

    @property
    def display_name(self) -> str:
        """Full name for log output."""
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or self.id

    def __repr__(self) -> str:
        return (
            f"Contact(id={self.id!r}, "
            f"display_name={self.display_name!r}, "
            f"email={self.email!r})"
        )
