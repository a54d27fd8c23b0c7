"""
gcontact_bridge.sync - Contact model and Person mapping
"""

from gcontact_bridge.sync.contact import (
    Contact,
    ContactTemplate,
    ContactUpdate,
    PhoneNumber,
    PhoneNumberLabel,
)
from gcontact_bridge.sync.mapper import (
    MappingError,
    MappingPolicy,
    PersonMapper,
    PhoneMode,
    PrimaryStrategy,
)

__all__ = [
    "Contact",
    "ContactTemplate",
    "ContactUpdate",
    "PhoneNumber",
    "PhoneNumberLabel",
    "MappingError",
    "MappingPolicy",
    "PersonMapper",
    "PhoneMode",
    "PrimaryStrategy",
]
