"""
gcontact_bridge.api - Google People API directory client
"""

from gcontact_bridge.api.people_api import (
    NotFoundError,
    PeopleAPIError,
    PeopleDirectory,
    TransientError,
)

__all__ = ["NotFoundError", "PeopleAPIError", "PeopleDirectory", "TransientError"]
