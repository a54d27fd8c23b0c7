"""
gcontact_bridge - Google Contacts bridge for host integration platforms

Keeps a canonical contact directory in sync with the Google People API and
serves it through a read-through/write-through cache.
"""

__version__ = "0.1.0"
