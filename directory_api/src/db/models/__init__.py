"""
ORM models backing the slug and membership lookups.

Importing this package ensures model classes are registered with the Base
metadata for table creation and runtime usage.
"""

from .slugs import SiteKeyRecord, SlugBindingRecord  # noqa: F401
from .security import (  # noqa: F401
    User,
    SiteMembershipRecord,
    PlaceMembershipRecord,
)
