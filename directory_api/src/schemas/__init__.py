"""
Public Pydantic schemas used by FastAPI routes, services, and tests.

Schemas are grouped by concern (slug resolution, permissions) and also
include common reusable models such as the standard error envelope.
"""

from .common import MessageResponse  # noqa: F401
