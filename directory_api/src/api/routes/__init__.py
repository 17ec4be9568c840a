"""
API route modules for the public resolver and administration.

This package contains subrouters for:
- Public: slug resolution and canonical redirects
- Permissions: effective permission of the current user
- Admin: membership listings and slug publishing

Routers are included from src.api.main (under the /api/v1 prefix).
"""
