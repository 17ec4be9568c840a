"""
Core application utilities: settings, logging, roles, errors and FastAPI dependencies.

This package provides:
- Application-level settings (separate from DB settings)
- The role lattice and the error taxonomy shared by the resolvers
- Dependency helpers (request session, routing gateway, current user, permission guards)
"""
