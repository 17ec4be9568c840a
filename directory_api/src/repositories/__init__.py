"""
Repository layer for data access.

Repositories encapsulate SQLAlchemy queries behind the lookup capabilities the
resolvers consume (slug bindings, user memberships).
"""
