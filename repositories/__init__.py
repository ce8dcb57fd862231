"""
repositories/ - Data Access Layer
==================================
PostgreSQL access for the local store, the sync retry queue and user
settings. Every repository scopes its SQL to one user id and returns
domain model objects.
"""
