"""
delivery_auth.db.repositories

Repository package.

Responsibilities:
- Group data-access adapters for the persistence layer.
"""

# Package marker; repositories are imported directly from submodules.


# --- Module Notes -----------------------------------------------------------
# Repositories are intentionally thin; session semantics belong in `session.store`.
