"""
delivery_auth.db

Persistence package (SQLAlchemy async).

Responsibilities:
- Provide the key-value table, engine setup, and the key-value store adapter.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The session core only sees the `KeyValueStore` protocol; this package is one
# implementation of it and can be swapped without touching service logic.
