"""
delivery_auth.monitor

Session monitors.

Responsibilities:
- Inactivity timeout and foreground/background handling (`activity`).
- Periodic session validation (`validation`).
- Generation-guarded timer primitives shared by both (`timers`).
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Monitors subscribe to AuthService session events; they never read the key-value
# store directly except for the background-entry timestamp.
