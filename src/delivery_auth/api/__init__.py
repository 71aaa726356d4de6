"""
delivery_auth.api

HTTP surface over the session core.

Responsibilities:
- FastAPI app factory, routers and dependency wiring.
- Request/response models in the camelCase contract screens consume.
"""
