"""
delivery_auth.clients.documents

HTTP client for the hosted document store's `users` collection.

Responsibilities:
- Fetch a user record by id or by phone number.
- Create the initial record on first sign-in.
- Write back the last-login timestamp.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
from pydantic import ValidationError
from starlette.status import HTTP_404_NOT_FOUND

from delivery_auth.clients.errors import DocumentStoreError
from delivery_auth.clock import Clock, epoch_ms, iso_from_ms
from delivery_auth.session.models import UserRecord, empty_profile


class DocumentStore(Protocol):
    async def get_user_by_id(self, user_id: str) -> UserRecord | None: ...

    async def find_user_by_phone(self, phone_number: str) -> UserRecord | None: ...

    async def create_user(self, user_id: str, phone_number: str) -> UserRecord: ...

    async def update_last_login(self, user_id: str, at: str) -> None: ...


class HttpDocumentStore:
    def __init__(self, *, http: httpx.AsyncClient, clock: Clock = epoch_ms) -> None:
        self._http = http
        self._clock = clock

    async def get_user_by_id(self, user_id: str) -> UserRecord | None:
        r = await self._request("GET", f"/v1/users/{user_id}")
        if r.status_code == HTTP_404_NOT_FOUND:
            return None
        return _to_record(r.json())

    async def find_user_by_phone(self, phone_number: str) -> UserRecord | None:
        r = await self._request("GET", "/v1/users", params={"phoneNumber": phone_number, "limit": 1})
        if r.status_code == HTTP_404_NOT_FOUND:
            return None
        docs = r.json().get("users", [])
        if not docs:
            return None
        return _to_record(docs[0])

    async def create_user(self, user_id: str, phone_number: str) -> UserRecord:
        now = iso_from_ms(self._clock())
        # New users pick their role later; the profile starts empty and incomplete.
        document: dict[str, Any] = {
            "userId": user_id,
            "phoneNumber": phone_number,
            "role": None,
            "profile": empty_profile().model_dump(by_alias=True),
            "createdAt": now,
            "updatedAt": now,
            "lastLoginAt": now,
        }
        r = await self._request("PUT", f"/v1/users/{user_id}", json=document)
        return _to_record(r.json() if r.content else document)

    async def update_last_login(self, user_id: str, at: str) -> None:
        await self._request("PATCH", f"/v1/users/{user_id}", json={"lastLoginAt": at})

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            r = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise DocumentStoreError("Document store unreachable", code="network-error") from e
        if r.status_code == HTTP_404_NOT_FOUND and method == "GET":
            return r
        if not r.is_success:
            raise DocumentStoreError(
                f"Document store request failed: {method} {path}",
                code="request-failed",
                status=r.status_code,
            )
        return r


def _to_record(document: dict[str, Any]) -> UserRecord:
    data = dict(document)
    if not data.get("userId") and data.get("id"):
        data["userId"] = data["id"]
    if not data.get("profile"):
        data["profile"] = empty_profile().model_dump(by_alias=True)
    try:
        return UserRecord.model_validate(data)
    except ValidationError as e:
        raise DocumentStoreError("Malformed user document", code="malformed-document") from e


# --- Module Notes -----------------------------------------------------------
# Documents missing a `profile` are normalized to an empty, incomplete profile so the
# evaluator sees a consistent shape regardless of how old the document is.
