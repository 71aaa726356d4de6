"""
delivery_auth.api.routers.sign_in

Phone/OTP sign-in endpoints.

Responsibilities:
- Start a verification and return the pending handle to the caller.
- Confirm the code and return the completion result with its redirect.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from starlette.status import HTTP_404_NOT_FOUND

from delivery_auth.api.deps import sign_in_service
from delivery_auth.auth.models import PendingVerification
from delivery_auth.services.sign_in_service import SignInService
from delivery_auth.session.models import CompletionResult

router = APIRouter(prefix="/v1/sign-in", tags=["sign-in"])


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StartRequest(_Body):
    phone_number: str


class PendingResponse(_Body):
    verification_id: str
    phone_number: str

    @classmethod
    def of(cls, pending: PendingVerification) -> PendingResponse:
        return cls(verification_id=pending.verification_id, phone_number=pending.phone_number)


class ConfirmRequest(_Body):
    verification_id: str
    phone_number: str
    code: str


@router.post("/start")
async def start(body: StartRequest, svc: SignInService = Depends(sign_in_service)) -> PendingResponse:
    return PendingResponse.of(await svc.start(body.phone_number))


@router.get("/pending")
async def pending(
    phone_number: str = Query(alias="phoneNumber"),
    svc: SignInService = Depends(sign_in_service),
) -> PendingResponse:
    resumed = await svc.resume_pending(phone_number)
    if resumed is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="No pending verification")
    return PendingResponse.of(resumed)


@router.post("/confirm")
async def confirm(body: ConfirmRequest, svc: SignInService = Depends(sign_in_service)) -> CompletionResult:
    handle = PendingVerification(verification_id=body.verification_id, phone_number=body.phone_number)
    return await svc.confirm(handle, body.code)
