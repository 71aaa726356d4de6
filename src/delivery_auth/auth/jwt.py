"""
delivery_auth.auth.jwt

Identity-provider ID token helpers.

Responsibilities:
- Decode and validate ID tokens with strict claim requirements (iss/aud/exp/iat/sub).
- Turn validated claims into an `Identity`.
- Issue tokens for local/dev providers and tests.

Note:
- Hosted providers usually sign with RS256 behind a JWKS endpoint; the algorithm and
  key are configuration, so HS256 is used locally.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import InvalidTokenError

from delivery_auth.auth.models import Identity
from delivery_auth.settings import Settings


@dataclass(frozen=True, slots=True)
class IdTokenConfig:
    alg: str
    issuer: str
    audience: str
    secret: str

    @classmethod
    def from_settings(cls, settings: Settings) -> IdTokenConfig:
        return cls(
            alg=settings.id_token_alg,
            issuer=settings.id_token_issuer,
            audience=settings.id_token_audience,
            secret=settings.id_token_secret,
        )


class IdTokenValidationError(Exception):
    pass


def issue_id_token(
    *,
    cfg: IdTokenConfig,
    subject: str,
    phone_number: str | None = None,
    ttl: timedelta = timedelta(hours=1),
) -> str:
    now = datetime.now(tz=UTC)
    payload: dict[str, Any] = {
        "iss": cfg.issuer,
        "aud": cfg.audience,
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    if phone_number:
        payload["phone_number"] = phone_number
    return jwt.encode(payload, cfg.secret, algorithm=cfg.alg)


def decode_id_token(*, cfg: IdTokenConfig, token: str) -> dict[str, Any]:
    try:
        return jwt.decode(
            token,
            cfg.secret,
            algorithms=[cfg.alg],
            issuer=cfg.issuer,
            audience=cfg.audience,
            options={"require": ["exp", "iat", "iss", "aud", "sub"]},
        )
    except InvalidTokenError as e:
        raise IdTokenValidationError(str(e)) from e


def identity_from_token(*, cfg: IdTokenConfig, token: str) -> Identity:
    claims = decode_id_token(cfg=cfg, token=token)
    subject = str(claims.get("sub", "")).strip()
    if not subject:
        raise IdTokenValidationError("empty subject")
    phone = claims.get("phone_number")
    return Identity(
        id=subject,
        phone_number=str(phone) if phone else None,
        id_token=token,
        expires_at=int(claims["exp"]),
    )


# --- Module Notes -----------------------------------------------------------
# Issuing is used by the local identity provider stub in tests; production tokens are
# minted by the hosted provider and only ever decoded here.
