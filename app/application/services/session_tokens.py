import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from ...utils import utcnow

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ["userId", "phone", "exp", "iat"]


def _from_epoch(value) -> datetime:
    return datetime.fromtimestamp(int(value), timezone.utc)


@dataclass(frozen=True)
class SessionClaims:
    user_id: str
    phone: str
    is_profile_complete: bool
    auth_method: str = "phone"
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "userId": self.user_id,
            "phone": self.phone,
            "authMethod": self.auth_method,
            "isProfileComplete": self.is_profile_complete,
        }
        if self.issued_at is not None:
            payload["iat"] = self.issued_at
        if self.expires_at is not None:
            payload["exp"] = self.expires_at
        return payload

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "SessionClaims":
        return cls(
            user_id=str(payload["userId"]),
            phone=str(payload["phone"]),
            is_profile_complete=bool(payload.get("isProfileComplete", False)),
            auth_method=payload.get("authMethod", "phone"),
            issued_at=_from_epoch(payload["iat"]),
            expires_at=_from_epoch(payload["exp"]),
        )


class SessionTokenCodec:
    """Signs and checks the HS256 session tokens handed out after OTP verification."""

    def __init__(self, secret: str, ttl: timedelta = timedelta(days=7), algorithm: str = "HS256"):
        if not secret:
            raise ValueError("A signing secret is required")
        self.secret = secret
        self.ttl = ttl
        self.algorithm = algorithm

    def mint(self, user_id: str, phone: str, is_profile_complete: bool,
             auth_method: str = "phone") -> tuple[str, SessionClaims]:
        now = utcnow().replace(microsecond=0)
        claims = SessionClaims(
            user_id=user_id,
            phone=phone,
            is_profile_complete=is_profile_complete,
            auth_method=auth_method,
            issued_at=now,
            expires_at=now + self.ttl,
        )
        token = jwt.encode(claims.to_payload(), self.secret, algorithm=self.algorithm)
        return token, claims

    def verify(self, token: Optional[str]) -> Optional[SessionClaims]:
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": REQUIRED_CLAIMS},
            )
            return SessionClaims.from_payload(payload)
        except jwt.ExpiredSignatureError:
            logger.info("Session token has expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Rejected session token: {e}")
            return None
