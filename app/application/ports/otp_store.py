from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple


class OTPStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    VERIFIED = "verified"
    FAILED = "failed"


# Statuses a record may be in for a transition to the key status to apply.
# A dispatch-failed record stays answerable until verified or expired.
TRANSITION_SOURCES: Dict[OTPStatus, Tuple[OTPStatus, ...]] = {
    OTPStatus.SENT: (OTPStatus.PENDING,),
    OTPStatus.FAILED: (OTPStatus.PENDING, OTPStatus.SENT, OTPStatus.FAILED),
    OTPStatus.VERIFIED: (OTPStatus.PENDING, OTPStatus.SENT, OTPStatus.FAILED),
}

SUPERSEDED_REASON = "superseded"


def allowed_sources(target: OTPStatus) -> Tuple[OTPStatus, ...]:
    try:
        return TRANSITION_SOURCES[target]
    except KeyError:
        raise ValueError(f"Cannot transition an OTP record to {target.value!r}")


@dataclass
class OTPRecord:
    id: int
    phone: str
    code: str
    status: OTPStatus
    expires_at: datetime
    created_at: datetime
    message_id: Optional[str] = None
    request_id: Optional[str] = None
    diagnostic: Optional[Dict[str, Any]] = None

    @property
    def is_superseded(self) -> bool:
        return self.status == OTPStatus.FAILED and (self.diagnostic or {}).get("reason") == SUPERSEDED_REASON

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class OTPStore(Protocol):
    def create(self, phone: str, code: str, created_at: datetime, expires_at: datetime) -> int:
        ...

    def mark_outcome(self, record_id: int, status: OTPStatus, diagnostic: Optional[Dict[str, Any]] = None,
                     message_id: Optional[str] = None, request_id: Optional[str] = None) -> bool:
        """Conditionally move a record to ``status``; returns False when nothing changed."""
        ...

    def supersede(self, phone: str) -> int:
        """Fail every open record for ``phone`` ahead of a new one; returns how many changed."""
        ...

    def find_current_challenge(self, phone: str) -> Optional[OTPRecord]:
        ...

    def created_since(self, phone: str, since: datetime) -> List[datetime]:
        ...

    def get(self, record_id: int) -> Optional[OTPRecord]:
        ...
