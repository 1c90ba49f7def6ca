import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..ports.otp_store import OTPRecord, OTPStatus, OTPStore
from ..ports.sms_gateway import DispatchSuccess, SmsGateway
from ...core.config import AuthConfig
from ...exceptions import (
    CodeMismatch,
    InvalidCodeFormat,
    NoChallengeFound,
    OTPExpired,
    OTPStorageError,
)
from .otp_codes import codes_match, generate_otp, is_valid_code, render_otp_message
from .otp_rate_limiter import OTPRateLimiter
from ...utils import utcnow
from .phone import mask_phone, normalize_phone

logger = logging.getLogger(__name__)


@dataclass
class OTPIssueResult:
    phone: str
    record_id: int
    expires_in: int
    dispatched: bool
    message_id: Optional[str] = None
    request_id: Optional[str] = None
    failure_reason: Optional[str] = None


@dataclass
class OTPService:
    store: OTPStore
    gateway: SmsGateway
    config: AuthConfig
    rate_limiter: Optional[OTPRateLimiter] = None
    clock: Callable[[], datetime] = utcnow
    code_generator: Callable[[], str] = generate_otp

    def __post_init__(self) -> None:
        if self.rate_limiter is None:
            self.rate_limiter = OTPRateLimiter(self.store, self.config, clock=self.clock)

    def issue(self, phone: str) -> OTPIssueResult:
        phone = normalize_phone(phone, self.config.country_code)
        self.rate_limiter.enforce(phone)

        code = self.code_generator()
        now = self.clock()
        expires_at = now + timedelta(seconds=self.config.otp_ttl_seconds)
        try:
            superseded = self.store.supersede(phone)
            record_id = self.store.create(phone, code, now, expires_at)
        except Exception as e:
            logger.error(f"Failed to store OTP for {mask_phone(phone)}: {e}")
            raise OTPStorageError() from e
        if superseded:
            logger.info(f"Superseded {superseded} earlier OTP(s) for {mask_phone(phone)}")

        result = self.gateway.send(phone, render_otp_message(code, self.config.otp_template))
        if isinstance(result, DispatchSuccess):
            status, diagnostic = OTPStatus.SENT, result.raw
            logger.info(f"OTP {record_id} sent to {mask_phone(phone)} (message_id={result.message_id})")
        else:
            status, diagnostic = OTPStatus.FAILED, {"reason": result.reason, "response": result.raw}
            logger.warning(f"OTP {record_id} dispatch to {mask_phone(phone)} failed: {result.reason}")

        try:
            self.store.mark_outcome(
                record_id,
                status,
                diagnostic=diagnostic,
                message_id=getattr(result, "message_id", None),
                request_id=getattr(result, "request_id", None),
            )
        except Exception as e:
            # record stays pending; still answerable
            logger.error(f"Failed to record dispatch outcome for OTP {record_id}: {e}")

        return OTPIssueResult(
            phone=phone,
            record_id=record_id,
            expires_in=self.config.otp_ttl_seconds,
            dispatched=result.ok,
            message_id=getattr(result, "message_id", None),
            request_id=getattr(result, "request_id", None),
            failure_reason=getattr(result, "reason", None),
        )

    def resend(self, phone: str) -> OTPIssueResult:
        return self.issue(phone)

    def verify(self, phone: str, code: str) -> OTPRecord:
        phone = normalize_phone(phone, self.config.country_code)
        if not is_valid_code(code):
            raise InvalidCodeFormat()

        record = self.store.find_current_challenge(phone)
        if record is None or record.is_superseded:
            raise NoChallengeFound()

        now = self.clock()
        if record.is_expired(now):
            self.store.mark_outcome(record.id, OTPStatus.FAILED, diagnostic={"reason": "expired"})
            logger.info(f"OTP {record.id} for {mask_phone(phone)} expired")
            raise OTPExpired()

        if not codes_match(record.code, code):
            logger.info(f"OTP mismatch for {mask_phone(phone)}")
            raise CodeMismatch()

        if not self.store.mark_outcome(record.id, OTPStatus.VERIFIED, diagnostic={"verified_at": now.isoformat()}):
            raise NoChallengeFound("OTP already used. Please request a new OTP.")

        record.status = OTPStatus.VERIFIED
        logger.info(f"OTP {record.id} verified for {mask_phone(phone)}")
        return record

    def peek_code(self, record_id: int) -> Optional[str]:
        """Return the stored code for a record; only used for the development fallback."""
        record = self.store.get(record_id)
        return record.code if record else None
