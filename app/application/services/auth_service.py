import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..ports.audit_logger import AuditLogger
from ..ports.user_repo import IdentityRepository, ProfileRepository
from ...exceptions import AlreadyRegistered, AuthError, NotRegistered
from .otp_service import OTPIssueResult, OTPService
from .phone import mask_phone, normalize_phone
from .session_service import SessionInfo, SessionIssuer, UserSummary
from .session_tokens import SessionClaims

logger = logging.getLogger(__name__)


class OTPIntent(str, Enum):
    SIGNUP = "signup"
    SIGNIN = "signin"


@dataclass
class PhoneStatus:
    exists: bool
    is_profile_complete: bool = False
    has_name: bool = False


@dataclass
class AuthService:
    otp_service: OTPService
    issuer: SessionIssuer
    identities: IdentityRepository
    profiles: ProfileRepository
    audit: Optional[AuditLogger] = None

    @property
    def country_code(self) -> str:
        return self.otp_service.config.country_code

    def check_phone_exists(self, phone: str) -> PhoneStatus:
        phone = normalize_phone(phone, self.country_code)
        profile = self.profiles.get_by_phone(phone)
        if profile:
            return PhoneStatus(
                exists=True,
                is_profile_complete=bool(profile.is_profile_complete),
                has_name=bool(profile.full_name),
            )
        return PhoneStatus(exists=self.identities.get_by_phone(phone) is not None)

    def request_otp(self, phone: str, intent: OTPIntent, ip_address: Optional[str] = None) -> OTPIssueResult:
        intent = OTPIntent(intent)
        phone = normalize_phone(phone, self.country_code)
        try:
            self._check_registration(phone, intent)
            result = self.otp_service.issue(phone)
        except AuthError as e:
            self._audit("otp_requested", phone, intent=intent, ip_address=ip_address, success=False,
                        details={"code": e.code})
            raise
        self._audit("otp_requested", phone, intent=intent, ip_address=ip_address,
                    details={"record_id": result.record_id, "dispatched": result.dispatched})
        return result

    def resend_otp(self, phone: str, ip_address: Optional[str] = None) -> OTPIssueResult:
        phone = normalize_phone(phone, self.country_code)
        try:
            result = self.otp_service.resend(phone)
        except AuthError as e:
            self._audit("otp_resent", phone, ip_address=ip_address, success=False, details={"code": e.code})
            raise
        self._audit("otp_resent", phone, ip_address=ip_address,
                    details={"record_id": result.record_id, "dispatched": result.dispatched})
        return result

    def verify_otp(self, phone: str, code: str, intent: OTPIntent, ip_address: Optional[str] = None) -> SessionInfo:
        intent = OTPIntent(intent)
        phone = normalize_phone(phone, self.country_code)
        try:
            self.otp_service.verify(phone, code)
            if intent == OTPIntent.SIGNUP:
                session = self.issuer.sign_up(phone)
            else:
                session = self.issuer.sign_in(phone)
        except AuthError as e:
            self._audit("otp_verified", phone, intent=intent, ip_address=ip_address, success=False,
                        details={"code": e.code})
            raise
        self._audit("otp_verified", phone, user_id=session.user.id, intent=intent, ip_address=ip_address,
                    details={"is_new_user": session.user.is_new_user})
        return session

    def current_user(self, claims: SessionClaims) -> UserSummary:
        profile = self.profiles.get_by_user_id(claims.user_id)
        if profile:
            return UserSummary.from_profile(profile)
        return UserSummary(
            id=claims.user_id,
            phone=claims.phone,
            is_profile_complete=claims.is_profile_complete,
            auth_method=claims.auth_method,
        )

    def _check_registration(self, phone: str, intent: OTPIntent) -> None:
        profile = self.profiles.get_by_phone(phone)
        identity = None if profile else self.identities.get_by_phone(phone)

        if identity is not None:
            # interrupted sign-up: identity without profile
            logger.info(f"Repairing missing profile for user {identity.id} ({mask_phone(phone)})")
            self.issuer.ensure_profile(identity, phone)

        registered = profile is not None or identity is not None
        if intent == OTPIntent.SIGNUP and registered:
            raise AlreadyRegistered()
        if intent == OTPIntent.SIGNIN and not registered:
            raise NotRegistered()

    def _audit(self, action: str, phone: str, user_id: Optional[str] = None, intent: Optional[OTPIntent] = None,
               ip_address: Optional[str] = None, success: bool = True, details: Optional[dict] = None) -> None:
        if self.audit is None:
            return
        self.audit.log(
            action,
            phone,
            user_id=user_id,
            intent=intent.value if intent else None,
            ip_address=ip_address,
            success=success,
            details=details,
        )
