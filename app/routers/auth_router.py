import logging
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from ..application.ports.audit_logger import AuditLogger
from ..application.ports.rate_limiter import RequestThrottle
from ..application.ports.sms_gateway import SmsGateway
from ..application.services.auth_service import AuthService, OTPIntent
from ..application.services.otp_service import OTPIssueResult, OTPService
from ..application.services.session_service import SessionInfo, SessionIssuer
from ..application.services.session_tokens import SessionClaims, SessionTokenCodec
from ..core.config import AuthConfig, settings
from ..database import get_session
from ..exceptions import RateLimited, Unauthenticated, create_success_response
from ..infrastructure.audit.std_logger import StdAuditLogger
from ..infrastructure.persistence.sqlalchemy.repositories.otp_store_sql import SqlOTPStore
from ..infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import (
    SqlIdentityRepository,
    SqlProfileRepository,
)
from ..infrastructure.rate_limit.memory_rate_limiter import InMemoryRequestThrottle
from ..infrastructure.rate_limit.redis_rate_limiter import RedisRequestThrottle
from ..infrastructure.sms.factory import build_sms_gateway
from ..schemas.auth.auth import PhoneRequest, SendOTPRequest, VerifyOTPRequest, VerifyOTPWithIntentRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

bearer_scheme = HTTPBearer(auto_error=False)


@lru_cache()
def get_auth_config() -> AuthConfig:
    return AuthConfig.from_settings(settings)


@lru_cache()
def get_sms_gateway() -> SmsGateway:
    return build_sms_gateway(get_auth_config())


@lru_cache()
def get_request_throttle() -> RequestThrottle:
    if settings.REDIS_URL:
        logger.info("Using Redis request throttle")
        return RedisRequestThrottle(settings.REDIS_URL)
    return InMemoryRequestThrottle()


@lru_cache()
def get_audit_logger() -> AuditLogger:
    return StdAuditLogger()


def get_token_codec(config: AuthConfig = Depends(get_auth_config)) -> SessionTokenCodec:
    return SessionTokenCodec(config.signing_secret, ttl=config.token_ttl, algorithm=config.algorithm)


def get_auth_service(
    session: Session = Depends(get_session),
    config: AuthConfig = Depends(get_auth_config),
    gateway: SmsGateway = Depends(get_sms_gateway),
    codec: SessionTokenCodec = Depends(get_token_codec),
    audit: AuditLogger = Depends(get_audit_logger),
) -> AuthService:
    identities = SqlIdentityRepository(session)
    profiles = SqlProfileRepository(session)
    return AuthService(
        otp_service=OTPService(store=SqlOTPStore(session), gateway=gateway, config=config),
        issuer=SessionIssuer(identities=identities, profiles=profiles, codec=codec),
        identities=identities,
        profiles=profiles,
        audit=audit,
    )


def client_ip(request: Request) -> Optional[str]:
    peer = request.client.host if request.client else None
    # only a configured proxy may speak for the client
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and peer in settings.trusted_proxies_list:
        return forwarded.split(",")[0].strip()
    return peer


def throttle_requests(request: Request, throttle: RequestThrottle = Depends(get_request_throttle)) -> None:
    ip = client_ip(request) or "unknown"
    try:
        wait = throttle.hit(f"auth:{ip}", settings.AUTH_REQUESTS_PER_MINUTE, 60)
    except Exception as e:
        logger.error(f"Request throttle unavailable, allowing request: {e}")
        return
    if wait > 0:
        raise RateLimited(wait, "Too many requests. Please try again later.")


def get_current_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    codec: SessionTokenCodec = Depends(get_token_codec),
) -> SessionClaims:
    claims = codec.verify(credentials.credentials if credentials else None)
    if claims is None:
        raise Unauthenticated()
    return claims


def _otp_sent_payload(result: OTPIssueResult, service: AuthService, config: AuthConfig) -> dict:
    data = {
        "phone": result.phone,
        "otp_expires_in": result.expires_in,
        "dispatched": result.dispatched,
        "message_id": result.message_id,
        "request_id": result.request_id,
    }
    if config.expose_debug_otp:
        data["debug"] = {"otp": service.otp_service.peek_code(result.record_id)}
    return data


def _otp_sent_message(result: OTPIssueResult) -> str:
    if result.dispatched:
        return "OTP sent successfully"
    return "OTP generated but SMS delivery failed. Please try again shortly."


def _session_payload(info: SessionInfo) -> dict:
    return {"verified": True, "token": info.token, "user": info.user.dict()}


def _send(phone: str, intent: OTPIntent, request: Request, service: AuthService, config: AuthConfig) -> dict:
    result = service.request_otp(phone, intent, ip_address=client_ip(request))
    return create_success_response(_otp_sent_payload(result, service, config), _otp_sent_message(result))


def _verify(phone: str, otp: str, intent: OTPIntent, request: Request, service: AuthService) -> dict:
    info = service.verify_otp(phone, otp, intent, ip_address=client_ip(request))
    message = "Account created successfully" if info.user.is_new_user else "Signed in successfully"
    return create_success_response(_session_payload(info), message)


@router.get("/check-phone", dependencies=[Depends(throttle_requests)])
def check_phone(phone: str = Query(...), service: AuthService = Depends(get_auth_service)):
    status = service.check_phone_exists(phone)
    return create_success_response(
        {
            "exists": status.exists,
            "is_profile_complete": status.is_profile_complete,
            "has_name": status.has_name,
        },
        "Phone lookup complete",
    )


@router.post("/send-otp", dependencies=[Depends(throttle_requests)])
def send_otp(
    body: SendOTPRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
    config: AuthConfig = Depends(get_auth_config),
):
    return _send(body.phone, body.intent, request, service, config)


@router.post("/signup/send-otp", dependencies=[Depends(throttle_requests)])
def signup_send_otp(
    body: PhoneRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
    config: AuthConfig = Depends(get_auth_config),
):
    return _send(body.phone, OTPIntent.SIGNUP, request, service, config)


@router.post("/signin/send-otp", dependencies=[Depends(throttle_requests)])
def signin_send_otp(
    body: PhoneRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
    config: AuthConfig = Depends(get_auth_config),
):
    return _send(body.phone, OTPIntent.SIGNIN, request, service, config)


@router.post("/verify-otp", dependencies=[Depends(throttle_requests)])
def verify_otp(body: VerifyOTPWithIntentRequest, request: Request, service: AuthService = Depends(get_auth_service)):
    return _verify(body.phone, body.otp, body.intent, request, service)


@router.post("/signup/verify-otp", dependencies=[Depends(throttle_requests)])
def signup_verify_otp(body: VerifyOTPRequest, request: Request, service: AuthService = Depends(get_auth_service)):
    return _verify(body.phone, body.otp, OTPIntent.SIGNUP, request, service)


@router.post("/signin/verify-otp", dependencies=[Depends(throttle_requests)])
def signin_verify_otp(body: VerifyOTPRequest, request: Request, service: AuthService = Depends(get_auth_service)):
    return _verify(body.phone, body.otp, OTPIntent.SIGNIN, request, service)


@router.post("/resend-otp", dependencies=[Depends(throttle_requests)])
def resend_otp(
    body: PhoneRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
    config: AuthConfig = Depends(get_auth_config),
):
    result = service.resend_otp(body.phone, ip_address=client_ip(request))
    return create_success_response(_otp_sent_payload(result, service, config), _otp_sent_message(result))


@router.get("/me")
def me(claims: SessionClaims = Depends(get_current_claims), service: AuthService = Depends(get_auth_service)):
    user = service.current_user(claims)
    return create_success_response({"user": user.dict()}, "Authenticated")
