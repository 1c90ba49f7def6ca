import logging

from ...application.ports.sms_gateway import SmsGateway
from ...core.config import AuthConfig
from .http_gateway import HttpSmsGateway
from .log_gateway import LogSmsGateway
from .twilio_gateway import TwilioSmsGateway

logger = logging.getLogger(__name__)


def build_sms_gateway(config: AuthConfig) -> SmsGateway:
    provider = (config.sms_provider or "http").lower()
    if provider == "log":
        return LogSmsGateway()
    if provider == "twilio":
        return TwilioSmsGateway(config.twilio_account_sid, config.twilio_auth_token, config.twilio_from_number)
    if provider != "http":
        logger.warning(f"Unknown SMS_PROVIDER {provider!r}, using http")
    return HttpSmsGateway(
        url=config.gateway_url,
        api_key=config.gateway_key,
        sender=config.gateway_sender,
        timeout=config.gateway_timeout,
        success_message=config.gateway_success_message,
    )
