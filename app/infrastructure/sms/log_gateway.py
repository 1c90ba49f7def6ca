import logging
import re

from ...application.ports.sms_gateway import DispatchResult, DispatchSuccess, SmsGateway
from ...application.services.phone import mask_phone

logger = logging.getLogger(__name__)


def mask_digits(message: str) -> str:
    return re.sub(r"\d", "*", message or "")


class LogSmsGateway(SmsGateway):
    """Development gateway: logs the (masked) message instead of sending it."""

    def send(self, phone: str, text: str) -> DispatchResult:
        logger.info(f"SMS (log provider) to {mask_phone(phone)}: {mask_digits(text)}")
        return DispatchSuccess(message_id=None, request_id=None, raw={"provider": "log"})
