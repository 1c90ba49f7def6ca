import logging
from typing import Optional

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from ...application.ports.sms_gateway import DispatchFailure, DispatchResult, DispatchSuccess, SmsGateway
from ...application.services.phone import mask_phone

logger = logging.getLogger(__name__)


class TwilioSmsGateway(SmsGateway):
    def __init__(self, account_sid: str, auth_token: str, from_number: str, client: Optional[Client] = None):
        self.client = client or Client(account_sid, auth_token)
        self.from_number = from_number

    def send(self, phone: str, text: str) -> DispatchResult:
        if not self.from_number:
            return DispatchFailure(reason="Twilio sender number not configured")
        to = phone if phone.startswith("+") else f"+{phone}"
        try:
            message = self.client.messages.create(to=to, from_=self.from_number, body=text)
        except TwilioException as e:
            logger.warning(f"Twilio send to {mask_phone(phone)} failed: {e}")
            return DispatchFailure(reason=str(e))
        return DispatchSuccess(
            message_id=message.sid,
            request_id=message.sid,
            raw={"sid": message.sid, "status": getattr(message, "status", None)},
        )
