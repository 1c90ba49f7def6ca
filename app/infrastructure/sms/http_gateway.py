import logging
from typing import Any, Optional

import httpx

from ...application.ports.sms_gateway import DispatchFailure, DispatchResult, DispatchSuccess, SmsGateway
from ...application.services.phone import mask_phone

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Message Sent Successfully!"


class HttpSmsGateway(SmsGateway):
    """JSON-over-HTTP SMS provider authenticated with an ``apikey`` header.

    One attempt per message, bounded by ``timeout``; every provider or
    transport problem is reported as a DispatchFailure.
    """

    def __init__(self, url: str, api_key: str, sender: str = "CHLMEH", timeout: float = 30.0,
                 success_message: str = SUCCESS_MESSAGE, client: Optional[httpx.Client] = None):
        self.url = url
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self.success_message = success_message
        self.client = client or httpx.Client(timeout=timeout)

    def send(self, phone: str, text: str) -> DispatchResult:
        if not self.api_key:
            logger.error("SMS API key not configured")
            return DispatchFailure(reason="SMS API key not configured")
        if not self.url:
            return DispatchFailure(reason="SMS API URL not configured")

        payload = {"sender": self.sender, "to": phone, "text": text, "type": "OTP"}
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        try:
            res = self.client.post(self.url, json=payload, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.warning(f"SMS gateway request for {mask_phone(phone)} failed: {e}")
            return DispatchFailure(reason=f"SMS gateway unreachable: {e}")

        body = self._parse(res)
        if res.status_code >= 400:
            return DispatchFailure(reason=f"SMS gateway returned HTTP {res.status_code}", raw=body)
        return self._interpret(body)

    @staticmethod
    def _parse(res: httpx.Response) -> Any:
        try:
            return res.json()
        except ValueError:
            return {"body": res.text}

    def _interpret(self, body: Any) -> DispatchResult:
        if not isinstance(body, dict):
            return DispatchFailure(reason="Unexpected SMS gateway response", raw=body)
        data = body.get("data")
        if body.get("message") != self.success_message or not data:
            return DispatchFailure(reason=str(body.get("message") or "SMS sending failed"), raw=body)

        first = data[0] if isinstance(data, list) else data
        message_id = first.get("messageId") if isinstance(first, dict) else None
        request_id = body.get("id")
        return DispatchSuccess(
            message_id=str(message_id or request_id) if (message_id or request_id) else None,
            request_id=str(request_id) if request_id is not None else None,
            raw=body,
        )
