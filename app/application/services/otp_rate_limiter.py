import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from ..ports.otp_store import OTPStore
from ...core.config import AuthConfig
from ...exceptions import RateLimited
from ...utils import utcnow
from .phone import mask_phone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    wait_seconds: int = 0
    reason: str = ""


@dataclass
class OTPRateLimiter:
    """Per-phone issuance policy: a cooldown between codes plus an hourly cap.

    The history read and the later insert are not atomic, so two concurrent
    requests can both pass. Storage errors allow the request.
    """

    store: OTPStore
    config: AuthConfig
    clock: Callable[[], datetime] = utcnow

    def check(self, phone: str) -> RateLimitDecision:
        now = self.clock()
        lookback = max(self.config.cooldown_seconds, self.config.hourly_window_seconds)
        try:
            history = self.store.created_since(phone, now - timedelta(seconds=lookback))
        except Exception as e:
            logger.error(f"Rate limit lookup failed for {mask_phone(phone)}, allowing request: {e}")
            return RateLimitDecision(allowed=True, reason="lookup_failed")

        if history:
            elapsed = (now - max(history)).total_seconds()
            if elapsed < self.config.cooldown_seconds:
                wait = max(0, math.ceil(self.config.cooldown_seconds - elapsed))
                return RateLimitDecision(allowed=False, wait_seconds=wait, reason="cooldown")

        window_start = now - timedelta(seconds=self.config.hourly_window_seconds)
        recent = [created for created in history if created >= window_start]
        if len(recent) >= self.config.hourly_cap:
            return RateLimitDecision(
                allowed=False,
                wait_seconds=self.config.hourly_window_seconds,
                reason="hourly_cap",
            )
        return RateLimitDecision(allowed=True)

    def enforce(self, phone: str) -> None:
        decision = self.check(phone)
        if decision.allowed:
            return
        minutes = max(1, math.ceil(decision.wait_seconds / 60))
        logger.info(f"OTP request for {mask_phone(phone)} throttled ({decision.reason}), wait {decision.wait_seconds}s")
        raise RateLimited(
            decision.wait_seconds,
            f"Please wait {minutes} minute(s) before requesting another OTP.",
        )
