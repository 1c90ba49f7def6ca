import hashlib
import json
import logging
from typing import Optional, Dict, Any

from ...application.ports.audit_logger import AuditLogger
from ...application.services.phone import mask_phone
from ...utils import utcnow


class StdAuditLogger(AuditLogger):
    """Writes one ``AUDIT:`` JSON line per auth event; phones are hashed, never logged raw."""

    def __init__(self, logger_name: str = "app.audit") -> None:
        self._logger = logging.getLogger(logger_name)

    def log(self, action: str, phone: str, user_id: Optional[str] = None, intent: Optional[str] = None,
            ip_address: Optional[str] = None, success: bool = True, details: Optional[Dict[str, Any]] = None) -> None:
        entry = {
            "timestamp": utcnow().isoformat(),
            "action": action,
            "phone_hash": hashlib.sha256(phone.encode()).hexdigest(),
            "phone_masked": mask_phone(phone),
            "user_id": user_id,
            "intent": intent,
            "ip_address": ip_address,
            "success": success,
            "details": details or {},
        }
        if success:
            self._logger.info(f"AUDIT: {json.dumps(entry, default=str)}")
        else:
            self._logger.warning(f"AUDIT: {json.dumps(entry, default=str)}")
