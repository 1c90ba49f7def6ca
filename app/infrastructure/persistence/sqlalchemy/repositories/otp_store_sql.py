from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlmodel import Session, col, select

from .....db.models import OTPLog
from .....application.ports.otp_store import (
    SUPERSEDED_REASON,
    OTPRecord,
    OTPStatus,
    OTPStore,
    allowed_sources,
)
from .....utils import as_utc, utcnow


class SqlOTPStore(OTPStore):
    def __init__(self, session: Session):
        self.session = session

    def _to_record(self, row: OTPLog) -> OTPRecord:
        return OTPRecord(
            id=row.id,
            phone=row.phone,
            code=row.otp,
            status=OTPStatus(row.status),
            expires_at=as_utc(row.expires_at),
            created_at=as_utc(row.created_at),
            message_id=row.message_id,
            request_id=row.request_id,
            diagnostic=row.api_response,
        )

    def create(self, phone: str, code: str, created_at: datetime, expires_at: datetime) -> int:
        row = OTPLog(
            phone=phone,
            otp=code,
            status=OTPStatus.PENDING.value,
            expires_at=expires_at,
            created_at=created_at,
            updated_at=created_at,
        )
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row.id

    def mark_outcome(self, record_id: int, status: OTPStatus, diagnostic: Optional[Dict[str, Any]] = None,
                     message_id: Optional[str] = None, request_id: Optional[str] = None) -> bool:
        sources = [s.value for s in allowed_sources(status)]
        values: Dict[str, Any] = {"status": status.value, "updated_at": utcnow()}
        if diagnostic is not None:
            values["api_response"] = diagnostic
        if message_id is not None:
            values["message_id"] = message_id
        if request_id is not None:
            values["request_id"] = request_id

        # single conditional UPDATE so only one concurrent verify can win
        stmt = (
            update(OTPLog)
            .where(OTPLog.id == record_id, col(OTPLog.status).in_(sources))
            .values(**values)
        )
        result = self.session.exec(stmt)
        self.session.commit()
        return result.rowcount == 1

    def supersede(self, phone: str) -> int:
        sources = [s.value for s in allowed_sources(OTPStatus.FAILED)]
        stmt = (
            update(OTPLog)
            .where(OTPLog.phone == phone, col(OTPLog.status).in_(sources))
            .values(
                status=OTPStatus.FAILED.value,
                api_response={"reason": SUPERSEDED_REASON},
                updated_at=utcnow(),
            )
        )
        result = self.session.exec(stmt)
        self.session.commit()
        return result.rowcount

    def find_current_challenge(self, phone: str) -> Optional[OTPRecord]:
        row = self.session.exec(
            select(OTPLog)
            .where(OTPLog.phone == phone, OTPLog.status != OTPStatus.VERIFIED.value)
            .order_by(col(OTPLog.created_at).desc(), col(OTPLog.id).desc())
        ).first()
        return self._to_record(row) if row else None

    def created_since(self, phone: str, since: datetime) -> List[datetime]:
        rows = self.session.exec(
            select(OTPLog.created_at)
            .where(OTPLog.phone == phone, OTPLog.created_at >= since)
            .order_by(col(OTPLog.created_at).desc())
        ).all()
        return [as_utc(created) for created in rows]

    def get(self, record_id: int) -> Optional[OTPRecord]:
        row = self.session.get(OTPLog, record_id)
        return self._to_record(row) if row else None
