# app/db/models/auth/otp.py
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from ....utils import utcnow


class OTPLog(SQLModel, table=True):
    __tablename__ = "otp_logs"
    id: Optional[int] = Field(default=None, primary_key=True)
    phone: str = Field(max_length=20, index=True)
    otp: str = Field(max_length=4)
    status: str = Field(default="pending", max_length=10, index=True)
    message_id: Optional[str] = Field(default=None, max_length=255, index=True)
    request_id: Optional[str] = Field(default=None, max_length=255)
    # Raw gateway payload / verification notes
    api_response: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    expires_at: datetime = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)
