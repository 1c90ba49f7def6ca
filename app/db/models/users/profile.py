# app/db/models/users/profile.py
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from ....utils import utcnow


class Profile(SQLModel, table=True):
    __tablename__ = "profiles"
    user_id: str = Field(foreign_key="auth_users.id", primary_key=True)
    phone: Optional[str] = Field(default=None, max_length=20, unique=True, index=True)
    email: Optional[str] = Field(default=None, max_length=255)
    full_name: Optional[str] = Field(default=None, max_length=255)
    avatar_url: Optional[str] = Field(default=None)
    is_profile_complete: bool = Field(default=False, index=True)
    auth_method: str = Field(default="phone", max_length=20)
    last_login_at: Optional[datetime] = Field(default=None)
    login_count: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
