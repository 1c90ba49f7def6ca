# app/db/models/users/user.py
from datetime import datetime
import uuid

from sqlmodel import Field, SQLModel

from ....utils import utcnow


class AuthUser(SQLModel, table=True):
    """Identity keyed by phone; the profile row hangs off its id."""

    __tablename__ = "auth_users"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    phone: str = Field(max_length=20, unique=True, index=True)
    phone_confirmed: bool = Field(default=True)
    auth_method: str = Field(default="phone", max_length=20)
    created_at: datetime = Field(default_factory=utcnow)
