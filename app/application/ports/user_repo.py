from typing import Protocol, Optional
from datetime import datetime


class IdentityExistsError(Exception):
    """An identity with this phone already exists."""


class DuplicateProfileError(Exception):
    """A profile for this user id or phone already exists."""


class IdentityDto:
    def __init__(self, id: str, phone: str, created_at: datetime):
        self.id = id
        self.phone = phone
        self.created_at = created_at


class ProfileDto:
    def __init__(self, user_id: str, phone: Optional[str], email: Optional[str], full_name: Optional[str],
                 avatar_url: Optional[str], is_profile_complete: bool, auth_method: str,
                 last_login_at: Optional[datetime], login_count: int):
        self.user_id = user_id
        self.phone = phone
        self.email = email
        self.full_name = full_name
        self.avatar_url = avatar_url
        self.is_profile_complete = is_profile_complete
        self.auth_method = auth_method
        self.last_login_at = last_login_at
        self.login_count = login_count


class IdentityRepository(Protocol):
    def get_by_phone(self, phone: str) -> Optional[IdentityDto]:
        ...

    def create(self, phone: str) -> IdentityDto:
        """Raises IdentityExistsError when the phone is taken."""
        ...


class ProfileRepository(Protocol):
    def get_by_phone(self, phone: str) -> Optional[ProfileDto]:
        ...

    def get_by_user_id(self, user_id: str) -> Optional[ProfileDto]:
        ...

    def create(self, user_id: str, phone: str) -> ProfileDto:
        """Raises DuplicateProfileError on a unique-constraint violation."""
        ...

    def touch_last_active(self, user_id: str, phone: Optional[str] = None) -> None:
        ...
