import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import FlushError
from sqlmodel import Session, select

from .....db.models import AuthUser, Profile
from .....utils import as_utc, utcnow
from .....application.ports.user_repo import (
    DuplicateProfileError,
    IdentityDto,
    IdentityExistsError,
    IdentityRepository,
    ProfileDto,
    ProfileRepository,
)

logger = logging.getLogger(__name__)


class SqlIdentityRepository(IdentityRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, user: AuthUser) -> IdentityDto:
        return IdentityDto(id=user.id, phone=user.phone, created_at=as_utc(user.created_at))

    def get_by_phone(self, phone: str) -> Optional[IdentityDto]:
        user = self.session.exec(select(AuthUser).where(AuthUser.phone == phone)).first()
        return self._to_dto(user) if user else None

    def create(self, phone: str) -> IdentityDto:
        user = AuthUser(phone=phone, phone_confirmed=True, auth_method="phone")
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise IdentityExistsError(phone) from e
        self.session.refresh(user)
        return self._to_dto(user)


class SqlProfileRepository(ProfileRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, profile: Profile) -> ProfileDto:
        return ProfileDto(
            user_id=profile.user_id,
            phone=profile.phone,
            email=profile.email,
            full_name=profile.full_name,
            avatar_url=profile.avatar_url,
            is_profile_complete=bool(profile.is_profile_complete),
            auth_method=profile.auth_method,
            last_login_at=as_utc(profile.last_login_at),
            login_count=profile.login_count or 0,
        )

    def get_by_phone(self, phone: str) -> Optional[ProfileDto]:
        profile = self.session.exec(select(Profile).where(Profile.phone == phone)).first()
        return self._to_dto(profile) if profile else None

    def get_by_user_id(self, user_id: str) -> Optional[ProfileDto]:
        profile = self.session.get(Profile, user_id)
        return self._to_dto(profile) if profile else None

    def create(self, user_id: str, phone: str) -> ProfileDto:
        profile = Profile(user_id=user_id, phone=phone, is_profile_complete=False, auth_method="phone")
        self.session.add(profile)
        try:
            self.session.commit()
        except (IntegrityError, FlushError) as e:
            self.session.rollback()
            logger.info(f"Profile insert for user {user_id} hit a unique constraint")
            raise DuplicateProfileError(user_id) from e
        self.session.refresh(profile)
        return self._to_dto(profile)

    def touch_last_active(self, user_id: str, phone: Optional[str] = None) -> None:
        profile = self.session.get(Profile, user_id)
        if not profile:
            return
        now = utcnow()
        if phone is not None:
            profile.phone = phone
        profile.last_login_at = now
        profile.login_count = (profile.login_count or 0) + 1
        profile.updated_at = now
        self.session.add(profile)
        self.session.commit()
