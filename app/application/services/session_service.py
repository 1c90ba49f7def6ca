import logging
from dataclasses import dataclass
from typing import Optional

from ..ports.user_repo import (
    DuplicateProfileError,
    IdentityDto,
    IdentityExistsError,
    IdentityRepository,
    ProfileDto,
    ProfileRepository,
)
from ...exceptions import AlreadyRegistered, IdentityCreationFailed, NotRegistered
from .phone import mask_phone
from .session_tokens import SessionClaims, SessionTokenCodec

logger = logging.getLogger(__name__)


@dataclass
class UserSummary:
    id: str
    phone: Optional[str]
    email: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    is_profile_complete: bool = False
    auth_method: str = "phone"
    is_new_user: bool = False

    @classmethod
    def from_profile(cls, profile: ProfileDto, is_new_user: bool = False) -> "UserSummary":
        return cls(
            id=profile.user_id,
            phone=profile.phone,
            email=profile.email,
            full_name=profile.full_name,
            avatar_url=profile.avatar_url,
            is_profile_complete=profile.is_profile_complete,
            auth_method=profile.auth_method or "phone",
            is_new_user=is_new_user,
        )

    def dict(self) -> dict:
        return dict(self.__dict__)


@dataclass
class SessionInfo:
    token: str
    claims: SessionClaims
    user: UserSummary


@dataclass
class SessionIssuer:
    """Turns a verified phone into an identity, a profile and a signed session."""

    identities: IdentityRepository
    profiles: ProfileRepository
    codec: SessionTokenCodec

    def sign_up(self, phone: str) -> SessionInfo:
        if self.profiles.get_by_phone(phone) or self.identities.get_by_phone(phone):
            raise AlreadyRegistered()

        try:
            identity = self.identities.create(phone)
        except IdentityExistsError:
            raise AlreadyRegistered()
        except Exception as e:
            logger.error(f"Identity creation failed for {mask_phone(phone)}: {e}")
            raise IdentityCreationFailed() from e

        try:
            profile = self._create_profile(identity, phone)
        except IdentityCreationFailed:
            raise
        except Exception as e:
            logger.error(f"Profile creation failed for user {identity.id}: {e}")
            raise IdentityCreationFailed(f"Failed to create account profile for user {identity.id}") from e

        logger.info(f"Signed up user {identity.id} ({mask_phone(phone)})")
        return self._issue(profile, phone, is_new_user=True)

    def sign_in(self, phone: str) -> SessionInfo:
        profile = self.profiles.get_by_phone(phone)
        if profile:
            return self._refresh_and_issue(profile.user_id, phone)

        identity = self.identities.get_by_phone(phone)
        if identity is None:
            raise NotRegistered()

        # Phone stored in another format on the profile
        profile = self.profiles.get_by_user_id(identity.id)
        if profile:
            logger.info(f"Re-syncing profile phone for user {identity.id}")
            self.profiles.touch_last_active(identity.id, phone=phone)
            return self._refresh_and_issue(identity.id, phone, touched=True)

        logger.warning(f"User {identity.id} has no profile, creating it on sign-in")
        profile = self._create_profile(identity, phone)
        return self._refresh_and_issue(profile.user_id, phone)

    def ensure_profile(self, identity: IdentityDto, phone: str) -> ProfileDto:
        """Create the profile of an identity that has none (an interrupted sign-up)."""
        existing = self.profiles.get_by_user_id(identity.id)
        if existing:
            return existing
        return self._create_profile(identity, phone)

    def _create_profile(self, identity: IdentityDto, phone: str) -> ProfileDto:
        try:
            return self.profiles.create(identity.id, phone)
        except DuplicateProfileError:
            existing = self.profiles.get_by_user_id(identity.id)
            if existing is None:
                # the conflicting row belongs to someone else
                raise IdentityCreationFailed(f"Failed to create account profile for user {identity.id}")
            return existing

    def _refresh_and_issue(self, user_id: str, phone: str, touched: bool = False) -> SessionInfo:
        if not touched:
            self.profiles.touch_last_active(user_id)
        profile = self.profiles.get_by_user_id(user_id)
        return self._issue(profile, phone)

    def _issue(self, profile: ProfileDto, phone: str, is_new_user: bool = False) -> SessionInfo:
        token, claims = self.codec.mint(
            user_id=profile.user_id,
            phone=profile.phone or phone,
            is_profile_complete=bool(profile.is_profile_complete),
        )
        return SessionInfo(token=token, claims=claims, user=UserSummary.from_profile(profile, is_new_user))
