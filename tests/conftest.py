from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.application.ports.otp_store import SUPERSEDED_REASON, OTPRecord, OTPStatus, OTPStore, allowed_sources
from app.application.ports.sms_gateway import DispatchFailure, DispatchSuccess, SmsGateway
from app.application.ports.user_repo import (
    DuplicateProfileError,
    IdentityDto,
    IdentityExistsError,
    IdentityRepository,
    ProfileDto,
    ProfileRepository,
)
from app.core.config import AuthConfig
from app.utils import utcnow
from app.db import models  # noqa: F401


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeOTPStore(OTPStore):
    def __init__(self):
        self.records: Dict[int, OTPRecord] = {}
        self.fail_create = False
        self.fail_history = False
        self.fail_mark = False
        self.fail_supersede = False

    def create(self, phone: str, code: str, created_at: datetime, expires_at: datetime) -> int:
        if self.fail_create:
            raise RuntimeError("insert failed")
        record_id = len(self.records) + 1
        self.records[record_id] = OTPRecord(
            id=record_id,
            phone=phone,
            code=code,
            status=OTPStatus.PENDING,
            expires_at=expires_at,
            created_at=created_at,
        )
        return record_id

    def mark_outcome(self, record_id: int, status: OTPStatus, diagnostic: Optional[Dict[str, Any]] = None,
                     message_id: Optional[str] = None, request_id: Optional[str] = None) -> bool:
        if self.fail_mark:
            raise RuntimeError("update failed")
        record = self.records.get(record_id)
        if record is None or record.status not in allowed_sources(status):
            return False
        record.status = status
        if diagnostic is not None:
            record.diagnostic = diagnostic
        if message_id is not None:
            record.message_id = message_id
        if request_id is not None:
            record.request_id = request_id
        return True

    def supersede(self, phone: str) -> int:
        if self.fail_supersede:
            raise RuntimeError("update failed")
        changed = 0
        for record in self.records.values():
            if record.phone == phone and record.status in allowed_sources(OTPStatus.FAILED):
                record.status = OTPStatus.FAILED
                record.diagnostic = {"reason": SUPERSEDED_REASON}
                changed += 1
        return changed

    def find_current_challenge(self, phone: str) -> Optional[OTPRecord]:
        candidates = [r for r in self.records.values() if r.phone == phone and r.status != OTPStatus.VERIFIED]
        if not candidates:
            return None
        newest = max(candidates, key=lambda r: (r.created_at, r.id))
        # hand out a copy, like a fresh database read
        return OTPRecord(**newest.__dict__)

    def created_since(self, phone: str, since: datetime) -> List[datetime]:
        if self.fail_history:
            raise RuntimeError("history query failed")
        times = [r.created_at for r in self.records.values() if r.phone == phone and r.created_at >= since]
        return sorted(times, reverse=True)

    def get(self, record_id: int) -> Optional[OTPRecord]:
        return self.records.get(record_id)

    def latest(self) -> OTPRecord:
        return self.records[max(self.records)]


class FakeGateway(SmsGateway):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[tuple] = []

    def send(self, phone: str, text: str):
        self.sent.append((phone, text))
        if self.fail:
            return DispatchFailure(reason="gateway down", raw={"message": "error"})
        return DispatchSuccess(message_id=f"msg-{len(self.sent)}", request_id=f"req-{len(self.sent)}",
                               raw={"message": "Message Sent Successfully!"})


class FakeIdentities(IdentityRepository):
    def __init__(self):
        self.by_phone: Dict[str, IdentityDto] = {}
        self.fail_create: Optional[Exception] = None
        self.created = 0

    def get_by_phone(self, phone: str) -> Optional[IdentityDto]:
        return self.by_phone.get(phone)

    def create(self, phone: str) -> IdentityDto:
        if self.fail_create is not None:
            raise self.fail_create
        if phone in self.by_phone:
            raise IdentityExistsError(phone)
        self.created += 1
        identity = IdentityDto(id=f"user-{self.created}", phone=phone, created_at=utcnow())
        self.by_phone[phone] = identity
        return identity

    def add(self, user_id: str, phone: str) -> IdentityDto:
        identity = IdentityDto(id=user_id, phone=phone, created_at=utcnow())
        self.by_phone[phone] = identity
        return identity


class FakeProfiles(ProfileRepository):
    def __init__(self):
        self.by_user: Dict[str, ProfileDto] = {}
        self.fail_create: Optional[Exception] = None
        self.touched: List[str] = []

    def get_by_phone(self, phone: str) -> Optional[ProfileDto]:
        for profile in self.by_user.values():
            if profile.phone == phone:
                return profile
        return None

    def get_by_user_id(self, user_id: str) -> Optional[ProfileDto]:
        return self.by_user.get(user_id)

    def create(self, user_id: str, phone: str) -> ProfileDto:
        if self.fail_create is not None:
            raise self.fail_create
        if user_id in self.by_user or self.get_by_phone(phone):
            raise DuplicateProfileError(user_id)
        return self.add(user_id, phone)

    def touch_last_active(self, user_id: str, phone: Optional[str] = None) -> None:
        profile = self.by_user.get(user_id)
        if not profile:
            return
        if phone is not None:
            profile.phone = phone
        profile.last_login_at = utcnow()
        profile.login_count += 1
        self.touched.append(user_id)

    def add(self, user_id: str, phone: Optional[str], full_name: Optional[str] = None,
            complete: bool = False) -> ProfileDto:
        profile = ProfileDto(
            user_id=user_id,
            phone=phone,
            email=None,
            full_name=full_name,
            avatar_url=None,
            is_profile_complete=complete,
            auth_method="phone",
            last_login_at=None,
            login_count=0,
        )
        self.by_user[user_id] = profile
        return profile


@pytest.fixture
def auth_config():
    return AuthConfig(signing_secret="test-secret")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def otp_store():
    return FakeOTPStore()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def identities():
    return FakeIdentities()


@pytest.fixture
def profiles():
    return FakeProfiles()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def failing_gateway():
    return FakeGateway(fail=True)
