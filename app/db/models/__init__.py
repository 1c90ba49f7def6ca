# Models package (re-export feature modules for stable imports)
from .auth.otp import OTPLog
from .users.user import AuthUser
from .users.profile import Profile

__all__ = [
    "OTPLog",
    "AuthUser",
    "Profile",
]
