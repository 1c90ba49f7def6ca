# app/schemas/auth/auth.py
from pydantic import BaseModel, Field, validator

from ...application.services.auth_service import OTPIntent


class PhoneRequest(BaseModel):
    phone: str = Field(..., description="Mobile number; spaces, dashes, +91 or a leading 0 are accepted")

    @validator('phone', pre=True)
    def strip_phone(cls, v):
        if v is None:
            return v
        return str(v).strip()


class SendOTPRequest(PhoneRequest):
    intent: OTPIntent = Field(OTPIntent.SIGNIN, description="signup or signin")


class VerifyOTPRequest(PhoneRequest):
    otp: str = Field(..., description="4 digit code received by SMS")

    @validator('otp', pre=True)
    def strip_otp(cls, v):
        if v is None:
            return v
        return str(v).strip()


class VerifyOTPWithIntentRequest(VerifyOTPRequest):
    intent: OTPIntent = Field(OTPIntent.SIGNIN, description="signup or signin")

