import re
from typing import Optional

from ...exceptions import InvalidPhoneFormat

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: Optional[str], country_code: str = "91") -> str:
    """Reduce any user-typed Indian mobile number to ``91XXXXXXXXXX``.

    Accepts spaces, dashes, a leading ``+`` or ``0`` and an optional country
    prefix. Raises InvalidPhoneFormat when the remainder is not a 10 digit
    mobile number starting with 6-9.
    """
    digits = _NON_DIGITS.sub("", str(raw or ""))
    if not digits:
        raise InvalidPhoneFormat("Phone number is required")
    if digits.startswith("0"):
        digits = digits[1:]
    if len(digits) == len(country_code) + 10 and digits.startswith(country_code):
        digits = digits[len(country_code):]
    if len(digits) != 10:
        raise InvalidPhoneFormat("Invalid phone number. Must be 10 digits.")
    if digits[0] not in "6789":
        raise InvalidPhoneFormat("Invalid phone number. Must start with 6, 7, 8 or 9.")
    return f"{country_code}{digits}"


def mask_phone(phone: Optional[str]) -> str:
    if not phone:
        return ""
    digits = _NON_DIGITS.sub("", phone)
    if len(digits) <= 4:
        return "*" * len(digits)
    return "*" * (len(digits) - 4) + digits[-4:]
