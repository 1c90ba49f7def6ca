import re
import secrets

DEFAULT_OTP_TEMPLATE = "Your webapp login OTP is {code} From - Chill Mechanic"

_CODE = re.compile(r"^\d{4}$")


def generate_otp() -> str:
    return str(1000 + secrets.randbelow(9000))


def is_valid_code(code) -> bool:
    return isinstance(code, str) and bool(_CODE.match(code))


def codes_match(expected: str, submitted: str) -> bool:
    return secrets.compare_digest(expected.encode(), submitted.encode())


def render_otp_message(code: str, template: str = DEFAULT_OTP_TEMPLATE) -> str:
    return template.format(code=code)
