"""National id, phone and email checks for patient registration.

All functions here are pure: they return booleans or formatted strings and
never raise on bad input. Callers decide how to surface invalid values.
"""

import re
from datetime import date

NATIONAL_ID_PATTERN = re.compile(r"^\d{7,8}[0-9K]$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def clean_national_id(raw: str) -> str:
    """Drop dots, dashes and whitespace and uppercase the check character."""
    return re.sub(r"[.\-\s]", "", raw or "").upper()


def compute_check_digit(body: str) -> str:
    """
    Compute the modulus-11 check character for a national id body.

    Digits are weighted from the least significant one with 2, 3, 4, 5, 6, 7
    and then the cycle restarts at 2. A result of 11 maps to "0" and 10 to "K".
    """
    total = 0
    multiplier = 2
    for digit in reversed(body):
        total += int(digit) * multiplier
        multiplier = 2 if multiplier == 7 else multiplier + 1

    expected = 11 - (total % 11)
    if expected == 11:
        return "0"
    if expected == 10:
        return "K"
    return str(expected)


def validate_national_id(raw: str) -> bool:
    """Check the shape and check character of a national id number."""
    clean = clean_national_id(raw)
    if not NATIONAL_ID_PATTERN.match(clean):
        return False

    body, check = clean[:-1], clean[-1]
    return check == compute_check_digit(body)


def format_national_id(raw: str) -> str:
    """
    Format a national id as 12.345.678-K.

    Safe to apply repeatedly while the number is being typed: formatting an
    already formatted value gives the same string back.
    """
    if not raw:
        return ""

    clean = re.sub(r"[^0-9kK]", "", raw).upper()
    if len(clean) <= 1:
        return clean

    body, check = clean[:-1], clean[-1]

    groups = []
    while len(body) > 3:
        groups.insert(0, body[-3:])
        body = body[:-3]
    groups.insert(0, body)

    return f"{'.'.join(groups)}-{check}"


def validate_phone(raw: str) -> bool:
    """Accept +569XXXXXXXX, 9XXXXXXXX or a bare 8 digit local number."""
    digits = re.sub(r"\D", "", raw or "")
    return (
        (len(digits) == 11 and digits.startswith("569"))
        or (len(digits) == 9 and digits.startswith("9"))
        or len(digits) == 8
    )


def format_phone(raw: str) -> str:
    """Normalize an accepted mobile number to +56 9 XXXX XXXX."""
    digits = re.sub(r"\D", "", raw or "")
    if not digits:
        return ""

    if len(digits) == 9 and digits.startswith("9"):
        return f"+56 {digits[0]} {digits[1:5]} {digits[5:]}"

    # Local number without the mobile prefix
    if len(digits) == 8:
        return f"+56 9 {digits[:4]} {digits[4:]}"

    if len(digits) == 11 and digits.startswith("569"):
        return f"+56 {digits[2]} {digits[3:7]} {digits[7:]}"

    return raw


def validate_email(raw: str) -> bool:
    return bool(EMAIL_PATTERN.match(raw or ""))


def parse_date(value: str | date) -> date:
    """Read a date or the date portion of an ISO timestamp."""
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def calculate_age(birth_date: str | date, today: date | None = None) -> int:
    """Full years between birth_date and today."""
    birth = parse_date(birth_date)
    today = today or date.today()

    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age


def format_duration(minutes: int) -> str:
    """Format minutes as "1h 5m", or "45m" below one hour."""
    hours, mins = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"
