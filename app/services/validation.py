import re

from email_validator import EmailNotValidError, validate_email

PASSWORD_MIN_LENGTH = 8
PASSWORD_SYMBOLS = "!@#$%^&*()_+-=[]{}|;':\",./<>?"

_PASSWORD_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"[0-9]"), "Password must contain at least one number"),
    (
        re.compile(f"[{re.escape(PASSWORD_SYMBOLS)}]"),
        "Password must contain at least one special character",
    ),
)


def normalize_email(value: str) -> str:
    return (value or "").strip().lower()


def email_errors(email: str) -> list[str]:
    if not email:
        return ["Email is required"]
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return ["Invalid email format"]
    return []


def password_errors(password: str) -> list[str]:
    if not password:
        return ["Password is required"]
    errors = []
    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    errors.extend(
        message for pattern, message in _PASSWORD_RULES if not pattern.search(password)
    )
    return errors


def derive_account_name(email: str) -> str:
    """Local part of ``email``, or the whole string when there is none."""
    at = email.find("@")
    if at > 0:
        return email[:at]
    return email
