import re

from auth_utils.exceptions import InvalidEmail

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(raw) -> str:
    """Trim and lower-case an email, then check it is syntactically plausible."""
    if not isinstance(raw, str):
        raise InvalidEmail(raw)
    email = raw.strip().lower()
    if not _EMAIL_RE.match(email):
        raise InvalidEmail(raw)
    return email
