import re

# Simple, pragmatic pattern: local@domain.tld, no whitespace, exactly one @
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def clean_str(val: str | None, max_len: int = 255) -> str | None:
    """
    Trim and enforce max length. Returns None if empty after cleaning.
    Inner whitespace is kept; signer/contact lines are shown as typed.
    """
    if val is None:
        return None
    s = str(val).strip()
    if not s:
        return None
    return s[:max_len]


def is_valid_email(val: str | None) -> bool:
    if not val:
        return False
    return bool(_EMAIL_RE.match(val))
