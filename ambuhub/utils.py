import html
import re
from typing import Optional

import bleach

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_input(value: Optional[str]) -> str:
    """Sanitize a user-supplied string before it is stored and displayed.

    - Removes NULL bytes and other control characters (newlines and tabs are kept)
    - Decodes HTML entities until none are left, so encoded markup is stripped too
    - Strips HTML tags using bleach.clean(..., strip=True)
    - Trims whitespace
    """
    if value is None:
        return ""
    val = _CONTROL_CHARS.sub("", value)
    decoded = html.unescape(val)
    while decoded != val:
        val, decoded = decoded, html.unescape(decoded)
    val = bleach.clean(val, tags=set(), strip=True)
    # the input held no entities, so this only reverses bleach's own escaping;
    # templates escape again on output
    val = html.unescape(val)
    return _CONTROL_CHARS.sub("", val).strip()


def normalize_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()
