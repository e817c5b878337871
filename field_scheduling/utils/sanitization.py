import html
import re
from typing import Optional


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Sanitize a string by escaping HTML special characters to prevent XSS.
    Returns None if input is None.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    return html.escape(str(value), quote=True)


def normalize_free_text(value: Optional[str], max_length: int = 1000) -> Optional[str]:
    """
    Trim free text (notes, decline reasons) and strip control characters.
    Blank input collapses to None.
    """
    if value is None:
        return None

    value = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", value).strip()
    if not value:
        return None
    return value[:max_length]
