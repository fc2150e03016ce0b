import re
from decimal import Decimal, InvalidOperation
from typing import Optional

import bleach

IMAGE_DATA_URL_RE = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,[A-Za-z0-9+/=\s]+$")
# Largest value a Numeric(10, 2) column holds
MAX_AMOUNT = Decimal("99999999.99")


def clean_text(value: Optional[str]) -> str:
    """Sanitize a user-supplied string for safe display.

    - Removes NULL bytes
    - Strips HTML tags using bleach.clean(..., strip=True)
    - Trims whitespace
    """
    if value is None:
        return ""
    val = value.replace("\x00", "")
    val = bleach.clean(val, tags=set(), strip=True)
    return val.strip()


def is_image_payload(value: Optional[str]) -> bool:
    return bool(value) and IMAGE_DATA_URL_RE.match(value) is not None


def parse_amount(value) -> Optional[Decimal]:
    """Parse a loosely typed number into a Decimal.

    Returns None for anything that is not a finite number storable as money.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or abs(amount) > MAX_AMOUNT:
        return None
    return amount
