from __future__ import annotations

import re


COUNTRY_CALLING_CODES: dict[str, str] = {
    "IN": "91",
    "US": "1",
    "CA": "1",
    "GB": "44",
    "AE": "971",
    "AU": "61",
    "PK": "92",
    "BD": "880",
    "LK": "94",
    "NP": "977",
    "SG": "65",
    "ZA": "27",
}

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: str | None, default_country: str = "IN") -> str | None:
    """
    Normalize a stored phone number to E.164 form.

    Bare domestic numbers get the calling code of ``default_country``.
    Returns None if the value cannot be turned into a dialable number.
    Raises ValueError for a country missing from COUNTRY_CALLING_CODES.
    """

    if not raw:
        return None

    value = str(raw).strip()
    digits = _NON_DIGITS.sub("", value)
    if not digits:
        return None

    if value.startswith("+") and len(digits) > 9:
        return f"+{digits}"

    code = COUNTRY_CALLING_CODES.get((default_country or "").upper())
    if code is None:
        raise ValueError(f"Unsupported default country: {default_country!r}")

    if len(digits) == 10:
        return f"+{code}{digits}"
    # Domestic trunk prefix, e.g. 09876543210
    if len(digits) == 11 and digits.startswith("0"):
        return f"+{code}{digits[1:]}"
    if len(digits) == 10 + len(code) and digits.startswith(code):
        return f"+{digits}"
    if 7 <= len(digits) <= 15:
        return f"+{digits}"
    return None
