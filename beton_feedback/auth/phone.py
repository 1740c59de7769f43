import re

_NON_PHONE_CHARS = re.compile(r"[^0-9+]")


def normalize_phone(raw: str | None) -> str:
    """Return the canonical lookup key for a phone number.

    Everything except ASCII digits and ``+`` is stripped, then the key is rebuilt as
    ``+`` followed by the digits, so ``"+7 (999) 123-45-67"`` and
    ``"79991234567"`` both become ``"+79991234567"``. Input without any digit
    normalizes to ``""``.
    """
    digits = _NON_PHONE_CHARS.sub("", raw or "").replace("+", "")
    if not digits:
        return ""
    return f"+{digits}"
