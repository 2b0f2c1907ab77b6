# slotbook/utils/text_processing.py
"""Small text helpers shared by the booking and business services"""
import re
import unicodedata

PHONE_PATTERN = re.compile(r"^[+0-9()\-\s]+$")
SLUG_PATTERN = re.compile(r"^[a-z0-9-]{3,50}$")
MIN_PHONE_DIGITS = 8


def normalize_phone(raw: str) -> str:
    """Keep digits only, so '+54 9 (11) 5555-1234' and '5491155551234' compare equal"""
    return re.sub(r"\D", "", raw or "")


def is_valid_phone(raw: str) -> bool:
    if not raw or not 8 <= len(raw) <= 32:
        return False
    if not PHONE_PATTERN.match(raw):
        return False
    return len(normalize_phone(raw)) >= MIN_PHONE_DIGITS


def slugify(value: str, max_length: int = 50) -> str:
    normalized = unicodedata.normalize("NFKD", value.lower())
    ascii_only = normalized.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^a-z0-9\s-]", "", ascii_only).strip()
    cleaned = re.sub(r"\s+", "-", cleaned)
    cleaned = re.sub(r"-+", "-", cleaned)
    return cleaned[:max_length].strip("-")
