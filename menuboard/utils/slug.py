import re
import secrets
import unicodedata

RANDOM_SLUG_BYTES = 5


def normalize_slug(value: str) -> str:
    if not value:
        return ""

    value = unicodedata.normalize("NFKD", value)
    value = value.encode("ascii", "ignore").decode("ascii")
    value = value.lower()
    value = re.sub(r"[^a-z0-9]+", "-", value).strip("-")
    value = re.sub(r"-{2,}", "-", value)

    return value


def random_slug() -> str:
    return secrets.token_hex(RANDOM_SLUG_BYTES)
