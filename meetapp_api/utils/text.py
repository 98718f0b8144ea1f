"""Text helpers."""

import re
import secrets
import unicodedata


def slugify(value: str, separator: str = "_") -> str:
    """ASCII slug safe for file names and remote paths."""
    value = unicodedata.normalize("NFKD", value or "").encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^A-Za-z0-9\-_]+", separator, value).strip(separator + "-")
    value = re.sub(re.escape(separator) + "+", separator, value)
    return value.lower() or "file"


def random_slug(length: int = 8) -> str:
    return secrets.token_hex(length // 2 + 1)[:length]
