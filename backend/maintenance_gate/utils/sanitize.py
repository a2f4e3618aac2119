"""
Input sanitizers for settings values.

Each sanitizer returns the cleaned value, or None when the input cannot be
turned into a valid value (the caller decides whether that means "reject").
"""

import re
from typing import Any, Iterable, Optional
from urllib.parse import urlsplit, urlunsplit


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", re.IGNORECASE)
HEX_COLOR_RE = re.compile(r"^#([0-9a-f]{3}){1,2}$", re.IGNORECASE)

_TAG_RE = re.compile(r"<[^>]*>")
_OCTET_RE = re.compile(r"%[a-f0-9]{2}", re.IGNORECASE)
_SPACES_RE = re.compile(r"[ \t\r\f\v]+")

ALLOWED_URL_SCHEMES = ("http", "https")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore")
    return str(value)


def sanitize_text(value: Any) -> str:
    """Single-line plain text: tags and octets stripped, whitespace collapsed."""
    text = _TAG_RE.sub("", _as_text(value))
    text = _OCTET_RE.sub("", text)
    text = text.replace("\n", " ")
    return _SPACES_RE.sub(" ", text).strip()


def sanitize_textarea(value: Any) -> str:
    """Multi-line plain text: like sanitize_text but line breaks survive."""
    text = _TAG_RE.sub("", _as_text(value)).replace("\r\n", "\n")
    lines = [_SPACES_RE.sub(" ", line).strip() for line in text.split("\n")]
    return "\n".join(lines).strip()


def sanitize_css(value: Any) -> str:
    """Custom CSS: markup removed so the value cannot close the style block."""
    text = _TAG_RE.sub("", _as_text(value)).replace("<", "")
    return text.replace("\r\n", "\n").strip()


def sanitize_hex_color(value: Any) -> Optional[str]:
    text = _as_text(value).strip()
    if text == "":
        return ""
    if HEX_COLOR_RE.match(text):
        return text.lower()
    return None


def sanitize_email(value: Any) -> Optional[str]:
    text = _as_text(value).strip().lower()
    if text == "":
        return ""
    if EMAIL_RE.match(text):
        return text
    return None


def normalize_url(value: Any) -> Optional[str]:
    """Normalize to an absolute http(s) URL.

    A bare host ("example.com/logo.png") gets an http:// scheme. Anything with
    another scheme, whitespace inside, or no host is rejected.
    """
    text = _as_text(value).strip()
    if text == "":
        return ""
    if any(ch.isspace() for ch in text) or "<" in text or ">" in text:
        return None

    if "://" not in text:
        if text.startswith("//"):
            text = "http:" + text
        elif ":" in text.split("/", 1)[0] and not re.match(r"^[^:/]+:\d+", text):
            # "javascript:alert(1)", "mailto:x" etc.
            return None
        else:
            text = "http://" + text

    try:
        parts = urlsplit(text)
    except ValueError:
        # e.g. an unterminated IPv6 host "http://[oops"
        return None
    if parts.scheme.lower() not in ALLOWED_URL_SCHEMES or not parts.netloc:
        return None
    return urlunsplit((parts.scheme.lower(), parts.netloc, parts.path, parts.query, parts.fragment))


def split_list(value: Any) -> list[Any]:
    """Accept a list, or a newline/comma separated string (admin textarea)."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return re.split(r"[\n,]+", _as_text(value))


def sanitize_text_list(values: Iterable[Any]) -> list[str]:
    """Element-wise plain text, empties and duplicates dropped, order kept."""
    cleaned: list[str] = []
    for item in values:
        text = sanitize_text(item)
        if text and text not in cleaned:
            cleaned.append(text)
    return cleaned


def parse_bool(value: Any, default: Optional[bool] = False) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return value != 0
    normalized = _as_text(value).strip().lower()
    if normalized in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "f", "no", "n", "off", ""}:
        return False
    return default


def redact_key(value: str, visible: int = 8) -> str:
    """Keep the first ``visible`` characters of a secret for logs."""
    return f"{(value or '')[:visible]}..."
