"""
Utility functions for Shadow User.

Provides helpers for text processing, URLs and general utilities.
"""

import json
import re
from typing import Any, Optional
from urllib.parse import urljoin, urlparse


def truncate_text(text: str, max_chars: int, suffix: str = "...") -> str:
    """Truncate text to a maximum number of characters.

    Args:
        text: Text to truncate
        max_chars: Maximum number of characters
        suffix: Suffix to add when truncated

    Returns:
        Truncated text
    """
    if len(text) <= max_chars:
        return text
    return text[:max_chars - len(suffix)] + suffix


def parse_domain(url: str) -> str:
    """Extract the lower-cased host name from a URL.

    Args:
        url: Full URL

    Returns:
        Domain name (e.g., "example.com"), or "" when there is none
    """
    return (urlparse(url).hostname or "").lower()


def is_absolute_url(url: str) -> bool:
    """Check whether a URL carries its own scheme and host."""
    parsed = urlparse(url)
    if parsed.scheme == "about":
        return True
    return bool(parsed.scheme) and bool(parsed.netloc)


def is_cross_origin_link(href: Optional[str], page_url: str) -> bool:
    """Check whether following href would leave the current site.

    Relative and fragment links always stay on the site; only absolute
    links to a different host count as cross-origin.

    Args:
        href: Raw href attribute value (may be None)
        page_url: URL of the page that holds the link

    Returns:
        True if the link points to another host
    """
    if not href:
        return False
    href = href.strip()
    if href.startswith(("#", "/")) and not href.startswith("//"):
        return False
    if href.lower().startswith(("javascript:", "mailto:", "tel:")):
        return False

    target = urlparse(urljoin(page_url, href))
    if target.scheme not in ("http", "https"):
        return False
    return parse_domain(target.geturl()) != parse_domain(page_url)


def _whole_floats_to_int(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {k: _whole_floats_to_int(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_whole_floats_to_int(v) for v in value]
    return value


def canonical_arguments(arguments: str, ignore: tuple[str, ...] = ()) -> str:
    """Normalize a JSON argument string so equal calls compare equal.

    Keys listed in ignore are dropped and whole floats become ints, so
    5 and 5.0 compare equal. Unparseable input is returned stripped,
    unchanged otherwise.
    """
    try:
        data = json.loads(arguments or "{}")
    except json.JSONDecodeError:
        return (arguments or "").strip()
    if isinstance(data, dict):
        data = {k: v for k, v in data.items() if k not in ignore}
    return json.dumps(_whole_floats_to_int(data), sort_keys=True, ensure_ascii=False)


def format_number(value: float) -> str:
    """Render a number without a trailing .0 for whole values."""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def redact_secrets(value: Any, secrets: set[str], placeholder: str = "[REDACTED]") -> Any:
    """Replace every whole-token occurrence of a known secret in a (nested) value.

    Args:
        value: String, list or dict to sanitize
        secrets: Strings that must never reach the logs
        placeholder: Replacement text

    Returns:
        A sanitized copy of value
    """
    if not secrets:
        return value
    if isinstance(value, str):
        for secret in secrets:
            if secret:
                # Whole tokens only
                pattern = r"(?<!\w)" + re.escape(secret) + r"(?!\w)"
                value = re.sub(pattern, lambda _: placeholder, value)
        return value
    if isinstance(value, dict):
        return {k: redact_secrets(v, secrets, placeholder) for k, v in value.items()}
    if isinstance(value, list):
        return [redact_secrets(v, secrets, placeholder) for v in value]
    return value
