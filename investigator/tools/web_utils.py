from __future__ import annotations

import re
from urllib.parse import urljoin, urlparse


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except ValueError:
        return False


def clean_content(text: str, max_length: int = 8000) -> str:
    """Collapse whitespace and trim to max length."""
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) > max_length:
        text = text[:max_length] + "..."
    return text


def extract_domain(url: str) -> str:
    """Host part of a URL, or the URL itself when it does not parse."""
    try:
        return urlparse(url).netloc or url
    except ValueError:
        return url


def absolute_url(base_url: str, href: str) -> str | None:
    """Resolve ``href`` against ``base_url``; drop anything that is not http(s)."""
    if not href or href.startswith(("#", "javascript:", "mailto:", "tel:", "data:")):
        return None
    resolved = urljoin(base_url, href.strip())
    return resolved if is_valid_url(resolved) else None
