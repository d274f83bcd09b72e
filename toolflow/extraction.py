"""Best-effort parameter extraction from a free-text request.

This is a convenience for callers that only have the user's message; the
engine itself never depends on it.
"""

from __future__ import annotations

import re
from typing import Any, Dict

from .constants import DEFAULT_LOCATION

_QUOTED = re.compile(r"[\"“]([^\"“”]+)[\"”]")
# only the keyword is case-insensitive; the location stop needs a capital
_TOPIC = re.compile(r"\b(?i:about|for|on)\s+(.+?)(?=\s+in\s+[A-Z]|[.?!,;](?:\s|$)|$)")
_LOCATION = re.compile(r"\bin\s+(?:the\s+)?([A-Z][\w'-]*(?:\s+[A-Z][\w'-]*)*)")
# a scheme or "www." marks any host as a domain
_URL = re.compile(
    r"\b(?:https?://(?:www\.)?|www\.)((?:[a-z0-9-]+\.)+[a-z]{2,})(/[^\s\"']*)?",
    re.IGNORECASE,
)
# bare hosts need a known TLD so "Node.js" or "file.txt" are left alone
_BARE_TLDS = (
    "com", "org", "net", "io", "co", "ai", "dev", "app", "info", "biz", "edu", "gov",
    "shop", "store", "blog", "xyz", "me", "tv", "us", "uk", "ca", "au", "de", "fr",
    "es", "it", "nl", "eu", "in",
)
_BARE_DOMAIN = re.compile(
    r"\b((?:[a-z0-9-]+\.)+(?:" + "|".join(_BARE_TLDS) + r"))(?![\w-])(/[^\s\"']*)?",
    re.IGNORECASE,
)


def extract_parameters(
    user_query: str, default_location: str = DEFAULT_LOCATION
) -> Dict[str, Any]:
    """Derive workflow parameters from ``user_query``.

    - a quoted phrase becomes ``keyword``
    - "about/for/on X" becomes ``topic`` (and ``keyword`` when nothing is quoted)
    - "in <Place>" becomes ``location``, otherwise ``default_location``
    - a domain-looking token becomes ``domain`` and ``url``
    """
    params: Dict[str, Any] = {}
    query = (user_query or "").strip()

    quoted = _QUOTED.search(query)
    if quoted:
        params["keyword"] = quoted.group(1).strip()

    topic = _TOPIC.search(query)
    if topic:
        value = topic.group(1).strip().strip("\"“”")
        if value:
            params["topic"] = value
            params.setdefault("keyword", value)

    location = _LOCATION.search(query)
    params["location"] = location.group(1).strip() if location else default_location

    domain = _URL.search(query) or _BARE_DOMAIN.search(query)
    if domain:
        host = domain.group(1).lower()
        params["domain"] = host
        params["url"] = f"https://{host}{domain.group(2) or ''}"

    return params
