"""Verification link building."""

from __future__ import annotations

from urllib.parse import urlencode, urlsplit, urlunsplit


def build_verify_url(base_url: str, purpose: str, target: str, code: str) -> str:
    """Return *base_url* with ``type``, ``target`` and ``code`` query params.

    Existing query parameters on *base_url* are preserved.

    >>> build_verify_url("https://example.com/verify", "email-verify", "a@b.com", "AB12CD")
    'https://example.com/verify?type=email-verify&target=a%40b.com&code=AB12CD'
    """
    parts = urlsplit(base_url)
    params = urlencode({"type": purpose, "target": target, "code": code})
    query = f"{parts.query}&{params}" if parts.query else params
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))
