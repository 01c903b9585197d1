"""Target normalization and per-task URL derivation."""

from __future__ import annotations

from urllib.parse import quote

G2_SEARCH_URL = "https://www.g2.com/search?query={query}"


def normalize_target(raw: str) -> str:
    """Turn a caller-supplied identifier into a canonical base URL.

    ``acme.com/`` -> ``https://acme.com``. Raises ``ValueError`` on blank input.
    """
    base = (raw or "").strip()
    if not base:
        raise ValueError("Target URL must not be empty")
    if not base.lower().startswith(("http://", "https://")):
        base = f"https://{base}"
    if base.endswith("/"):
        base = base[:-1]
    return base


def bare_domain(base_url: str) -> str:
    """``https://www.acme.com/about`` -> ``acme.com``."""
    host = base_url
    for prefix in ("https://", "http://"):
        if host.lower().startswith(prefix):
            host = host[len(prefix):]
            break
    host = host.split("/", 1)[0]
    if host.lower().startswith("www."):
        host = host[4:]
    return host


def same_url(base_url: str) -> str:
    return base_url


def g2_search_url(base_url: str) -> str:
    """Review-site search page for the target's domain."""
    return G2_SEARCH_URL.format(query=quote(bare_domain(base_url), safe=""))
