"""Tracker session cookie loading.

Logged-in trackers (RuTracker, Kinozal) can be seeded with a browser session
instead of a username/password login. Two input forms are accepted:

- a raw ``Cookie`` header: ``bb_session=...; bb_ssl=1``
- a Netscape cookie file exported by a browser extension

Cookie values are never logged.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import urlparse


def parse_cookie_header(raw: str) -> dict[str, str]:
    """Parse a raw Cookie header (optionally newline-separated) into a dict."""
    cookies: dict[str, str] = {}
    for line in raw.splitlines():
        for pair in line.split(";"):
            if "=" not in pair:
                continue
            key, value = pair.split("=", 1)
            key = key.strip()
            if key:
                cookies[key] = value.strip()
    return cookies


def parse_cookie_file(path: Path, *, domain: str | None = None) -> dict[str, str]:
    """Parse a Netscape cookie file, keeping only cookies for ``domain`` when given."""
    cookies: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if line.startswith("#HttpOnly_"):
            line = line[len("#HttpOnly_") :]
        elif not line or line.startswith("#"):
            continue

        # domain \t include_subdomains \t path \t secure \t expiry \t name \t value
        parts = line.split("\t")
        if len(parts) < 7:
            continue
        cookie_domain = parts[0].lstrip(".").lower()
        if domain and not _domain_matches(domain, cookie_domain):
            continue
        name = parts[5].strip()
        if name:
            cookies[name] = parts[6].strip()
    return cookies


def load_session_cookies(base_url: str, *, cookie_header: str = "", cookie_file: str = "") -> dict[str, str]:
    """Load cookies for the tracker at ``base_url``.

    The header takes precedence over the file. Returns an empty dict when
    neither is configured.

    Raises:
        FileNotFoundError: If ``cookie_file`` is set but missing.
    """
    if cookie_header.strip():
        return parse_cookie_header(cookie_header)

    file_value = cookie_file.strip()
    if not file_value:
        return {}

    path = Path(file_value)
    if not path.exists():
        raise FileNotFoundError(f"cookie file not found: {path}")
    host = urlparse(base_url).hostname or ""
    return parse_cookie_file(path, domain=host or None)


def _domain_matches(host: str, cookie_domain: str) -> bool:
    host = host.lower()
    return host == cookie_domain or host.endswith(f".{cookie_domain}") or cookie_domain.endswith(f".{host}")
