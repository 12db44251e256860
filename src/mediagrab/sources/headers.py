"""Randomised browser-identity request headers."""

from __future__ import annotations

import random

PLATFORMS = (
    "Windows NT 10.0; Win64; x64",
    "Macintosh; Intel Mac OS X 10_15_7",
    "X11; Linux x86_64",
)

BROWSERS = ("Chrome", "Microsoft Edge", "Opera")

ACCEPT_LANGUAGES = (
    "ru-RU,ru;q=0.9,en-US;q=0.8,en;q=0.7",
    "ru,en-US;q=0.9,en;q=0.8",
    "en-US,en;q=0.9,ru;q=0.8",
)

_UA_PLATFORM_HINT = {
    "Windows NT 10.0; Win64; x64": "Windows",
    "Macintosh; Intel Mac OS X 10_15_7": "macOS",
    "X11; Linux x86_64": "Linux",
}


def random_browser_headers(rng: random.Random | None = None, *, referer: str | None = None) -> dict[str, str]:
    """Build one consistent header set for a desktop Chromium-family browser.

    The platform, browser brand and major version (100–120) are drawn together,
    so ``User-Agent`` and the ``Sec-Ch-Ua*`` client hints always agree.
    """
    rng = rng or random.Random()
    platform = rng.choice(PLATFORMS)
    browser = rng.choice(BROWSERS)
    version = rng.randint(100, 120)

    user_agent = (
        f"Mozilla/5.0 ({platform}) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/{version}.0.0.0 Safari/537.36"
    )
    if browser == "Microsoft Edge":
        user_agent += f" Edg/{version}.0.0.0"
    elif browser == "Opera":
        user_agent += f" OPR/{version - 14}.0.0.0"

    headers = {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
        "Accept-Language": rng.choice(ACCEPT_LANGUAGES),
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "Sec-Ch-Ua": f'"{browser}";v="{version}", "Chromium";v="{version}", "Not_A Brand";v="8"',
        "Sec-Ch-Ua-Mobile": "?0",
        "Sec-Ch-Ua-Platform": f'"{_UA_PLATFORM_HINT[platform]}"',
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none" if referer is None else "same-origin",
        "Sec-Fetch-User": "?1",
        "Upgrade-Insecure-Requests": "1",
        "DNT": rng.choice(("0", "1")),
    }
    if referer:
        headers["Referer"] = referer
    return headers
