# src/snackbuilder/preview.py
from __future__ import annotations

import time
from urllib.parse import urlencode

SNACK_BASE_URL = "https://snack.expo.dev"
SUPPORTED_PLATFORMS = "ios,android,web"


def _cache_buster(t: int | None) -> int:
    return int(time.time() * 1000) if t is None else t


def embed_url(code_url: str, *, sdk_version: str, name: str, platform: str = "web", t: int | None = None) -> str:
    """URL for the embedded preview iframe; the embed also shows the Expo Go QR code."""
    query = urlencode(
        {
            "platform": platform,
            "preview": "true",
            "supportedPlatforms": SUPPORTED_PLATFORMS,
            "sdkVersion": sdk_version,
            "name": name,
            "codeUrl": code_url,
            "t": _cache_buster(t),
        }
    )
    return f"{SNACK_BASE_URL}/embedded?{query}"


def snack_url(code_url: str, *, sdk_version: str, name: str, platform: str = "web", t: int | None = None) -> str:
    """Direct "open in Snack" link."""
    query = urlencode(
        {
            "platform": platform,
            "sdkVersion": sdk_version,
            "name": name,
            "codeUrl": code_url,
            "t": _cache_buster(t),
        }
    )
    return f"{SNACK_BASE_URL}/?{query}"
