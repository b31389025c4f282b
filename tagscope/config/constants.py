from typing import NamedTuple


class ClientIdentity(NamedTuple):
    name: str
    headers: dict[str, str]


_ACCEPT_HTML = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,"
    "image/avif,image/webp,image/apng,*/*;q=0.8"
)

# Rotated per fetch attempt: desktop -> alternate desktop -> mobile
CLIENT_IDENTITIES: tuple[ClientIdentity, ...] = (
    ClientIdentity(
        name="desktop_chrome_mac",
        headers={
            "User-Agent": (
                "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
                "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
            ),
            "Accept": _ACCEPT_HTML,
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate",
            "Upgrade-Insecure-Requests": "1",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "none",
            "Sec-Fetch-User": "?1",
            "Cache-Control": "max-age=0",
        },
    ),
    ClientIdentity(
        name="desktop_chrome_windows",
        headers={
            "User-Agent": (
                "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
                "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
            ),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate",
            "Pragma": "no-cache",
            "DNT": "1",
        },
    ),
    ClientIdentity(
        name="mobile_safari_ios",
        headers={
            "User-Agent": (
                "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) "
                "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
            ),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate",
        },
    ),
)

BLOCKING_STATUSES: frozenset[int] = frozenset({403, 503})

CAPTCHA_SIGNALS: tuple[str, ...] = (
    "captcha",
    "challenge-form",
    "cf-browser-verification",
    "recaptcha",
    "hcaptcha",
    "turnstile",
)

SITEMAP_PATHS: tuple[str, ...] = (
    "/sitemap.xml",
    "/sitemap_index.xml",
    "/sitemap/sitemap.xml",
    "/sitemaps/sitemap.xml",
)

DEFAULT_EXCLUDE_PATHS: tuple[str, ...] = ("/admin", "/wp-admin", "/private")

DEFAULT_MAX_PAGES = 10
DEFAULT_MAX_DEPTH = 2

# Site estimator safety caps and fallback
MAX_RECOMMENDED_PAGES = 50
MAX_RECOMMENDED_DEPTH = 4
CONSERVATIVE_MAX_PAGES = 5
CONSERVATIVE_MAX_DEPTH = 1
