from urllib.parse import urlparse

HIGH_PRIORITY = 3
MEDIUM_PRIORITY = 2
LOW_PRIORITY = 1

# Conversion and entry pages
_HIGH_PATHS = [
    "/",
    "/home",
    "/index",
    "/contact",
    "/about",
    "/services",
    "/products",
    "/checkout",
    "/cart",
    "/purchase",
    "/buy",
    "/signup",
    "/register",
    "/login",
    "/pricing",
    "/plans",
]

# Content and support pages
_MEDIUM_PATHS = [
    "/blog",
    "/news",
    "/articles",
    "/support",
    "/help",
    "/faq",
    "/categories",
    "/category",
]


def _matches(path: str, prefixes: list[str]) -> bool:
    for prefix in prefixes:
        if path == prefix:
            return True
        if prefix != "/" and path.startswith(prefix + "/"):
            return True
    return False


def page_priority(url: str) -> int:
    """Three-tier priority of a page for the missing-tag report."""
    path = (urlparse(url).path or "/").lower()
    if path != "/":
        path = path.rstrip("/")

    if _matches(path, _HIGH_PATHS):
        return HIGH_PRIORITY
    if _matches(path, _MEDIUM_PATHS):
        return MEDIUM_PRIORITY
    return LOW_PRIORITY
