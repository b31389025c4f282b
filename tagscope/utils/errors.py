from tagscope.config.constants import BLOCKING_STATUSES
from tagscope.models.scraping import ErrorKind


class ScanError(Exception):
    """Base exception for detection errors."""

    kind: ErrorKind | None = None

    def __init__(self, message: str, url: str = ""):
        self.url = url
        super().__init__(message)


class NetworkUnreachableError(ScanError):
    """Raised when the host cannot be reached (DNS failure, refused, reset)."""

    kind = ErrorKind.NETWORK_UNREACHABLE

    def __init__(self, message: str, cause: str = "unknown", **kwargs: str):
        self.cause = cause
        super().__init__(message, **kwargs)


class FetchTimeoutError(ScanError):
    """Raised when a fetch attempt exceeds its timeout."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, message: str, timeout_ms: int = 0, **kwargs: str):
        self.timeout_ms = timeout_ms
        super().__init__(message, **kwargs)


class HttpStatusError(ScanError):
    """Raised when the final response carries an error status."""

    kind = ErrorKind.HTTP_ERROR

    def __init__(self, message: str, status_code: int = 0, **kwargs: str):
        self.status_code = status_code
        super().__init__(message, **kwargs)

    @property
    def blocked(self) -> bool:
        return self.status_code in BLOCKING_STATUSES


class RenderFailedError(ScanError):
    """Raised when the browser could not complete navigation."""

    kind = ErrorKind.RENDER_FAILED

    def __init__(self, message: str, status_code: int = 0, **kwargs: str):
        self.status_code = status_code
        super().__init__(message, **kwargs)


class InternalScanError(ScanError):
    """Wraps an unexpected failure while scanning a single page."""

    kind = ErrorKind.INTERNAL_ERROR


class ConfigurationError(ScanError):
    """Raised for invalid caller input, e.g. a missing URL."""


def summarize_error(error: ScanError, url: str) -> str:
    """One-line summary for a failed scan."""
    if isinstance(error, NetworkUnreachableError):
        if error.cause == "dns":
            return f"Domain not found: {url}"
        if error.cause == "refused":
            return f"Connection refused: {url}"
        return f"Connection failed: {url}"
    if isinstance(error, FetchTimeoutError):
        return f"Request timeout: {url}"
    if isinstance(error, HttpStatusError):
        return f"HTTP {error.status_code}: {url}"
    if isinstance(error, RenderFailedError):
        return f"Browser render failed: {url}"
    if isinstance(error, InternalScanError):
        return f"Unexpected error while scanning: {url}"
    return f"Error: {error}"


def troubleshooting_message(error: ScanError, url: str) -> str:
    """Verbose, human-oriented explanation keyed off the error classification."""
    lines = [
        f"Detailed error information for: {url}",
        "",
        f"Error type: {type(error).__name__}",
        f"Error message: {error}",
        "",
    ]

    if isinstance(error, NetworkUnreachableError) and error.cause == "dns":
        lines += [
            "DNS Resolution Failed:",
            "• The domain name could not be resolved",
            "• Check if the website URL is correct",
            "",
            "Suggestions:",
            "• Verify the domain spelling",
            "• Check your internet connection",
            "• Try with 'www.' prefix if not present",
        ]
    elif isinstance(error, NetworkUnreachableError):
        lines += [
            "Connection Refused:",
            "• The server is not accepting connections",
            "• The website may be down or blocking requests",
            "",
            "Suggestions:",
            "• Check if the website is accessible in your browser",
            "• The site may be blocking automated requests",
            "• Try again later as the server may be temporarily down",
        ]
    elif isinstance(error, FetchTimeoutError):
        lines += [
            "Request Timeout:",
            f"• The request took longer than {error.timeout_ms}ms to complete",
            "• The server is responding slowly or not at all",
            "",
            "Suggestions:",
            "• Try again as this may be a temporary issue",
            "• The website may be experiencing high load",
        ]
    elif isinstance(error, HttpStatusError):
        lines.append(f"HTTP Error {error.status_code}:")
        if error.status_code == 403:
            lines += [
                "• Access forbidden - the server is blocking this request",
                "• The website may have anti-bot protection",
            ]
        elif error.status_code == 404:
            lines += [
                "• Page not found - the URL may be incorrect",
                "• The website may have moved or been removed",
            ]
        elif error.status_code >= 500:
            lines += [
                "• Server error - the website is experiencing issues",
                "• This is usually a temporary problem with the website",
            ]
        lines += [
            "",
            "Suggestions:",
            "• Verify the URL is correct",
            "• Try accessing the page directly in your browser",
            "• Try again later if it's a server error",
        ]
    elif isinstance(error, RenderFailedError):
        lines += [
            "Browser Render Failed:",
            "• The headless browser could not finish loading the page",
            "• The site may require interaction the browser could not provide",
            "",
            "Suggestions:",
            "• Check that a Chromium build is installed for Playwright",
            "• Retry with a longer render timeout",
        ]
    elif isinstance(error, InternalScanError):
        lines += [
            "Unexpected Scan Failure:",
            "• The page was fetched or parsed in a way the scanner did not handle",
            "• Other pages in the same run are unaffected",
            "",
            "Suggestions:",
            "• Retry the single URL to see whether the failure repeats",
            "• Check the service logs for the full traceback",
        ]

    return "\n".join(lines)
