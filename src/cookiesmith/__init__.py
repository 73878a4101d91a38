"""Read authentication cookies from locally installed browsers."""

from cookiesmith.auth.cookies import (
    Cookie,
    CookieError,
    ExtractionResult,
    InvalidURLError,
    get_cookies,
    to_cookie_header,
)
from cookiesmith.auth.paths import BrowserConfig, BrowserName, get_browser_configs

__version__ = "0.1.0"

__all__ = [
    "BrowserConfig",
    "BrowserName",
    "Cookie",
    "CookieError",
    "ExtractionResult",
    "InvalidURLError",
    "__version__",
    "get_browser_configs",
    "get_cookies",
    "to_cookie_header",
]
