"""Request header injection and routing rules for intercepted browser traffic."""

import logging
from typing import Dict, Mapping
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

# Resource types dropped outright to keep page loads light
BLOCKED_RESOURCE_TYPES = {"image", "stylesheet", "font", "media"}

# Script hosts/paths belonging to tracking and analytics vendors
TRACKER_PATTERNS = [
    "google-analytics",
    "googletagmanager",
    "gtm.js",
    "facebook",
    "amplitude",
    "hotjar",
    "doubleclick",
    "tracker",
    "pixel",
]

CAPTCHA_PATTERNS = ["captcha", "recaptcha"]

HEADER_RESOURCE_TYPES = {"document", "xhr", "fetch"}

CHROME_SEC_CH_UA = '"Google Chrome";v="120", "Chromium";v="120", "Not=A?Brand";v="99"'


def is_tracker(url: str) -> bool:
    """Check if a URL belongs to a tracking/analytics vendor."""
    url_lower = url.lower()
    return any(pattern in url_lower for pattern in TRACKER_PATTERNS)


def classify_request(resource_type: str, url: str) -> str:
    """
    Decide how an intercepted request is handled.

    Args:
        resource_type: Playwright resource type of the request
        url: Request URL

    Returns:
        'abort', 'continue' (untouched) or 'headers' (continue with
        injected headers)
    """
    if resource_type in BLOCKED_RESOURCE_TYPES:
        return "abort"
    if resource_type == "script":
        return "abort" if is_tracker(url) else "continue"
    url_lower = url.lower()
    if any(pattern in url_lower for pattern in CAPTCHA_PATTERNS):
        return "continue"
    if resource_type in HEADER_RESOURCE_TYPES:
        return "headers"
    return "continue"


def same_origin_referer(url: str) -> str:
    """Referer pointing at the root of the request's own origin."""
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.hostname:
        return ""
    host = parsed.hostname
    if parsed.port:
        host = f"{host}:{parsed.port}"
    return f"{parsed.scheme}://{host}/"


class HeaderBuilder:
    """Builds browser-consistent headers for intercepted requests."""

    def __init__(self, accept_language: str = "en-US,en;q=0.9"):
        self.accept_language = accept_language

    def build_request_headers(
        self,
        resource_type: str,
        url: str,
        base_headers: Mapping[str, str],
    ) -> Dict[str, str]:
        """
        Build headers for a document/xhr/fetch request.

        The Referer is always synthesized from the request URL's origin,
        never the real referrer.

        Args:
            resource_type: Playwright resource type
            url: Request URL
            base_headers: Headers the browser was about to send

        Returns:
            Dict of HTTP headers
        """
        is_document = resource_type == "document"
        injected = {
            "Accept-Language": self.accept_language,
            "sec-ch-ua": CHROME_SEC_CH_UA,
            "sec-ch-ua-platform": '"Windows"',
            "sec-ch-ua-mobile": "?0",
            "Sec-Fetch-Dest": "document" if is_document else "empty",
            "Sec-Fetch-Mode": "navigate" if is_document else "cors",
            "Sec-Fetch-Site": "same-origin",
        }

        referer = same_origin_referer(url)
        if referer:
            injected["Referer"] = referer
        else:
            logger.debug(f"Could not derive referer from {url}")

        # Browser-supplied headers are lowercase; drop the ones being replaced
        replaced = {name.lower() for name in injected} | {"referer"}
        headers = {
            name: value
            for name, value in base_headers.items()
            if name.lower() not in replaced
        }
        headers.update(injected)
        return headers


# Global header builder instance
header_builder = HeaderBuilder()
