"""LLM-backed product data extraction from sanitized product pages."""

import logging
import re
from typing import Any, Dict, Optional

from shopcheck import metrics
from shopcheck.ai.json_recovery import parse_json_response
from shopcheck.ai.llm_service import LLMService, llm_service
from shopcheck.ai.prompts import ProductExtractionPrompt
from shopcheck.config import settings
from shopcheck.models import LOGIN_REQUIRED, ProductData

logger = logging.getLogger(__name__)

# Login-wall phrases per language, matched case-insensitively
LOGIN_PHRASES = {
    "danish": ["login for at se priser", "log ind for at se pris"],
    "swedish": ["logga in för att se pris", "logga in för pris"],
    "norwegian": ["logg inn for å se pris", "logg inn for pris"],
    "german": ["anmelden um preis zu sehen", "login für preise"],
    "english": ["login to see price", "sign in for price", "login required"],
}

# Checked in order; the first one present splits the breadcrumb
CATEGORY_SEPARATORS = [">", "/", "|", ":", ">>", "->", "»", "//"]

_CLEANUP_PATTERNS = [
    re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE),
    re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.IGNORECASE),
    re.compile(r"<!--[\s\S]*?-->"),
    re.compile(r"<footer[\s\S]*?</footer>", re.IGNORECASE),
    re.compile(r"<header[\s\S]*?</header>", re.IGNORECASE),
    re.compile(r"<nav[\s\S]*?</nav>", re.IGNORECASE),
    re.compile(r"<aside[\s\S]*?</aside>", re.IGNORECASE),
    re.compile(r"<svg[\s\S]*?</svg>", re.IGNORECASE),
    re.compile(r"<img[^>]*>", re.IGNORECASE),
]
_WHITESPACE_RE = re.compile(r"\s{2,}")


def clean_html(html: str) -> str:
    """Strip non-content markup and collapse whitespace."""
    for pattern in _CLEANUP_PATTERNS:
        html = pattern.sub("", html)
    return _WHITESPACE_RE.sub(" ", html).strip()


def detect_login_wall(text: Optional[str]) -> Optional[str]:
    """
    Scan text for a login-wall phrase.

    Returns:
        Language of the first matching phrase, or None
    """
    if not text:
        return None
    text_lower = text.lower()
    for language, phrases in LOGIN_PHRASES.items():
        if any(phrase in text_lower for phrase in phrases):
            return language
    return None


def canonicalize_category(category: Optional[str]) -> Optional[str]:
    """
    Reduce a breadcrumb-like category to its most specific segment.

    "Electronics > Phones > Smartphones" -> "Smartphones". Without a
    separator, strings of more than three words fall back to their last
    word; shorter ones are returned unchanged.
    """
    if not category:
        return None

    for separator in CATEGORY_SEPARATORS:
        if separator in category:
            return category.split(separator)[-1].strip()

    words = category.split(" ")
    if len(words) > 3:
        return words[-1].strip()
    return category


def resolve_price(price: Optional[str], login_wall: bool) -> str:
    """Apply the login-wall price policy."""
    if login_wall or not price or detect_login_wall(price):
        return LOGIN_REQUIRED
    return price


class ProductExtractor:
    """Converts product page HTML into ProductData via the LLM."""

    def __init__(self, llm: LLMService = llm_service, max_html_chars: Optional[int] = None):
        self.llm = llm
        self.max_html_chars = max_html_chars or settings.extraction_max_html_chars

    async def extract(self, url: str, html: Optional[str]) -> Optional[ProductData]:
        """
        Extract product data from a product page.

        Args:
            url: Product page URL
            html: Sanitized page markup

        Returns:
            ProductData when the LLM confirms a product page, else None
        """
        if not html:
            logger.info(f"No HTML content provided for {url}")
            return None

        login_language = detect_login_wall(html)
        if login_language:
            logger.info(f"Login wall detected on {url} ({login_language})")

        prompt = ProductExtractionPrompt(
            url=url,
            login_wall_detected=login_language is not None,
            html=clean_html(html[: self.max_html_chars]),
        )

        try:
            response_text = await self.llm.call_llm(
                prompt=prompt.to_prompt(),
                system_prompt=prompt.to_system_prompt(),
                max_tokens=settings.llm_max_tokens,
            )
        except Exception as e:
            metrics.record_llm_call("extraction", "error")
            logger.error(f"Error extracting data with LLM from {url}: {e}")
            return None

        parsed = parse_json_response(response_text, expected=dict)
        if parsed is None:
            metrics.record_llm_call("extraction", "unparseable")
            logger.warning(f"Unparseable extraction response for {url}")
            return None
        metrics.record_llm_call("extraction", "success")

        return self._build_product(url, parsed, login_language is not None)

    def _build_product(
        self,
        url: str,
        parsed: Dict[str, Any],
        login_wall: bool,
    ) -> Optional[ProductData]:
        if parsed.get("detectedLanguage"):
            logger.debug(f"Detected language for {url}: {parsed['detectedLanguage']}")

        if parsed.get("isProductPage") is not True:
            logger.info(f"Not a product page: {url}")
            return None

        return ProductData(
            url=url,
            title=_as_text(parsed.get("title")),
            price=resolve_price(_as_text(parsed.get("price")), login_wall),
            category=canonicalize_category(_as_text(parsed.get("category"))),
            description=_as_text(parsed.get("description")),
        )


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None

