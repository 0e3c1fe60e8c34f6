"""Product link discovery on rendered category pages.

Candidate links come from DOM heuristics (URL patterns, buy phrases,
price plus image proximity, product data attributes, card-style CSS
selectors), then an LLM prunes them down to likely product pages.
"""

import logging
import re
from typing import Iterable, List, Optional, Set
from urllib.parse import urljoin, urlparse

from playwright.async_api import Page
from selectolax.parser import HTMLParser, Node

from shopcheck import metrics
from shopcheck.ai.json_recovery import parse_json_response
from shopcheck.ai.llm_service import LLMService, llm_service
from shopcheck.ai.prompts import LINK_FILTER_SYSTEM_PROMPT, LinkFilterPrompt
from shopcheck.config import settings

logger = logging.getLogger(__name__)

# Path fragments typical of product pages across the supported storefronts
URL_PATTERNS = [
    "/product/",
    "/products/",
    "/item/",
    "/p/",
    "detail",
    "details",
    "/shop/",
    "/buy/",
    "/kaufen/",
    "/produkt/",
    "/vare/",
    "/butik/",
    "/butikk/",
    "/köp/",
]

BUY_WORDS = [
    "buy",
    "køb",
    "kaufen",
    "köp",
    "handle",
    "legg i handlekurv",
    "legg til i handlekurven",
]

PRODUCT_SELECTORS = [
    ".CardCTA__ProductLink",
    ".CardCTA__Wrapper a",
    ".product-card a",
    ".product a",
    ".product-item a",
    ".product-box a",
    ".card.product a",
    ".product-tile a",
    "a.product-link",
    "a.item-link",
    "a.product-title",
    "a[data-product-id]",
    "a[data-item-id]",
    ".products-grid a",
    ".product-listing a",
    ".product-grid a",
    '[class*="product"] a',
    '[class*="Product"] a',
    '[class*="item"] a',
    '[class*="Item"] a',
    '[class*="card"] a',
    '[class*="Card"] a',
    '[class*="produkt"] a',
    '[class*="Produkt"] a',
    '[class*="butik"] a',
    '[class*="butikk"] a',
    '[class*="vare"] a',
    '[class*="Vare"] a',
    ".grid a",
    '.row a[href]:not([href="#"])',
    ".list a",
]

PRODUCT_DATA_ATTRIBUTES = ["data-product-id", "data-sku", "data-item-id"]

PRICE_RE = re.compile(r"\d+[.,]\d{2}")
PRICE_CLASS_TOKENS = ["price", "Price"]
PRODUCT_CONTAINER_TOKENS = ["product", "Product", "produkt"]


def _closest_with_class(node: Node, tokens: Iterable[str]) -> Optional[Node]:
    """Nearest ancestor-or-self whose class attribute contains any token."""
    current = node
    while current is not None and current.tag != "-undef":
        class_attr = current.attributes.get("class") or ""
        if any(token in class_attr for token in tokens):
            return current
        current = current.parent
    return None


def _has_price(anchor: Node, text: str) -> bool:
    return bool(PRICE_RE.search(text)) or _closest_with_class(anchor, PRICE_CLASS_TOKENS) is not None


def _has_product_image(anchor: Node) -> bool:
    if anchor.css_first("img") is not None:
        return True
    container = _closest_with_class(anchor, PRODUCT_CONTAINER_TOKENS)
    return container is not None and container.css_first("img") is not None


def _has_product_data(anchor: Node) -> bool:
    attributes = anchor.attributes
    if any(name in attributes for name in PRODUCT_DATA_ATTRIBUTES):
        return True
    return attributes.get("data-discover") == "true"


def _selector_matches(tree: HTMLParser) -> Set[int]:
    """Memory ids of every anchor matched by a product selector."""
    matched = set()
    for selector in PRODUCT_SELECTORS:
        try:
            nodes = tree.css(selector)
        except Exception as e:
            logger.debug(f"Skipping selector {selector}: {e}")
            continue
        matched.update(node.mem_id for node in nodes if node.tag == "a")
    return matched


def _base_url(tree: HTMLParser, page_url: str) -> str:
    """Document base for resolving hrefs; honours <base href>."""
    base = tree.css_first("base[href]")
    if base is None:
        return page_url
    return urljoin(page_url, (base.attributes.get("href") or "").strip())


def discover_links(html: Optional[str], page_url: str) -> List[str]:
    """
    Collect candidate product links from rendered markup.

    Args:
        html: Full page markup
        page_url: URL the markup was rendered from; hrefs resolve against
            it, or against its <base href> when the document has one

    Returns:
        Absolute http(s) URLs, deduplicated in first-seen order
    """
    if not html:
        return []

    tree = HTMLParser(html)
    base_url = _base_url(tree, page_url)
    selector_hits = _selector_matches(tree)

    links = []
    seen = set()
    for anchor in tree.css("a[href]"):
        href = (anchor.attributes.get("href") or "").strip()
        if not href:
            continue
        absolute = urljoin(base_url, href)
        href_lower = absolute.lower()
        text = anchor.text(deep=True) or ""
        text_lower = text.lower()

        is_candidate = (
            any(pattern in href_lower for pattern in URL_PATTERNS)
            or any(word in text_lower for word in BUY_WORDS)
            or (_has_price(anchor, text) and _has_product_image(anchor))
            or _has_product_data(anchor)
            or anchor.mem_id in selector_hits
        )
        if not is_candidate:
            continue

        if urlparse(absolute).scheme not in ("http", "https"):
            continue
        if absolute in seen:
            continue
        seen.add(absolute)
        links.append(absolute)

    metrics.links_discovered_total.labels(stage="heuristic").inc(len(links))
    return links


async def discover_links_from_page(page: Page) -> List[str]:
    """Run link discovery against a live browser page."""
    html = await page.content()
    return discover_links(html, page.url)


class ProductDiscovery:
    """Finds product links on a category page and prunes them with the LLM."""

    def __init__(self, llm: LLMService = llm_service):
        self.llm = llm

    async def discover(self, page: Page) -> List[str]:
        links = await discover_links_from_page(page)
        logger.info(f"Found {len(links)} product links on category page")
        return links

    async def filter_links(self, links: List[str], category_url: str) -> List[str]:
        """
        Keep only links the LLM classifies as product pages.

        Args:
            links: Heuristic candidates
            category_url: Category page the links were found on

        Returns:
            Filtered links; the input list when the LLM fails or answers
            with something unparseable
        """
        if not links:
            return []

        prompt = LinkFilterPrompt(category_url=category_url, links=links)
        try:
            response_text = await self.llm.call_llm(
                prompt=prompt.to_prompt(),
                system_prompt=LINK_FILTER_SYSTEM_PROMPT,
                temperature=0.1,
                model=settings.llm_model,
                max_tokens=1000,
            )
        except Exception as e:
            metrics.record_llm_call("link_filter", "error")
            logger.error(f"Error filtering product links with LLM: {e}")
            return links

        filtered = parse_json_response(response_text, expected=list, default=None)
        if filtered is None:
            metrics.record_llm_call("link_filter", "unparseable")
            return links

        metrics.record_llm_call("link_filter", "success")
        filtered = [link for link in filtered if isinstance(link, str)]
        metrics.links_discovered_total.labels(stage="filtered").inc(len(filtered))
        logger.info(f"Filtered down to {len(filtered)} likely product links")
        return filtered

