"""Centralized prompt templates for LLM interactions."""

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


LINK_FILTER_SYSTEM_PROMPT = (
    "You are an expert at analyzing URLs and identifying product pages across diverse "
    "e-commerce sites. Respond with raw JSON array only, no markdown formatting."
)

RECONCILIATION_SYSTEM_PROMPT = (
    "You are a data comparison assistant that produces precise JSON outputs. Your responses "
    "must be valid JSON objects with the structure specified by the user."
)


class LinkFilterPrompt(BaseModel):
    """Prompt schema for pruning heuristic product-link candidates."""

    category_url: str
    links: List[str]

    def to_prompt(self) -> str:
        """Convert to prompt text."""
        links_text = "\n".join(f"- {link}" for link in self.links)

        return f"""I have collected the following URLs from this category page: {self.category_url}

Please analyze these URLs and identify which ones are most likely to be product pages.

Important: Product pages can have many different URL structures, and they don't necessarily
contain obvious identifiers like '/product/' or '/p/'. Focus on analyzing the overall URL pattern
and path structure relative to the other URLs.

Criteria to consider:
1. URLs that appear to lead to individual items rather than collections
2. URLs that have unique identifiers, slugs, or apparent product names
3. URLs that differ from the category structure but follow a consistent pattern
4. Exclude obvious non-product pages (login, account, cart, wishlist, category filters, etc.)

Here are the URLs:
{links_text}

Please return a JSON array containing only the filtered URLs that are likely product pages, like this:
["url1", "url2", "url3"]

Return only the raw JSON array, no additional text or formatting."""


class ProductExtractionPrompt(BaseModel):
    """Prompt schema for product data extraction from cleaned HTML."""

    url: str
    login_wall_detected: bool
    html: str

    def to_system_prompt(self) -> str:
        return (
            "You extract product information from e-commerce HTML. Pages may be in English, "
            "German, Swedish, Danish, or Norwegian. Return a single JSON object and nothing else."
        )

    def to_prompt(self) -> str:
        """Convert to prompt text."""
        return f"""Extract product information from this HTML content (page may be in English, German, Swedish, Danish, or Norwegian).

URL: {self.url}
Login wall detected: {str(self.login_wall_detected).lower()}

EXTRACT PRECISELY:
- TITLE: Main product name from h1/h2 elements or prominent text
- PRICE: Look for currency symbols (€, $, £, kr), including login-required notices
- CATEGORY: From breadcrumbs or navigation paths
- DESCRIPTION: All relevant product details, specs, and features

Return JSON only:
{{"isProductPage": true/false, "title": "", "price": "", "category": "", "description": "", "detectedLanguage": ""}}

HTML:
{self.html}"""


class ReconciliationPrompt(BaseModel):
    """Prompt schema for comparing reference rows against scraped records."""

    reference_rows: List[Dict[str, Any]]
    scraped_records: List[Optional[Dict[str, Any]]]

    def to_prompt(self) -> str:
        """Convert to prompt text."""
        return f"""I have two sets of product data that need to be compared:

1. Excel File Data (original data): {json.dumps(self.reference_rows, ensure_ascii=False)}

2. Scraped Website Data: {json.dumps(self.scraped_records, ensure_ascii=False)}

Compare these datasets and provide a comprehensive analysis in the following JSON format:

{json.dumps(RECONCILIATION_EXAMPLE, indent=2)}

Return ONLY the JSON structure with no additional text or explanation. Ensure all relevant differences are captured in the appropriate fields."""


RECONCILIATION_EXAMPLE = {
    "matching_products": [
        {
            "Product URL": "url_here",
            "Original Price": "price_from_excel",
            "Scraped Price": "price_from_scrape",
            "Price Difference (Absolute)": "absolute_diff",
            "Price Difference (Percentage)": "percentage_diff",
            "Description Difference": "yes_or_no_with_details",
            "Category Difference": "yes_or_no_with_details",
        }
    ],
    "products_only_in_excel": [
        {"Product URL": "url_here", "Title": "title_here"}
    ],
    "products_only_in_scraped_data": [
        {"Product URL": "url_here", "Title": "title_here"}
    ],
}
