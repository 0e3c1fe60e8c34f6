"""Records passed between the crawl, extraction and reconciliation stages."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

LOGIN_REQUIRED = "Login required"


@dataclass
class ProductData:
    """Structured product record extracted from a product page."""

    url: str
    title: Optional[str] = None
    price: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "price": self.price,
            "category": self.category,
            "description": self.description,
        }


@dataclass
class ProductCrawl:
    """One crawled product link. Unreachable products keep html/data None."""

    url: str
    html: Optional[str] = None
    data: Optional[ProductData] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "html": self.html,
            "data": self.data.to_dict() if self.data else None,
        }

    def to_summary(self) -> Dict[str, Any]:
        """Compact form handed to reconciliation and callers."""
        return {
            "url": self.url,
            "hasHtml": bool(self.html),
            "data": self.data.to_dict() if self.data else None,
        }


@dataclass
class CategoryCrawlResult:
    """Category page markup plus every product crawled from it."""

    category_html: Optional[str]
    products: List[ProductCrawl] = field(default_factory=list)
    debug_info: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "categoryHtml": self.category_html,
            "products": [product.to_dict() for product in self.products],
            "debugInfo": self.debug_info,
        }
