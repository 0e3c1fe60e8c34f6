"""End-to-end flows composed from ScraperEngine calls."""

import logging
from typing import Any, Dict, Optional

from shopcheck.ingest.scraper import ScraperEngine
from shopcheck.reconcile.export import export_products_workbook

logger = logging.getLogger(__name__)


async def scrape_and_reconcile(
    category_url: str,
    file_url: str,
    timeout_ms: Optional[int] = None,
    is_test_crawl: bool = False,
    engine: Optional[ScraperEngine] = None,
) -> Dict[str, Any]:
    """
    Crawl a category and reconcile its products against a reference file.

    Args:
        category_url: Category listing URL
        file_url: Reference .xlsx/.xls/.csv location
        timeout_ms: Navigation timeout
        is_test_crawl: Keep the browser of a caller-supplied engine open afterwards
        engine: Scraper to use (a fresh one by default, always closed here)

    Returns:
        Summary with the product list and reconciliation outcome
    """
    owns_engine = engine is None
    engine = engine or ScraperEngine()
    await engine.initiate(timeout_ms=timeout_ms, is_link_test_mode=is_test_crawl)

    try:
        result = await engine.crawl_products_from_category(category_url)
    finally:
        # A locally built engine has no other owner left to close it
        if owns_engine or not is_test_crawl:
            await engine.close()

    products = [product.to_summary() for product in result.products]
    processed = await engine.process_products_and_file(file_url, products)

    logger.info(
        f"Scraped {len(products)} products from {category_url}; "
        f"file status {processed.file_processing_status}"
    )
    return {
        "success": True,
        "categoryUrl": category_url,
        "productsFound": len(result.products),
        "products": products,
        "processedFileInfo": processed.to_dict(),
    }


async def scrape_page(
    url: str,
    timeout_ms: Optional[int] = None,
    engine: Optional[ScraperEngine] = None,
) -> Dict[str, Any]:
    """Crawl one page and return its sanitized markup when valid."""
    engine = engine or ScraperEngine()
    await engine.initiate(timeout_ms=timeout_ms)
    try:
        result = await engine.crawl(url)
    finally:
        await engine.close()

    return {
        "success": result.is_valid_page,
        "url": url,
        "content": result.page_source if result.is_valid_page else None,
    }


async def scrape_category_workbook(
    category_url: str,
    timeout_ms: Optional[int] = None,
    engine: Optional[ScraperEngine] = None,
) -> bytes:
    """Crawl a category and export its products as an .xlsx workbook."""
    engine = engine or ScraperEngine()
    await engine.initiate(timeout_ms=timeout_ms)
    try:
        result = await engine.crawl_products_from_category(category_url)
    finally:
        await engine.close()

    return export_products_workbook([product.to_summary() for product in result.products])
