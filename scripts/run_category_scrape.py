#!/usr/bin/env python3
"""
Crawl a category page from the command line.

Discovers product links on the category page, crawls and extracts every
product, and optionally reconciles the results against a reference
spreadsheet (--file-url) and/or writes them to an .xlsx workbook (--export).

Examples:
    python scripts/run_category_scrape.py https://shop.example/c/phones
    python scripts/run_category_scrape.py https://shop.example/c/phones \\
        --file-url https://files.example/reference.xlsx --export products.xlsx
"""

import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shopcheck.ai.llm_service import llm_service
from shopcheck.ingest.scraper import ScraperEngine
from shopcheck.logging_config import setup_logging
from shopcheck.reconcile.export import export_products_workbook


async def run_category_scrape(
    category_url: str,
    file_url: str | None = None,
    export_path: str | None = None,
    timeout_ms: int | None = None,
) -> int:
    """Run one category crawl; returns a process exit code."""
    engine = ScraperEngine()
    await engine.initiate(timeout_ms=timeout_ms)
    try:
        result = await engine.crawl_products_from_category(category_url)
    finally:
        await engine.close()

    products = [product.to_summary() for product in result.products]
    extracted = sum(1 for product in products if product["data"])
    print(f"Category valid: {result.debug_info.get('isValidPage')}")
    print(f"Products crawled: {len(products)} ({extracted} with data)")
    for product in products:
        title = (product["data"] or {}).get("title") or "-"
        price = (product["data"] or {}).get("price") or "-"
        print(f"  {product['url']}\n    {title} | {price}")

    if export_path:
        Path(export_path).write_bytes(export_products_workbook(products))
        print(f"Workbook written to {export_path}")

    exit_code = 0
    if file_url:
        processed = await engine.process_products_and_file(file_url, products)
        print(json.dumps(processed.to_dict().get("comparisonResults"), indent=2, ensure_ascii=False))
        if not processed.success:
            print(f"Error: {processed.error}")
            exit_code = 1

    await llm_service.close()
    return exit_code


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Crawl a category page and extract its products")
    parser.add_argument("category_url", help="Category page URL")
    parser.add_argument(
        "--file-url",
        default=None,
        help="Reference .xlsx/.xls/.csv URL to reconcile against",
    )
    parser.add_argument(
        "--export",
        default=None,
        help="Write the products to this .xlsx path",
    )
    parser.add_argument(
        "--timeout-ms",
        type=int,
        default=None,
        help="Navigation timeout in milliseconds (default: from settings)",
    )

    args = parser.parse_args()

    setup_logging()
    sys.exit(asyncio.run(run_category_scrape(
        category_url=args.category_url,
        file_url=args.file_url,
        export_path=args.export,
        timeout_ms=args.timeout_ms,
    )))
