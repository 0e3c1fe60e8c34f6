"""Scraper facade: category crawl, product extraction and reconciliation."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from shopcheck import metrics
from shopcheck.ai.llm_service import LLMService, llm_service
from shopcheck.ai.product_extractor import ProductExtractor
from shopcheck.config import settings
from shopcheck.exceptions import BrowserNotInitializedError
from shopcheck.ingest.crawl_engine import CrawlEngine, CrawlResult
from shopcheck.ingest.link_discovery import ProductDiscovery
from shopcheck.ingest.proxy_manager import ProxyPool
from shopcheck.ingest.stealth_browser import BrowserSession
from shopcheck.logging_config import get_logger
from shopcheck.models import CategoryCrawlResult, ProductCrawl
from shopcheck.reconcile.engine import FileProcessingResult, ReconciliationEngine

logger = logging.getLogger(__name__)

HTML_SAMPLE_CHARS = 500


class ScraperEngine:
    """
    Drives one browser session through category and product crawls.

    Lifecycle: `initiate()` launches the browser, any number of crawls
    follow, `close()` tears everything down. A new `initiate()` replaces
    the previous session.
    """

    def __init__(
        self,
        proxy_pool: Optional[ProxyPool] = None,
        session: Optional[BrowserSession] = None,
        llm: LLMService = llm_service,
        discovery: Optional[ProductDiscovery] = None,
        extractor: Optional[ProductExtractor] = None,
        reconciler: Optional[ReconciliationEngine] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.proxy_pool = proxy_pool or ProxyPool()
        self.session = session or BrowserSession()
        self.discovery = discovery or ProductDiscovery(llm=llm)
        self.extractor = extractor or ProductExtractor(llm=llm)
        self.reconciler = reconciler or ReconciliationEngine(llm=llm)
        self._sleep = sleep
        self.crawl_engine = CrawlEngine(self.session, self.proxy_pool, sleep=sleep)
        self.is_link_test_mode = False

    async def initiate(
        self,
        timeout_ms: Optional[int] = None,
        is_link_test_mode: bool = False,
    ) -> None:
        """
        Launch the browser for a crawl session.

        Args:
            timeout_ms: Navigation timeout (defaults to config)
            is_link_test_mode: Session only used to test link crawling
        """
        if self.session.is_launched:
            logger.info("Closing previous browser session before re-initiating")
            await self.crawl_engine.release_context()
            await self.session.close()

        self.crawl_engine.timeout_ms = timeout_ms or settings.navigation_timeout_ms
        self.is_link_test_mode = is_link_test_mode
        logger.info(f"Scraper initialized with is_link_test_mode = {is_link_test_mode}")

        proxy = self.proxy_pool.select_next()
        await self.session.launch(proxy)

    async def crawl(
        self,
        url: str,
        max_retries: Optional[int] = None,
        preserve_context: bool = False,
    ) -> CrawlResult:
        """Crawl a single URL with retries; see CrawlEngine.crawl."""
        return await self.crawl_engine.crawl(
            url,
            max_retries=max_retries,
            preserve_context=preserve_context,
        )

    async def crawl_products_from_category(self, category_url: str) -> CategoryCrawlResult:
        """
        Crawl a category page, then every product page linked from it.

        Args:
            category_url: Category listing URL

        Returns:
            CategoryCrawlResult with one entry per filtered product link

        Raises:
            BrowserNotInitializedError: If `initiate()` was not called
        """
        log = get_logger(__name__, category_url=category_url)
        log.info(f"Starting to crawl category page: {category_url}")

        if self.is_link_test_mode:
            log.warning(
                "Attempting to crawl products while in link test mode. Leaving link test mode."
            )
            self.is_link_test_mode = False

        category_result = await self.crawl(category_url, preserve_context=True)
        page = self.crawl_engine.current_page
        debug_info = self._build_debug_info(category_url, category_result, page is not None)

        try:
            if not category_result.is_valid_page or not category_result.page_source:
                log.error("Category page is not valid - marked as invalid during crawl")
                return CategoryCrawlResult(category_html=None, debug_info=debug_info)

            if page is None:
                log.error("Category page is gone - browser context may have been closed")
                return CategoryCrawlResult(category_html=None, debug_info=debug_info)

            candidates = await self.discovery.discover(page)
        finally:
            await self.crawl_engine.release_context()

        product_links = await self.discovery.filter_links(candidates, category_url)

        products: List[ProductCrawl] = []
        for index, product_url in enumerate(product_links, start=1):
            log.info(f"Crawling product {index}/{len(product_links)}: {product_url}")
            try:
                products.append(await self._crawl_product(product_url))
            finally:
                await self._sleep(settings.product_delay_seconds)

        return CategoryCrawlResult(
            category_html=category_result.page_source,
            products=products,
            debug_info=debug_info,
        )

    async def _crawl_product(self, product_url: str) -> ProductCrawl:
        """Crawl and extract one product; failures yield an empty entry."""
        attempts = settings.product_crawl_attempts
        result: Optional[CrawlResult] = None

        for attempt in range(1, attempts + 1):
            try:
                result = await self.crawl(product_url)
                break
            except BrowserNotInitializedError:
                raise
            except Exception as e:
                logger.error(f"Attempt {attempt}/{attempts} failed for {product_url}: {e}")
                if attempt < attempts:
                    delay = settings.product_retry_delay_seconds * attempt
                    logger.info(f"Waiting {delay}s before retry...")
                    await self._sleep(delay)

        if result is None:
            logger.warning(f"All {attempts} attempts failed for {product_url}, moving on")
            metrics.record_product("unreachable")
            return ProductCrawl(url=product_url)

        if not result.is_valid_page or not result.page_source:
            logger.info(f"Invalid page or empty content for {product_url}")
            metrics.record_product("unreachable")
            return ProductCrawl(url=product_url)

        try:
            data = await self.extractor.extract(product_url, result.page_source)
        except Exception as e:
            logger.error(f"Error extracting data from {product_url}: {e}")
            data = None

        metrics.record_product("extracted" if data else "not_product")
        return ProductCrawl(url=product_url, html=result.page_source, data=data)

    def _build_debug_info(
        self,
        category_url: str,
        result: CrawlResult,
        page_exists: bool,
    ) -> Dict[str, Any]:
        page_source = result.page_source
        return {
            "categoryLink": category_url,
            "isValidPage": result.is_valid_page,
            "hasPageSource": bool(page_source),
            "pageExists": page_exists,
            "pageSourceLength": len(page_source) if page_source else 0,
            "htmlSample": page_source[:HTML_SAMPLE_CHARS] if page_source else None,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def process_products_and_file(
        self,
        file_url: str,
        products: List[Dict[str, Any]],
    ) -> FileProcessingResult:
        """Reconcile product summaries against a reference file."""
        return await self.reconciler.process_products_and_file(file_url, products)

    async def close(self) -> None:
        """Release the page, close the browser and reset proxy counters."""
        await self.crawl_engine.release_context()
        await self.session.close()
        self.proxy_pool.reset_counters()
        self.is_link_test_mode = False
        logger.info("Scraper closed")
