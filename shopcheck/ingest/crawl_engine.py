"""Retried navigate-and-extract cycle over the stealth browser session.

Each crawl runs as an explicit state machine:

    IDLE -> NAVIGATING -> {VALID, BLOCKED, FAILED}
    BLOCKED|FAILED -> NAVIGATING (retry) | TERMINAL
    VALID -> TERMINAL

A proxy is blacklisted only when the page it served looks like a block.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from playwright.async_api import BrowserContext, Page
from playwright.async_api import Error as PlaywrightError

from shopcheck import metrics
from shopcheck.config import settings
from shopcheck.exceptions import BrowserNotInitializedError, PageBlockedError
from shopcheck.ingest.content_analyzer import detect_block, is_valid_page_source, sanitize_html
from shopcheck.ingest.proxy_manager import ProxyInfo, ProxyPool
from shopcheck.ingest.stealth_browser import BrowserSession

logger = logging.getLogger(__name__)

BLOCK_SNAPSHOT_SCRIPT = """
() => ({
    text: document.body ? document.body.innerText : '',
    title: document.title || '',
})
"""


class CrawlState(str, Enum):
    """States of a single crawl."""

    IDLE = "idle"
    NAVIGATING = "navigating"
    VALID = "valid"
    BLOCKED = "blocked"
    FAILED = "failed"
    TERMINAL = "terminal"


TRANSITIONS = {
    CrawlState.IDLE: {CrawlState.NAVIGATING},
    CrawlState.NAVIGATING: {CrawlState.VALID, CrawlState.BLOCKED, CrawlState.FAILED},
    CrawlState.VALID: {CrawlState.TERMINAL},
    CrawlState.BLOCKED: {CrawlState.NAVIGATING, CrawlState.TERMINAL},
    CrawlState.FAILED: {CrawlState.NAVIGATING, CrawlState.TERMINAL},
    CrawlState.TERMINAL: set(),
}


class InvalidTransitionError(RuntimeError):
    """Raised on a state change the crawl state machine does not allow."""


@dataclass(frozen=True)
class CrawlResult:
    """Outcome of a crawl."""

    is_valid_page: bool = False
    page_source: Optional[str] = None

    def to_dict(self) -> dict:
        return {"isValidPage": self.is_valid_page, "pageSource": self.page_source}


@dataclass
class CrawlAttempt:
    """Record of one navigation attempt."""

    number: int
    proxy_key: Optional[str]
    outcome: CrawlState
    error: Optional[str] = None
    backoff_ms: int = 0


@dataclass
class CrawlTrace:
    """State path and attempts of the most recent crawl."""

    url: str
    states: List[CrawlState] = field(default_factory=lambda: [CrawlState.IDLE])
    attempts: List[CrawlAttempt] = field(default_factory=list)

    @property
    def state(self) -> CrawlState:
        return self.states[-1]

    def transition(self, new_state: CrawlState) -> None:
        if new_state not in TRANSITIONS[self.state]:
            raise InvalidTransitionError(f"{self.state.value} -> {new_state.value}")
        self.states.append(new_state)


def backoff_delay_ms(
    attempt: int,
    base_ms: Optional[int] = None,
    max_ms: Optional[int] = None,
) -> int:
    """
    Delay before retry number `attempt`.

    Returns:
        min(max_ms, base_ms * 2**attempt) in milliseconds
    """
    base_ms = settings.backoff_base_ms if base_ms is None else base_ms
    max_ms = settings.backoff_max_ms if max_ms is None else max_ms
    return min(max_ms, base_ms * (2 ** attempt))


class CrawlEngine:
    """Runs retried crawls against a BrowserSession with proxy rotation."""

    def __init__(
        self,
        session: BrowserSession,
        proxy_pool: ProxyPool,
        timeout_ms: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session = session
        self.proxy_pool = proxy_pool
        self.timeout_ms = timeout_ms or settings.navigation_timeout_ms
        self._sleep = sleep
        self.current_context: Optional[BrowserContext] = None
        self.current_page: Optional[Page] = None
        self.last_trace: Optional[CrawlTrace] = None

    async def crawl(
        self,
        url: str,
        max_retries: Optional[int] = None,
        preserve_context: bool = False,
    ) -> CrawlResult:
        """
        Navigate to a URL and return its sanitized markup.

        Args:
            url: Page to crawl
            max_retries: Maximum attempts (defaults to config)
            preserve_context: Keep the final attempt's page open as
                `current_page` until `release_context()`

        Returns:
            CrawlResult; invalid when every attempt failed

        Raises:
            BrowserNotInitializedError: If no browser session was launched
        """
        if not self.session.is_launched:
            raise BrowserNotInitializedError()

        await self.release_context()

        if max_retries is None:
            max_retries = settings.crawl_max_retries
        max_retries = max(1, max_retries)

        trace = CrawlTrace(url=url)
        self.last_trace = trace
        result = CrawlResult()
        started = time.monotonic()

        for attempt in range(1, max_retries + 1):
            trace.transition(CrawlState.NAVIGATING)
            proxy = self.proxy_pool.select_next()
            if proxy is None and self.proxy_pool.has_proxies():
                logger.warning("No proxy available. Proceeding without proxy.")

            logger.info(
                f"Attempt {attempt}/{max_retries}: Navigating to {url} "
                f"with proxy {proxy.key if proxy else 'none'}"
            )

            outcome, error, result = await self._attempt(
                url,
                proxy,
                result,
                keep_open=preserve_context,
                is_last=attempt == max_retries,
            )

            trace.transition(outcome)
            trace.attempts.append(
                CrawlAttempt(
                    number=attempt,
                    proxy_key=proxy.key if proxy else None,
                    outcome=outcome,
                    error=error,
                )
            )
            metrics.record_crawl_attempt(outcome.value)

            if outcome is CrawlState.VALID:
                break

            if attempt < max_retries:
                delay = backoff_delay_ms(attempt)
                trace.attempts[-1].backoff_ms = delay
                logger.info(f"Waiting {delay}ms before retry...")
                await self._sleep(delay / 1000)
            else:
                logger.warning(f"Max retries ({max_retries}) reached for {url}")

        trace.transition(CrawlState.TERMINAL)
        metrics.crawl_duration_seconds.observe(time.monotonic() - started)
        return result

    async def _attempt(
        self,
        url: str,
        proxy: Optional[ProxyInfo],
        previous: CrawlResult,
        keep_open: bool,
        is_last: bool,
    ) -> tuple[CrawlState, Optional[str], CrawlResult]:
        """Run one navigation; returns (outcome, error, result)."""
        context = None
        page = None
        outcome = CrawlState.FAILED
        error = None
        result = previous
        keepable = True

        try:
            context, page = await self.session.new_page(proxy)
            await page.goto(url, wait_until="networkidle", timeout=self.timeout_ms)

            snapshot = await page.evaluate(BLOCK_SNAPSHOT_SCRIPT) or {}
            indicator = detect_block(snapshot.get("text"), snapshot.get("title"))
            if indicator:
                if proxy:
                    logger.warning(
                        f"Proxy {proxy.key} likely blocked ({indicator}). Blacklisting."
                    )
                    self.proxy_pool.blacklist(proxy)
                    raise PageBlockedError(url, proxy.key)
                logger.info(f"Block indicator '{indicator}' on {url} without proxy")

            page_source = sanitize_html(await page.content())
            result = CrawlResult(
                is_valid_page=is_valid_page_source(page_source),
                page_source=page_source,
            )
            if result.is_valid_page:
                outcome = CrawlState.VALID
            else:
                error = f"page source too short ({len(page_source or '')} chars)"
                logger.info(f"Invalid page for {url}: {error}")

        except PageBlockedError as e:
            outcome = CrawlState.BLOCKED
            error = str(e)
        except (PlaywrightError, asyncio.TimeoutError) as e:
            error = str(e).splitlines()[0] if str(e) else type(e).__name__
            logger.info(f"Error during crawl of {url}: {error}")
        except BaseException:
            keepable = False
            raise
        finally:
            if context is not None:
                keep = keepable and keep_open and (outcome is CrawlState.VALID or is_last)
                if keep:
                    self.current_context = context
                    self.current_page = page
                else:
                    await self._close_context(context)

        return outcome, error, result

    async def release_context(self) -> None:
        """Close a context kept open by a preserving crawl."""
        context = self.current_context
        self.current_context = None
        self.current_page = None
        if context is not None:
            await self._close_context(context)

    async def _close_context(self, context: BrowserContext) -> None:
        try:
            await context.close()
        except Exception as e:
            logger.debug(f"Error closing browser context: {e}")
