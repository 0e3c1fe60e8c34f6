"""Stealth browser session on top of Playwright.

Owns one Chromium process per initiate/close bracket and hands out
isolated, fingerprint-randomized pages with request filtering installed.
"""

import asyncio
import logging
from typing import Optional, Tuple

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Route, async_playwright

from shopcheck.config import settings
from shopcheck.exceptions import BrowserNotInitializedError
from shopcheck.ingest.fingerprint_randomizer import (
    EvasionProfile,
    FingerprintRandomizer,
    fingerprint_randomizer,
)
from shopcheck.ingest.header_builder import HeaderBuilder, classify_request, header_builder
from shopcheck.ingest.proxy_manager import ProxyInfo

logger = logging.getLogger(__name__)

# Sandboxing is off so Chromium runs inside unprivileged containers
LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-features=site-per-process",
    "--disable-web-security",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-extensions",
    "--js-flags=--max-old-space-size=256",
]


class BrowserSession:
    """
    Wraps a single Playwright Chromium instance.

    Features:
    - Hardened launch flags, optional proxy with out-of-band credentials
    - One isolated context per navigation
    - Per-page evasion profile (user agent, navigator and screen overrides)
    - Request interception dropping heavy assets and trackers
    """

    def __init__(
        self,
        headless: Optional[bool] = None,
        executable_path: Optional[str] = None,
        randomizer: FingerprintRandomizer = fingerprint_randomizer,
        headers: HeaderBuilder = header_builder,
    ):
        self.headless = settings.browser_headless if headless is None else headless
        self.executable_path = executable_path or settings.browser_executable_path or None
        self._randomizer = randomizer
        self._headers = headers
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._launch_lock = asyncio.Lock()

    @property
    def is_launched(self) -> bool:
        """Whether a browser process is open."""
        return self._browser is not None

    async def launch(self, proxy: Optional[ProxyInfo] = None) -> Browser:
        """
        Start the browser, or reuse the running one.

        Args:
            proxy: Optional proxy to route the whole browser through

        Returns:
            Playwright Browser
        """
        async with self._launch_lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser

            if self._playwright is None:
                self._playwright = await async_playwright().start()

            launch_options = {
                "headless": self.headless,
                "args": list(LAUNCH_ARGS),
            }
            if self.executable_path:
                launch_options["executable_path"] = self.executable_path
            if proxy:
                launch_options["proxy"] = proxy.playwright_config
                logger.info(f"Launching browser through proxy {proxy.key}")
            else:
                logger.info("Launching browser without proxy")

            self._browser = await self._playwright.chromium.launch(**launch_options)
            return self._browser

    async def new_page(self, proxy: Optional[ProxyInfo] = None) -> Tuple[BrowserContext, Page]:
        """
        Open an isolated context and page ready for navigation.

        Args:
            proxy: Proxy whose credentials authenticate this context

        Returns:
            (context, page) tuple; the caller owns closing the context
        """
        if self._browser is None:
            raise BrowserNotInitializedError()

        profile = self._randomizer.get_random_profile()
        context_options = self._randomizer.get_context_options(profile)
        if proxy:
            context_options["proxy"] = proxy.playwright_config

        context = await self._browser.new_context(**context_options)
        try:
            page = await context.new_page()
            await self.apply_evasion_profile(page, profile)
            await self.install_request_filter(page)
        except Exception:
            await context.close()
            raise

        return context, page

    async def apply_evasion_profile(
        self,
        page: Page,
        profile: Optional[EvasionProfile] = None,
    ) -> EvasionProfile:
        """
        Apply fingerprint overrides to a page before it navigates.

        Args:
            page: Playwright page object
            profile: Profile to apply (random if None)

        Returns:
            The applied profile
        """
        if profile is None:
            profile = self._randomizer.get_random_profile()

        await page.set_extra_http_headers({"User-Agent": profile.user_agent})
        await page.add_init_script(profile.to_init_script())
        logger.debug(f"Evasion profile applied (UA: {profile.user_agent[:50]}...)")
        return profile

    async def install_request_filter(self, page: Page) -> None:
        """Intercept every request on the page and route it by type."""

        async def handle_route(route: Route) -> None:
            request = route.request
            action = classify_request(request.resource_type, request.url)
            try:
                if action == "abort":
                    await route.abort()
                elif action == "headers":
                    headers = self._headers.build_request_headers(
                        request.resource_type, request.url, request.headers
                    )
                    await route.continue_(headers=headers)
                else:
                    await route.continue_()
            except Exception as e:
                # Route already handled or page gone
                logger.debug(f"Request routing failed for {request.url[:80]}: {e}")

        await page.route("**/*", handle_route)

    async def close(self) -> None:
        """Close the browser and stop Playwright. Safe when nothing is open."""
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None

        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")

        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as e:
                logger.warning(f"Error stopping Playwright: {e}")
