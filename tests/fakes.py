"""Fakes for browser-free tests.

The fakes mimic the slice of the Playwright API the engine touches:
contexts that can be closed, pages that navigate, evaluate the block
snapshot and return their markup.
"""

from typing import Dict, List, Optional, Union

from shopcheck.ingest.proxy_manager import ProxyInfo


def page_html(body: str, padding: int = 1200) -> str:
    """Full document whose sanitized body comfortably exceeds the validity threshold."""
    filler = "lorem ipsum " * (padding // 12 + 1)
    return f"<html><head><title>t</title></head><body>{body}<p>{filler}</p></body></html>"


class FakeContext:
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


class FakePage:
    """Page serving markup from a URL -> html (or exception) mapping."""

    def __init__(self, site: Dict[str, Union[str, Exception]], snapshot: Optional[dict] = None):
        self.site = site
        self.snapshot = snapshot or {"text": "", "title": ""}
        self.url = "about:blank"
        self.goto_calls: List[dict] = []

    async def goto(self, url, wait_until=None, timeout=None):
        self.goto_calls.append({"url": url, "wait_until": wait_until, "timeout": timeout})
        outcome = self.site.get(url)
        if isinstance(outcome, Exception):
            raise outcome
        self.url = url

    async def evaluate(self, script):
        return self.snapshot

    async def content(self):
        return self.site.get(self.url) or ""


class FakeSession:
    """BrowserSession stand-in handing out FakePages."""

    def __init__(self, site: Optional[Dict[str, Union[str, Exception]]] = None, snapshots=None):
        self.site = site or {}
        self.snapshots = list(snapshots or [])
        self.launched = False
        self.launch_proxies: List[Optional[ProxyInfo]] = []
        self.page_proxies: List[Optional[ProxyInfo]] = []
        self.contexts: List[FakeContext] = []
        self.pages: List[FakePage] = []
        self.close_calls = 0

    @property
    def is_launched(self) -> bool:
        return self.launched

    async def launch(self, proxy=None):
        self.launched = True
        self.launch_proxies.append(proxy)

    async def new_page(self, proxy=None):
        snapshot = self.snapshots.pop(0) if self.snapshots else None
        context = FakeContext()
        page = FakePage(self.site, snapshot)
        self.page_proxies.append(proxy)
        self.contexts.append(context)
        self.pages.append(page)
        return context, page

    async def close(self):
        self.launched = False
        self.close_calls += 1

    def visits(self, url: str) -> int:
        return sum(1 for page in self.pages for call in page.goto_calls if call["url"] == url)


class SleepRecorder:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

