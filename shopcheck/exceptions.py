"""Exception types raised by the crawl and reconciliation engine."""


class ShopcheckError(Exception):
    """Base class for all engine errors."""


class BrowserNotInitializedError(ShopcheckError):
    """A crawl was requested before the browser was launched."""

    def __init__(self):
        super().__init__("Browser not initialized; call initiate() first")


class PageBlockedError(ShopcheckError):
    """Page looks like a bot challenge while routed through a proxy."""

    def __init__(self, url: str, proxy_key: str):
        self.url = url
        self.proxy_key = proxy_key
        super().__init__(f"Proxy {proxy_key} blocked on {url}")


class UnsupportedFileTypeError(ShopcheckError):
    """Reference file is neither a workbook nor CSV."""

    def __init__(self, file_url: str):
        self.file_url = file_url
        super().__init__(
            "Unsupported file type. Only Excel (.xlsx, .xls) and CSV (.csv) files are supported."
        )


class FileFetchError(ShopcheckError):
    """Reference file could not be downloaded."""

    def __init__(self, file_url: str, status_code: int | None, reason: str):
        self.file_url = file_url
        self.status_code = status_code
        self.reason = reason
        if status_code is not None:
            super().__init__(f"Failed to fetch file: {status_code} {reason}")
        else:
            super().__init__(f"Failed to fetch file: {reason}")


class LLMCostLimitError(ShopcheckError):
    """Daily LLM spend ceiling reached."""
