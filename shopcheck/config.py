"""Application configuration using Pydantic settings."""

import logging

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings."""

    # App Settings
    debug: bool = False
    log_level: str = "INFO"

    # ==========================================================================
    # Browser Settings
    # ==========================================================================
    browser_headless: bool = True
    browser_executable_path: str = ""  # Empty = Playwright's bundled Chromium
    navigation_timeout_ms: int = 60000

    # ==========================================================================
    # Crawl Settings
    # ==========================================================================
    crawl_max_retries: int = 3
    backoff_base_ms: int = 1000
    backoff_max_ms: int = 30000
    min_page_source_length: int = 1000  # Shorter sanitized pages are never valid
    product_crawl_attempts: int = 3  # Outer attempts per product on unexpected errors
    product_retry_delay_seconds: float = 2.0  # Multiplied by the attempt number
    product_delay_seconds: float = 2.0  # Pacing between product pages

    # ==========================================================================
    # Proxy Settings
    # ==========================================================================
    # Comma-separated "username:password@host:port" entries
    proxy_list: str = ""
    # Single proxy, kept for plain provider setups (e.g. one residential gateway)
    proxy_host: str = "pr.oxylabs.io"
    proxy_port: int = 7777
    proxy_username: str = ""
    proxy_password: str = ""
    proxy_blacklist_minutes: int = 30
    proxy_max_requests: int = 50  # Rotate after this many selections

    # ==========================================================================
    # AI & LLM Configuration
    # ==========================================================================
    openai_api_key: str = ""
    llm_model: str = "gpt-4o"  # Link filtering and product extraction
    llm_comparison_model: str = "gpt-4-turbo"  # Spreadsheet reconciliation
    llm_temperature: float = 0.1
    llm_max_tokens: int = 1000
    llm_comparison_max_tokens: int = 4000
    llm_timeout_seconds: float = 60.0

    # LLM Caching
    llm_cache_enabled: bool = False
    llm_cache_ttl_seconds: int = 3600
    redis_url: str = "redis://localhost:6379/0"

    # Cost Tracking
    track_llm_costs: bool = True
    llm_cost_limit_per_day: float = 100.0

    # ==========================================================================
    # Extraction Settings
    # ==========================================================================
    extraction_max_html_chars: int = 30000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def proxy_entries(self) -> list[dict]:
        """
        Collect proxy definitions from settings.

        Entries missing any of host, port, username or password are dropped.

        Returns:
            List of dicts with host, port, username and password keys
        """
        raw_entries = []

        for item in self.proxy_list.split(","):
            item = item.strip()
            if not item:
                continue
            credentials, _, address = item.rpartition("@")
            username, _, password = credentials.partition(":")
            host, _, port = address.rpartition(":")
            raw_entries.append({
                "host": host,
                "port": port,
                "username": username,
                "password": password,
            })

        if self.proxy_username or self.proxy_password:
            raw_entries.append({
                "host": self.proxy_host,
                "port": str(self.proxy_port),
                "username": self.proxy_username,
                "password": self.proxy_password,
            })

        entries = []
        for entry in raw_entries:
            if not all(entry.values()) or not str(entry["port"]).isdigit():
                logger.warning(
                    f"Ignoring incomplete proxy entry for host '{entry['host'] or '?'}'"
                )
                continue
            entry["port"] = int(entry["port"])
            entries.append(entry)

        return entries


settings = Settings()
