"""Prometheus metrics for the crawl and reconciliation engine."""

from prometheus_client import Counter, Histogram, Info

# Application info
app_info = Info("shopcheck", "Shopcheck application info")
app_info.info({"version": "0.1.0", "name": "shopcheck"})

# Crawl metrics
crawl_attempts_total = Counter(
    "crawl_attempts_total",
    "Total number of page navigation attempts",
    ["outcome"],  # valid, blocked, failed
)

crawl_duration_seconds = Histogram(
    "crawl_duration_seconds",
    "Time spent in a full crawl including retries",
    buckets=[1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
)

# Proxy metrics
proxy_blacklisted_total = Counter(
    "proxy_blacklisted_total",
    "Total number of proxies blacklisted after block detection",
)

proxy_exhausted_total = Counter(
    "proxy_exhausted_total",
    "Selections that found no usable proxy",
)

# LLM metrics
llm_calls_total = Counter(
    "llm_calls_total",
    "Total number of LLM calls",
    ["purpose", "status"],
)

# Product metrics
products_processed_total = Counter(
    "products_processed_total",
    "Product pages processed during category crawls",
    ["outcome"],  # extracted, not_product, unreachable
)

links_discovered_total = Counter(
    "links_discovered_total",
    "Product link candidates",
    ["stage"],  # heuristic, filtered
)

# Reconciliation metrics
reconciliations_total = Counter(
    "reconciliations_total",
    "Reference file reconciliation runs",
    ["status"],
)


def record_crawl_attempt(outcome: str) -> None:
    """Record the outcome of one navigation attempt."""
    crawl_attempts_total.labels(outcome=outcome).inc()


def record_llm_call(purpose: str, status: str) -> None:
    """Record an LLM call."""
    llm_calls_total.labels(purpose=purpose, status=status).inc()


def record_product(outcome: str) -> None:
    """Record a processed product page."""
    products_processed_total.labels(outcome=outcome).inc()
