"""Proxy pool with round-robin rotation, blacklisting and request rollover."""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from shopcheck import metrics
from shopcheck.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProxyInfo:
    """Proxy credentials loaded from configuration."""

    host: str
    port: int
    username: str
    password: str

    @property
    def key(self) -> str:
        """Identity key used for blacklist and request accounting."""
        return f"{self.username}@{self.host}:{self.port}"

    @property
    def server(self) -> str:
        """Proxy server address without credentials."""
        return f"http://{self.host}:{self.port}"

    @property
    def playwright_config(self) -> dict:
        """Get proxy config for Playwright (credentials out-of-band)."""
        return {
            "server": self.server,
            "username": self.username,
            "password": self.password,
        }


@dataclass
class ProxyState:
    """Mutable rotation state for one proxy."""

    blacklisted_until: Optional[float] = None
    request_count: int = 0


class ProxyPool:
    """
    Rotating proxy pool.

    Selection walks the pool in load order, skipping proxies that are
    blacklisted or that just hit the per-proxy request ceiling. State is
    per-instance and every mutation happens under a lock.
    """

    def __init__(
        self,
        proxies: Optional[List[ProxyInfo]] = None,
        blacklist_seconds: Optional[float] = None,
        max_requests: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the pool.

        Args:
            proxies: Proxies in rotation order (defaults to configured proxies)
            blacklist_seconds: Cool-down after a block (defaults to config)
            max_requests: Selections before a proxy is rolled over (defaults to config)
            clock: Time source returning seconds since the epoch
        """
        if proxies is None:
            proxies = [ProxyInfo(**entry) for entry in settings.proxy_entries()]
        self._proxies: List[ProxyInfo] = list(proxies)
        self._blacklist_seconds = (
            blacklist_seconds
            if blacklist_seconds is not None
            else settings.proxy_blacklist_minutes * 60
        )
        self._max_requests = max_requests or settings.proxy_max_requests
        self._clock = clock
        self._cursor = -1
        self._states: Dict[str, ProxyState] = {}
        self._lock = threading.RLock()

        if not self._proxies:
            logger.warning("No valid proxies configured. Falling back to no proxy.")
        else:
            logger.info(f"Loaded {len(self._proxies)} proxies")

    def _state(self, proxy: ProxyInfo) -> ProxyState:
        return self._states.setdefault(proxy.key, ProxyState())

    def is_blacklisted(self, proxy: ProxyInfo) -> bool:
        """
        Check whether a proxy is blacklisted.

        An entry past its deadline is cleared here, together with the
        proxy's request counter.
        """
        with self._lock:
            state = self._states.get(proxy.key)
            if state is None or state.blacklisted_until is None:
                return False

            if self._clock() > state.blacklisted_until:
                state.blacklisted_until = None
                state.request_count = 0
                logger.info(f"Proxy {proxy.key} cool-down expired")
                return False
            return True

    def blacklist(self, proxy: ProxyInfo) -> None:
        """Exclude a proxy from selection for the cool-down window."""
        with self._lock:
            self._state(proxy).blacklisted_until = self._clock() + self._blacklist_seconds
        metrics.proxy_blacklisted_total.inc()
        logger.warning(
            f"Blacklisted proxy {proxy.key} for {self._blacklist_seconds / 60:g} minutes"
        )

    def select_next(self) -> Optional[ProxyInfo]:
        """
        Get next proxy in rotation.

        Returns:
            ProxyInfo if one is usable, None when every proxy is blacklisted
            or rolled over during this sweep
        """
        with self._lock:
            if not self._proxies:
                return None

            for _ in range(len(self._proxies)):
                self._cursor = (self._cursor + 1) % len(self._proxies)
                proxy = self._proxies[self._cursor]

                if self.is_blacklisted(proxy):
                    continue

                state = self._state(proxy)
                state.request_count += 1
                if state.request_count >= self._max_requests:
                    logger.info(
                        f"Proxy {proxy.key} reached {self._max_requests} requests. Rotating."
                    )
                    state.request_count = 0
                    continue

                logger.debug(f"Selected proxy: {proxy.key}")
                return proxy

        metrics.proxy_exhausted_total.inc()
        logger.warning("No available proxies (all blacklisted or exhausted).")
        return None

    def request_count(self, proxy: ProxyInfo) -> int:
        """Get the current request count for a proxy."""
        with self._lock:
            state = self._states.get(proxy.key)
            return state.request_count if state else 0

    def reset_counters(self) -> None:
        """Reset request counters, keeping blacklist deadlines."""
        with self._lock:
            for state in self._states.values():
                state.request_count = 0

    @property
    def proxy_count(self) -> int:
        """Get number of configured proxies."""
        return len(self._proxies)

    def has_proxies(self) -> bool:
        """Check if any proxies are configured."""
        return len(self._proxies) > 0
