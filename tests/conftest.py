"""Shared fixtures."""

import pytest

from fakes import FakeClock, SleepRecorder
from shopcheck.ingest.proxy_manager import ProxyInfo


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def proxies():
    return [
        ProxyInfo(host="10.0.0.1", port=8000, username="alice", password="pw1"),
        ProxyInfo(host="10.0.0.2", port=8000, username="bob", password="pw2"),
        ProxyInfo(host="10.0.0.3", port=8000, username="carol", password="pw3"),
    ]
