"""Pytest configuration and shared fixtures."""

import io
import logging

import pytest

from binance_trade_tail.config.settings import TailerSettings


@pytest.fixture
def sink() -> io.BytesIO:
    return io.BytesIO()


@pytest.fixture
def test_settings() -> TailerSettings:
    """Settings with short timings for tests."""
    return TailerSettings(
        stream={
            'url': 'ws://127.0.0.1:1/ws',
            'channels': [],
            'keepalive_interval_seconds': 30.0,
            'open_timeout_seconds': 2.0,
        },
        rate_limit={'max_permits': 5, 'window_seconds': 0.05},
    )


@pytest.fixture
def sample_trade() -> dict:
    """Sample Binance trade event."""
    return {
        'e': 'trade',
        'E': 1609459200000,
        's': 'BTCUSDT',
        't': 12345,
        'p': '29000.50',
        'q': '0.010',
        'T': 1609459199999,
        'm': False,
        'M': True,
    }


@pytest.fixture
def restore_root_logger():
    """Put root logger handlers and level back after setup_logging."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
