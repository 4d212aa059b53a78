from __future__ import annotations

import os
from pathlib import Path

import pytest

from upstage_mcp.config import API_KEY_ENV, RetryPolicy, UpstageSettings

RUN_LIVE_TESTS = os.getenv("RUN_LIVE_TESTS") == "1"


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers to avoid pytest warnings."""
    config.addinivalue_line(
        "markers",
        f"live: calls the real Upstage API; set RUN_LIVE_TESTS=1 and {API_KEY_ENV}.",
    )


def _live_skip_reason() -> str | None:
    """
    Return a skip reason for live-marked tests, or None when they should run.

    Live tests need network access and a real key, so they are opt-in.
    """
    if not RUN_LIVE_TESTS:
        return "Live tests disabled; set RUN_LIVE_TESTS=1 to enable."
    if not os.getenv(API_KEY_ENV):
        return f"{API_KEY_ENV} is not set."
    return None


def pytest_runtest_setup(item: pytest.Item) -> None:
    """Skip tests based on resource markers and environment availability."""
    if "live" in item.keywords:
        reason = _live_skip_reason()
        if reason:
            pytest.skip(reason)


@pytest.fixture
def settings(tmp_path: Path) -> UpstageSettings:
    """Settings with a fake key, no backoff delay and outputs under tmp_path."""
    return UpstageSettings(
        api_key="test-key",
        retry=RetryPolicy(initial_delay=0, max_delay=0),
        output_base=tmp_path / "outputs",
    )


@pytest.fixture
def sample_pdf(tmp_path: Path) -> Path:
    """A 10KB file with a PDF extension."""
    path = tmp_path / "invoice.pdf"
    path.write_bytes(b"%PDF-1.4\n" + b"0" * (10 * 1024 - 9))
    return path
