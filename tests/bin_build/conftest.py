"""Shared fixtures for the bin_build test suite."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from BinBuild.net import reset_http_client
from BinBuild.settings import invalidate_settings_cache
from BinBuild.testing import use_mock_http_client


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """Keep ``BINBUILD_*`` environment overrides and the shared client per-test."""

    for name in (
        "BINBUILD_LOG_LEVEL",
        "BINBUILD_LOG_DIR",
        "BINBUILD_HTTP_TIMEOUT_SEC",
        "BINBUILD_HTTP_CONNECT_TIMEOUT_SEC",
        "BINBUILD_USER_AGENT",
        "BINBUILD_TEMP_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
    invalidate_settings_cache()
    yield
    invalidate_settings_cache()
    reset_http_client()


@pytest.fixture
def scratch_dir(tmp_path, monkeypatch) -> Path:
    """Route temporary build directories and downloads into ``tmp_path/scratch``."""

    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setenv("BINBUILD_TEMP_DIR", str(scratch))
    invalidate_settings_cache()
    return scratch


@pytest.fixture
def no_network():
    """Install an HTTP client that fails the test on any request."""

    def handler(request: httpx.Request) -> httpx.Response:
        pytest.fail(f"unexpected network request: {request.method} {request.url}")

    with use_mock_http_client(httpx.MockTransport(handler)) as client:
        yield client
