"""Shared fixtures for riskradar tests (no network, no npm required)."""

import pytest


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"
