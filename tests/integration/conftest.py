"""Integration fixtures - wiring only.

Integration tests run against a live stack and a deployed application.
Each fixture skips when its endpoint is not configured.
"""

import os

import pytest


@pytest.fixture
def smoke_url() -> str:
    url = os.getenv("DEPLOY_SMOKE_URL")
    if not url:
        pytest.skip("DEPLOY_SMOKE_URL is not set")
    return url


@pytest.fixture
def webapp_url() -> str:
    url = os.getenv("WEBAPP_URL")
    if not url:
        pytest.skip("WEBAPP_URL is not set")
    return url.rstrip("/")


@pytest.fixture
def webapp_auth() -> tuple[str, str]:
    return (
        os.getenv("WEBAPP_USERNAME", "admin"),
        os.getenv("WEBAPP_PASSWORD", "admin"),
    )
