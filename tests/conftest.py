"""Shared fixtures for bucketsync tests."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest

ENV_VARS = (
    "AWS_REGION",
    "AWS_ACCESS_KEY_ID",
    "AWS_ACCESS_KEY_SECRET",
    "AWS_SECRET_ACCESS_KEY",
    "BUCKET_NAME",
    "LOCAL_FOLDER_PATH",
    "DRY_RUN",
    "POLL_INTERVAL_SECONDS",
    "S3_ENDPOINT_URL",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove every bucketsync variable, including ones a .env file sets later."""
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


@pytest.fixture
def reset_logging() -> Iterator[None]:
    """Drop handlers installed by setup_logging once the test is done."""
    yield
    logger = logging.getLogger("bucketsync")
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
